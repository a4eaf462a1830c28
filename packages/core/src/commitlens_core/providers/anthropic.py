from __future__ import annotations

from anthropic import AsyncAnthropic
from anthropic.types import TextBlock

from commitlens_core.models import AdapterDescriptor
from commitlens_core.providers.base import BaseProvider


class AnthropicProvider(BaseProvider):
    def __init__(self, descriptor: AdapterDescriptor):
        super().__init__(descriptor)
        self.client = AsyncAnthropic(api_key=descriptor.api_key, max_retries=0)

    async def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        response = await self.client.messages.create(
            model=self.descriptor.model,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
            temperature=self.descriptor.temperature,
            max_tokens=self.descriptor.max_tokens,
        )
        text_blocks = [block.text for block in response.content if isinstance(block, TextBlock)]
        return "".join(text_blocks).strip()

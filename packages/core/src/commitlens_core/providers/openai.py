from __future__ import annotations

from openai import AsyncOpenAI

from commitlens_core.models import AdapterDescriptor
from commitlens_core.providers.base import BaseProvider


class OpenAIProvider(BaseProvider):
    def __init__(self, descriptor: AdapterDescriptor):
        super().__init__(descriptor)
        # BaseProvider owns retries and timeouts.
        self.client = AsyncOpenAI(api_key=descriptor.api_key, base_url=descriptor.host, max_retries=0)

    async def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        response = await self.client.chat.completions.create(
            model=self.descriptor.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=self.descriptor.temperature,
            max_tokens=self.descriptor.max_tokens,
        )
        return response.choices[0].message.content or ""

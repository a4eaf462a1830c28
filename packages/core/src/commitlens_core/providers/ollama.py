"""Local models served by Ollama.

Ollama exposes an OpenAI-compatible endpoint under /v1, so the OpenAI
provider is reused with a different base URL and a placeholder key.
"""

from __future__ import annotations

from openai import AsyncOpenAI

from commitlens_core.models import AdapterDescriptor
from commitlens_core.providers.openai import OpenAIProvider


class OllamaProvider(OpenAIProvider):
    def __init__(self, descriptor: AdapterDescriptor):
        self.descriptor = descriptor
        host = (descriptor.host or "http://localhost:11434").rstrip("/")
        self.client = AsyncOpenAI(api_key="ollama", base_url=f"{host}/v1", max_retries=0)

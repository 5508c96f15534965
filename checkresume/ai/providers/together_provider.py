from __future__ import annotations

from checkresume.ai.providers.openai_provider import OpenAICompatibleProvider


class TogetherProvider(OpenAICompatibleProvider):
    provider_id = "together"
    temperature = 0.1

from __future__ import annotations

from checkresume.ai.providers.openai_provider import OpenAICompatibleProvider


class GroqProvider(OpenAICompatibleProvider):
    provider_id = "groq"
    # Groq rejects completions above this budget.
    max_tokens_cap = 8000

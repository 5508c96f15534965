from __future__ import annotations

import logging
from email.utils import parsedate_to_datetime
from datetime import datetime, timezone
from typing import Any, Optional

import openai
from openai import AsyncOpenAI

from checkresume.ai.config import ProviderConfig
from checkresume.ai.types import (
    ChatMessage,
    FatalFailure,
    ProviderOutcome,
    RateLimited,
    Success,
    TransientFailure,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are an expert ATS resume analyzer. Always respond with valid JSON."
DEFAULT_RETRY_AFTER_S = 1.0
_TRANSIENT_STATUS = {408, 409}
_PERMANENT_QUOTA_CODES = {"insufficient_quota", "billing_hard_limit_reached"}


def _retry_after_seconds(response: Any) -> float:
    headers = getattr(response, "headers", None) or {}
    raw_ms = headers.get("retry-after-ms")
    if raw_ms:
        try:
            return max(0.0, float(raw_ms) / 1000.0)
        except ValueError:
            pass
    raw = headers.get("retry-after")
    if not raw:
        return DEFAULT_RETRY_AFTER_S
    try:
        return max(0.0, float(raw))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(raw)
    except (TypeError, ValueError):
        return DEFAULT_RETRY_AFTER_S
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


class OpenAICompatibleProvider:
    """Chat-completions backend speaking the OpenAI wire protocol.

    The SDK's own retries are disabled: one ``call`` is exactly one request,
    and every failure is folded into a :data:`ProviderOutcome`.
    """

    provider_id = "openai"
    json_mode = True
    max_tokens_cap: Optional[int] = None
    temperature = 0.3

    def __init__(self, config: ProviderConfig, client: AsyncOpenAI | None = None):
        self.provider_id = config.provider_id
        self.default_model = config.model
        self._max_tokens = config.max_tokens
        if self.max_tokens_cap is not None:
            self._max_tokens = min(self._max_tokens, self.max_tokens_cap)
        self._client = client or AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.endpoint,
            timeout=config.timeout_s,
            max_retries=0,
        )

    async def call(self, prompt: str, model: str) -> ProviderOutcome:
        messages = [
            ChatMessage(role="system", content=SYSTEM_PROMPT),
            ChatMessage(role="user", content=prompt),
        ]
        create_kwargs: dict[str, Any] = {
            "model": model or self.default_model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": self.temperature,
            "max_tokens": self._max_tokens,
        }
        if self.json_mode:
            create_kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.chat.completions.create(**create_kwargs)
        except openai.RateLimitError as exc:
            if getattr(exc, "code", None) in _PERMANENT_QUOTA_CODES:
                return FatalFailure(f"quota exhausted: {exc}")
            return RateLimited(_retry_after_seconds(exc.response))
        except openai.APIConnectionError as exc:
            # APITimeoutError is a subclass.
            return TransientFailure(f"{type(exc).__name__}: {exc}")
        except openai.APIStatusError as exc:
            if exc.status_code >= 500 or exc.status_code in _TRANSIENT_STATUS:
                return TransientFailure(f"HTTP {exc.status_code}: {exc}")
            return FatalFailure(f"HTTP {exc.status_code}: {exc}")
        except openai.APIError as exc:
            return TransientFailure(f"malformed response: {exc}")
        except Exception as exc:  # noqa: BLE001 - the provider boundary never raises
            logger.warning("ai_provider_unexpected_error provider=%s", self.provider_id, exc_info=True)
            return FatalFailure(f"{type(exc).__name__}: {exc}")

        content = response.choices[0].message.content if response.choices else ""
        if not content or not content.strip():
            return TransientFailure("empty response")
        return Success(content)

    async def aclose(self) -> None:
        await self._client.close()


class OpenAIProvider(OpenAICompatibleProvider):
    provider_id = "openai"

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from checkresume.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderConfig:
    provider_id: str
    endpoint: str | None
    api_key: str
    model: str
    max_tokens: int
    timeout_s: float


# endpoint, model, max_tokens
_PROVIDER_DEFAULTS: dict[str, tuple[str | None, str, int]] = {
    "openai": (None, "gpt-4o-mini", 4000),
    "groq": ("https://api.groq.com/openai/v1", "llama-3.3-70b-versatile", 8000),
    "together": ("https://api.together.xyz/v1", "meta-llama/Llama-3.3-70B-Instruct-Turbo", 4000),
}


def _looks_like_placeholder(value: str) -> bool:
    lower = value.strip().lower()
    return lower.startswith("your_") or lower.startswith("replace_") or lower in {"changeme", "todo", "dummy-api-key"}


def _env(provider_id: str, key: str) -> str:
    return (os.getenv(f"{provider_id.upper()}_{key}") or "").strip()


def load_provider_configs(cfg: Settings | None = None) -> list[ProviderConfig]:
    """Resolve the ordered provider preference list; unusable entries are skipped."""
    cfg = cfg or default_settings
    configs: list[ProviderConfig] = []
    for raw_id in cfg.ai_providers:
        provider_id = raw_id.strip().lower()
        if provider_id in {c.provider_id for c in configs}:
            continue
        endpoint, model, max_tokens = _PROVIDER_DEFAULTS.get(provider_id, (None, "", 4000))

        api_key = _env(provider_id, "API_KEY")
        if not api_key or _looks_like_placeholder(api_key):
            logger.warning("ai_provider_skipped provider=%s reason=missing_api_key", provider_id)
            continue

        model = _env(provider_id, "MODEL") or model
        if not model:
            logger.warning("ai_provider_skipped provider=%s reason=missing_model", provider_id)
            continue

        raw_max_tokens = _env(provider_id, "MAX_TOKENS")
        try:
            max_tokens = int(raw_max_tokens) if raw_max_tokens else max_tokens
        except ValueError:
            logger.warning("ai_provider_bad_max_tokens provider=%s value=%s", provider_id, raw_max_tokens)

        configs.append(
            ProviderConfig(
                provider_id=provider_id,
                endpoint=_env(provider_id, "BASE_URL") or endpoint,
                api_key=api_key,
                model=model,
                max_tokens=max_tokens,
                timeout_s=cfg.ai_call_timeout_s,
            )
        )
    return configs

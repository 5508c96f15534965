from __future__ import annotations

import logging
from typing import Callable

from checkresume.ai.config import ProviderConfig, load_provider_configs
from checkresume.ai.types import ProviderClient

from checkresume.ai.providers.groq_provider import GroqProvider
from checkresume.ai.providers.openai_provider import OpenAICompatibleProvider, OpenAIProvider
from checkresume.ai.providers.together_provider import TogetherProvider

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[ProviderConfig], ProviderClient]

PROVIDER_REGISTRY: dict[str, ProviderFactory] = {
    "openai": OpenAIProvider,
    "groq": GroqProvider,
    "together": TogetherProvider,
}


def build_provider(config: ProviderConfig) -> ProviderClient:
    # Unknown ids are assumed to be OpenAI-compatible endpoints configured via <ID>_BASE_URL.
    factory = PROVIDER_REGISTRY.get(config.provider_id, OpenAICompatibleProvider)
    return factory(config)


def build_providers(configs: list[ProviderConfig] | None = None) -> list[ProviderClient]:
    """Construct clients in preference order."""
    configs = load_provider_configs() if configs is None else configs
    providers = [build_provider(config) for config in configs]
    if not providers:
        logger.warning("ai_no_providers_configured")
    else:
        logger.info(
            "ai_providers_ready order=%s",
            ",".join(f"{p.provider_id}:{p.default_model}" for p in providers),
        )
    return providers

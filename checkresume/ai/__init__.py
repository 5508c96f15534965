from .types import (
    ChatMessage,
    FatalFailure,
    ProviderAttempt,
    ProviderClient,
    ProviderOutcome,
    RateLimited,
    Success,
    TransientFailure,
)

__all__ = [
    "ChatMessage",
    "FatalFailure",
    "ProviderAttempt",
    "ProviderClient",
    "ProviderOutcome",
    "RateLimited",
    "Success",
    "TransientFailure",
]

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Protocol, Union


Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class ChatMessage:
    role: Role
    content: str


@dataclass(frozen=True)
class Success:
    raw_payload: str

    kind = "success"


@dataclass(frozen=True)
class RateLimited:
    retry_after_seconds: float

    kind = "rate_limited"


@dataclass(frozen=True)
class TransientFailure:
    cause: str

    kind = "transient_failure"


@dataclass(frozen=True)
class FatalFailure:
    cause: str

    kind = "fatal_failure"


ProviderOutcome = Union[Success, RateLimited, TransientFailure, FatalFailure]


@dataclass(frozen=True)
class ProviderAttempt:
    provider_id: str
    model: str
    attempt: int
    started_at: datetime
    latency_ms: int
    outcome: ProviderOutcome

    @property
    def succeeded(self) -> bool:
        return isinstance(self.outcome, Success)

    def summary(self) -> dict[str, object]:
        detail: object = None
        if isinstance(self.outcome, RateLimited):
            detail = self.outcome.retry_after_seconds
        elif isinstance(self.outcome, (TransientFailure, FatalFailure)):
            detail = self.outcome.cause
        return {
            "provider_id": self.provider_id,
            "model": self.model,
            "attempt": self.attempt,
            "started_at": self.started_at.isoformat(),
            "latency_ms": self.latency_ms,
            "outcome": self.outcome.kind,
            "detail": detail,
        }


class ProviderClient(Protocol):
    """Single-call boundary to one AI backend. Never raises for provider errors."""

    provider_id: str
    default_model: str

    async def call(self, prompt: str, model: str) -> ProviderOutcome: ...

    async def aclose(self) -> None: ...

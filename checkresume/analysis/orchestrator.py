from __future__ import annotations

import asyncio
import inspect
import logging
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, Sequence

from checkresume.ai.types import (
    FatalFailure,
    ProviderAttempt,
    ProviderClient,
    ProviderOutcome,
    RateLimited,
    Success,
    TransientFailure,
)
from checkresume.core.errors import AllProvidersExhausted, SchemaValidationFailed

from .prompt import AnalysisRequest, build_analysis_prompt
from .schema import ResumeAnalysisResult
from .validation import UNPARSEABLE, check_payload, decode_payload

logger = logging.getLogger(__name__)

# Listeners may be plain callables or coroutine functions; awaitables are awaited.
AttemptListener = Callable[[ProviderAttempt], "Awaitable[None] | None"]
Sleeper = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY_MS = 1000
DEFAULT_CALL_TIMEOUT_S = 30.0
DEFAULT_DEADLINE_S = 120.0


class AnalysisOrchestrator:
    """Runs one analysis across the provider preference list.

    Each provider gets up to ``max_retries`` calls. Transient failures back off
    exponentially, rate limits wait exactly what the server asked for, and
    fatal failures move straight to the next provider. The whole run is
    bounded by ``deadline_s``.
    """

    def __init__(
        self,
        providers: Sequence[ProviderClient],
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
        call_timeout_s: float = DEFAULT_CALL_TIMEOUT_S,
        deadline_s: float = DEFAULT_DEADLINE_S,
        on_attempt: AttemptListener | None = None,
        sleep: Sleeper = asyncio.sleep,
        clock: Clock = time.monotonic,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self._providers = tuple(providers)
        self._max_retries = max_retries
        self._base_delay_s = max(0, base_delay_ms) / 1000.0
        self._call_timeout_s = call_timeout_s
        self._deadline_s = deadline_s
        self._on_attempt = on_attempt
        self._sleep = sleep
        self._clock = clock

    @property
    def providers(self) -> tuple[ProviderClient, ...]:
        return self._providers

    def retry_delay(self, outcome: ProviderOutcome, attempt: int) -> float:
        if isinstance(outcome, RateLimited):
            return max(0.0, outcome.retry_after_seconds)
        return self._base_delay_s * (2 ** (attempt - 1))

    async def analyze(self, request: AnalysisRequest) -> ResumeAnalysisResult:
        prompt = build_analysis_prompt(request)
        attempts: list[ProviderAttempt] = []
        deadline = self._clock() + self._deadline_s

        for provider in self._providers:
            model = provider.default_model
            for attempt_no in range(1, self._max_retries + 1):
                remaining = deadline - self._clock()
                if remaining <= 0:
                    self._log_exhausted(attempts, deadline_exceeded=True)
                    raise AllProvidersExhausted(attempts, deadline_exceeded=True)

                attempt = await self._call(provider, model, prompt, attempt_no, min(self._call_timeout_s, remaining))
                outcome = attempt.outcome
                payload = None
                if isinstance(outcome, Success):
                    payload = decode_payload(outcome.raw_payload)
                    if payload is UNPARSEABLE:
                        outcome = TransientFailure("payload is not valid JSON")
                        attempt = ProviderAttempt(
                            provider_id=attempt.provider_id,
                            model=attempt.model,
                            attempt=attempt.attempt,
                            started_at=attempt.started_at,
                            latency_ms=attempt.latency_ms,
                            outcome=outcome,
                        )
                attempts.append(attempt)
                await self._emit(attempt)

                if isinstance(outcome, Success):
                    return self._accept(provider.provider_id, payload, request)
                if isinstance(outcome, FatalFailure) or attempt_no == self._max_retries:
                    break

                delay = self.retry_delay(outcome, attempt_no)
                if self._clock() + delay >= deadline:
                    logger.warning(
                        "ai_retry_abandoned provider=%s attempt=%s delay_s=%.2f reason=deadline",
                        provider.provider_id,
                        attempt_no,
                        delay,
                    )
                    break
                logger.info(
                    "ai_retry_scheduled provider=%s attempt=%s delay_s=%.2f reason=%s",
                    provider.provider_id,
                    attempt_no,
                    delay,
                    outcome.kind,
                )
                await self._sleep(delay)

        deadline_exceeded = self._clock() >= deadline
        self._log_exhausted(attempts, deadline_exceeded=deadline_exceeded)
        raise AllProvidersExhausted(attempts, deadline_exceeded=deadline_exceeded)

    async def _call(
        self,
        provider: ProviderClient,
        model: str,
        prompt: str,
        attempt_no: int,
        timeout_s: float,
    ) -> ProviderAttempt:
        started_at = datetime.now(timezone.utc)
        started = time.perf_counter()
        try:
            outcome = await asyncio.wait_for(provider.call(prompt, model), timeout=timeout_s)
        except asyncio.TimeoutError:
            outcome = TransientFailure(f"timed out after {timeout_s:.1f}s")
        return ProviderAttempt(
            provider_id=provider.provider_id,
            model=model,
            attempt=attempt_no,
            started_at=started_at,
            latency_ms=int((time.perf_counter() - started) * 1000),
            outcome=outcome,
        )

    def _accept(self, provider_id: str, payload: object, request: AnalysisRequest) -> ResumeAnalysisResult:
        check = check_payload(payload, request.analysis_type)
        if not check.ok:
            logger.warning(
                "ai_schema_invalid provider=%s repaired=%s errors=%s",
                provider_id,
                check.repaired,
                "; ".join(check.errors[:5]),
            )
            raise SchemaValidationFailed(provider_id, check.errors)
        logger.info(
            "ai_analysis_succeeded provider=%s repaired=%s ats=%.1f overall=%.1f",
            provider_id,
            check.repaired,
            check.result.ats_score,
            check.result.overall_score,
        )
        return check.result

    async def _emit(self, attempt: ProviderAttempt) -> None:
        logger.info(
            "provider_attempt provider=%s model=%s attempt=%s outcome=%s latency_ms=%s",
            attempt.provider_id,
            attempt.model,
            attempt.attempt,
            attempt.outcome.kind,
            attempt.latency_ms,
        )
        if self._on_attempt is None:
            return
        try:
            pending = self._on_attempt(attempt)
            if inspect.isawaitable(pending):
                await pending
        except Exception:  # pragma: no cover - telemetry must not break analysis
            logger.debug("provider_attempt_telemetry_failed", exc_info=True)

    def _log_exhausted(self, attempts: list[ProviderAttempt], *, deadline_exceeded: bool) -> None:
        logger.error(
            "ai_providers_exhausted attempts=%s deadline_exceeded=%s providers=%s",
            len(attempts),
            deadline_exceeded,
            ",".join(p.provider_id for p in self._providers) or "-",
        )

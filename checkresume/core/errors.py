"""Failure taxonomy shared by every pipeline stage.

Each error names the stage that failed and whether retrying the whole request
might help, so the HTTP layer can answer without inspecting the type.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from checkresume.ai.types import ProviderAttempt


class PipelineError(RuntimeError):
    code = "pipeline_error"
    stage = "pipeline"
    retryable = False

    def __init__(self, message: str, *, code: str | None = None):
        super().__init__(message)
        if code:
            self.code = code

    def to_dict(self) -> dict[str, object]:
        return {
            "code": self.code,
            "stage": self.stage,
            "retryable": self.retryable,
            "detail": str(self),
        }


# ------------------------ Extraction ------------------------
class InputError(PipelineError):
    code = "input_error"
    stage = "extraction"


class UnsupportedFormat(InputError):
    code = "unsupported_format"

    def __init__(self, mime_type: str, supported: Sequence[str]):
        self.mime_type = mime_type
        self.supported = tuple(supported)
        super().__init__(
            f"Document type '{mime_type}' is not supported. Supported types: {', '.join(self.supported)}"
        )


class CorruptDocument(InputError):
    code = "corrupt_document"

    def __init__(self, filename: str, reason: str):
        self.filename = filename
        self.reason = reason
        super().__init__(f"Could not read any pages from '{filename}': {reason}")


class EmptyContent(InputError):
    code = "empty_content"

    def __init__(self, word_count: int, min_words: int):
        self.word_count = word_count
        self.min_words = min_words
        super().__init__(
            f"Resume has {word_count} words; at least {min_words} are needed for a meaningful analysis."
        )


# ------------------------ Analysis ------------------------
class AnalysisError(PipelineError):
    code = "analysis_error"
    stage = "analysis"


class AllProvidersExhausted(AnalysisError):
    code = "all_providers_exhausted"
    retryable = True

    def __init__(
        self,
        attempts: Sequence["ProviderAttempt"],
        *,
        deadline_exceeded: bool = False,
    ):
        self.attempts = tuple(attempts)
        self.deadline_exceeded = deadline_exceeded
        if deadline_exceeded:
            message = f"Analysis deadline exceeded after {len(self.attempts)} provider attempts."
        elif not self.attempts:
            message = "No AI provider is configured."
        else:
            message = f"Every AI provider failed ({len(self.attempts)} attempts)."
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        body = super().to_dict()
        body["attempts"] = [attempt.summary() for attempt in self.attempts]
        return body


class SchemaValidationFailed(AnalysisError):
    code = "schema_validation_failed"
    retryable = True

    def __init__(self, provider_id: str, errors: Sequence[str]):
        self.provider_id = provider_id
        self.errors = tuple(errors)
        preview = "; ".join(self.errors[:5])
        super().__init__(f"Response from '{provider_id}' does not match the analysis schema: {preview}")


# ------------------------ Persistence ------------------------
class PersistenceUnavailable(PipelineError):
    code = "persistence_unavailable"
    stage = "analytics"
    retryable = True


class AnalyticsFailed(PipelineError):
    """Unexpected analytics failure after a successful analysis."""

    code = "analytics_failed"
    stage = "analytics"


# ------------------------ Recommendations ------------------------
class InvalidRequest(PipelineError):
    code = "invalid_request"
    stage = "recommendations"


class RecommendationsFailed(PipelineError):
    code = "recommendations_failed"
    stage = "recommendations"

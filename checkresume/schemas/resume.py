from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from checkresume.analysis.schema import AnalysisType


class AnalyzeTextRequest(BaseModel):
    resume_text: str = Field(min_length=1, max_length=200_000)
    job_role: str = Field(default="general", max_length=120)
    analysis_type: AnalysisType = AnalysisType.STANDARD
    recommend: bool = True


class ErrorDetail(BaseModel):
    code: str
    stage: str
    retryable: bool
    detail: str
    attempts: list[dict[str, Any]] | None = None


class ErrorResponse(BaseModel):
    """Body returned for every pipeline error."""

    error: ErrorDetail


def error_responses(*status_codes: int) -> dict[int | str, dict[str, Any]]:
    return {code: {"model": ErrorResponse} for code in status_codes}

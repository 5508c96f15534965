"""Structured output contract for one resume analysis.

Field names and nesting are consumed verbatim by the web client and the
analytics tables, so they are serialized in camelCase (``by_alias=True``).
Validators double as post-processing: scores are clamped into [0, 100],
keyword and skill lists are de-duplicated case-insensitively and unknown
enum values fall back to ``medium``. Re-validating a dumped result is a no-op.
"""
from __future__ import annotations

import math
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

SCHEMA_VERSION = "1"

SCORE_MIN = 0.0
SCORE_MAX = 100.0

Priority = Literal["high", "medium", "low"]
Difficulty = Literal["easy", "medium", "hard"]


class AnalysisType(str, Enum):
    STANDARD = "standard"
    DETAILED = "detailed"
    ATS_ONLY = "ats-only"


def clamp_score(value: float) -> float:
    if math.isnan(value):
        return SCORE_MIN
    return max(SCORE_MIN, min(SCORE_MAX, float(value)))


def dedupe_casefold(values: list[str]) -> list[str]:
    seen: set[str] = set()
    output: list[str] = []
    for value in values:
        cleaned = " ".join(value.split())
        key = cleaned.casefold()
        if not cleaned or key in seen:
            continue
        seen.add(key)
        output.append(cleaned)
    return output


def _normalize_choice(value: Any, allowed: set[str], default: str) -> str:
    if not isinstance(value, str):
        return default
    normalized = value.strip().lower()
    return normalized if normalized in allowed else default


class ContractModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class Recommendation(ContractModel):
    category: str
    priority: Priority
    description: str
    impact: float

    @field_validator("priority", mode="before")
    @classmethod
    def _normalize_priority(cls, value: Any) -> str:
        return _normalize_choice(value, {"high", "medium", "low"}, "medium")

    @field_validator("impact")
    @classmethod
    def _clamp(cls, value: float) -> float:
        return clamp_score(value)


class SkillsAnalysis(ContractModel):
    present_skills: list[str]
    missing_skills: list[str]
    skills_match: float
    industry_relevance: float

    @field_validator("present_skills", "missing_skills")
    @classmethod
    def _dedupe(cls, value: list[str]) -> list[str]:
        return dedupe_casefold(value)

    @field_validator("skills_match", "industry_relevance")
    @classmethod
    def _clamp(cls, value: float) -> float:
        return clamp_score(value)


class SectionScore(ContractModel):
    score: float
    feedback: str

    @field_validator("score")
    @classmethod
    def _clamp(cls, value: float) -> float:
        return clamp_score(value)


class SectionAnalysis(ContractModel):
    contact_info: SectionScore
    summary: SectionScore
    experience: SectionScore
    education: SectionScore
    skills: SectionScore


class KeywordAnalysis(ContractModel):
    density: float
    relevant_keywords: list[str]
    missing_keywords: list[str]

    @field_validator("relevant_keywords", "missing_keywords")
    @classmethod
    def _dedupe(cls, value: list[str]) -> list[str]:
        return dedupe_casefold(value)

    @field_validator("density")
    @classmethod
    def _clamp(cls, value: float) -> float:
        return clamp_score(value)


class Formatting(ContractModel):
    score: float
    issues: list[str]
    suggestions: list[str]

    @field_validator("score")
    @classmethod
    def _clamp(cls, value: float) -> float:
        return clamp_score(value)


class IndustryBenchmark(ContractModel):
    industry: str
    average_score: float
    percentile: float

    @field_validator("average_score", "percentile")
    @classmethod
    def _clamp(cls, value: float) -> float:
        return clamp_score(value)


class EstimatedReading(ContractModel):
    time_seconds: float
    difficulty: Difficulty

    @field_validator("difficulty", mode="before")
    @classmethod
    def _normalize_difficulty(cls, value: Any) -> str:
        return _normalize_choice(value, {"easy", "medium", "hard"}, "medium")

    @field_validator("time_seconds")
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if math.isnan(value):
            return 0.0
        return max(0.0, value)


class ResumeAnalysisResult(ContractModel):
    ats_score: float
    overall_score: float
    strengths: list[str]
    weaknesses: list[str]
    recommendations: list[Recommendation]
    skills_analysis: SkillsAnalysis
    section_analysis: SectionAnalysis
    keyword_analysis: KeywordAnalysis
    formatting: Formatting
    industry_benchmark: IndustryBenchmark
    estimated_reading: EstimatedReading

    @field_validator("ats_score", "overall_score")
    @classmethod
    def _clamp(cls, value: float) -> float:
        return clamp_score(value)

    @field_validator("strengths", "weaknesses")
    @classmethod
    def _drop_blank(cls, value: list[str]) -> list[str]:
        return [item.strip() for item in value if item and item.strip()]

    def to_contract(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


def normalize_result(result: ResumeAnalysisResult) -> ResumeAnalysisResult:
    """Re-run post-processing over an existing result."""
    return ResumeAnalysisResult.model_validate(result.to_contract())

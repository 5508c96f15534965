from __future__ import annotations

import copy
import json
import re
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from .schema import AnalysisType, ResumeAnalysisResult

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)

_SECTION_DEFAULT = {"score": 0, "feedback": ""}

# Neutral values for fields a provider may omit. Core fields are listed here
# only so ats-only runs can be filled; see CORE_FIELDS.
NEUTRAL_DEFAULTS: dict[str, Any] = {
    "atsScore": 0,
    "overallScore": 0,
    "strengths": [],
    "weaknesses": [],
    "recommendations": [],
    "skillsAnalysis": {
        "presentSkills": [],
        "missingSkills": [],
        "skillsMatch": 0,
        "industryRelevance": 0,
    },
    "sectionAnalysis": {
        "contactInfo": _SECTION_DEFAULT,
        "summary": _SECTION_DEFAULT,
        "experience": _SECTION_DEFAULT,
        "education": _SECTION_DEFAULT,
        "skills": _SECTION_DEFAULT,
    },
    "keywordAnalysis": {"density": 0, "relevantKeywords": [], "missingKeywords": []},
    "formatting": {"score": 0, "issues": [], "suggestions": []},
    "industryBenchmark": {"industry": "", "averageScore": 0, "percentile": 0},
    "estimatedReading": {"timeSeconds": 0, "difficulty": "medium"},
}

RECOMMENDATION_DEFAULTS: dict[str, Any] = {"category": "general", "priority": "medium", "impact": 0}

CORE_FIELDS: dict[AnalysisType, frozenset[str]] = {
    AnalysisType.STANDARD: frozenset({"atsScore", "overallScore", "strengths", "weaknesses"}),
    AnalysisType.DETAILED: frozenset({"atsScore", "overallScore", "strengths", "weaknesses"}),
    AnalysisType.ATS_ONLY: frozenset({"atsScore"}),
}


class _Unparseable:
    def __repr__(self) -> str:
        return "UNPARSEABLE"


UNPARSEABLE: Any = _Unparseable()


@dataclass(frozen=True)
class SchemaCheck:
    result: ResumeAnalysisResult | None
    errors: tuple[str, ...] = ()
    repaired: bool = False

    @property
    def ok(self) -> bool:
        return self.result is not None


def decode_payload(raw: str) -> Any:
    """Parse a provider payload as JSON, tolerating code fences and chatter.

    Returns :data:`UNPARSEABLE` when no JSON document can be recovered.
    """
    text = (raw or "").strip()
    candidates = [text]
    fenced = _FENCE_RE.search(text)
    if fenced:
        candidates.append(fenced.group(1).strip())
    start, end = text.find("{"), text.rfind("}")
    if 0 <= start < end:
        candidates.append(text[start : end + 1])

    for candidate in candidates:
        if not candidate:
            continue
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    return UNPARSEABLE


def _camelize_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            (to_camel(key) if isinstance(key, str) and "_" in key else key): _camelize_keys(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_camelize_keys(item) for item in value]
    return value


def _fill_missing(payload: dict[str, Any], defaults: dict[str, Any], protected: frozenset[str]) -> dict[str, Any]:
    filled = dict(payload)
    for key, default in defaults.items():
        if key in protected:
            continue
        current = filled.get(key)
        if current is None:
            filled[key] = copy.deepcopy(default)
        elif isinstance(current, dict) and isinstance(default, dict):
            filled[key] = _fill_missing(current, default, frozenset())
    recommendations = filled.get("recommendations")
    if isinstance(recommendations, list):
        filled["recommendations"] = [
            _fill_missing(item, RECOMMENDATION_DEFAULTS, frozenset()) if isinstance(item, dict) else item
            for item in recommendations
        ]
    return filled


def _format_errors(exc: ValidationError) -> list[str]:
    messages: list[str] = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        messages.append(f"{location or '<root>'}: {error.get('msg', 'invalid')}")
    return messages


def _content_errors(result: ResumeAnalysisResult, analysis_type: AnalysisType) -> list[str]:
    if analysis_type is AnalysisType.ATS_ONLY:
        return []
    errors: list[str] = []
    if not result.strengths:
        errors.append("strengths: must not be empty")
    if not result.weaknesses:
        errors.append("weaknesses: must not be empty")
    return errors


def _validate(payload: dict[str, Any], analysis_type: AnalysisType) -> tuple[ResumeAnalysisResult | None, list[str]]:
    try:
        result = ResumeAnalysisResult.model_validate(payload)
    except ValidationError as exc:
        return None, _format_errors(exc)
    errors = _content_errors(result, analysis_type)
    if errors:
        return None, errors
    return result, []


def check_payload(payload: Any, analysis_type: AnalysisType) -> SchemaCheck:
    """Validate a decoded payload, with at most one repair pass for missing optional fields."""
    if not isinstance(payload, dict):
        return SchemaCheck(result=None, errors=(f"expected a JSON object, got {type(payload).__name__}",))

    payload = _camelize_keys(payload)
    result, errors = _validate(payload, analysis_type)
    if result is not None:
        return SchemaCheck(result=result)

    repaired_payload = _fill_missing(payload, NEUTRAL_DEFAULTS, CORE_FIELDS[analysis_type])
    if repaired_payload == payload:
        return SchemaCheck(result=None, errors=tuple(errors))

    result, repair_errors = _validate(repaired_payload, analysis_type)
    if result is None:
        return SchemaCheck(result=None, errors=tuple(repair_errors), repaired=True)
    return SchemaCheck(result=result, repaired=True)

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UserAnalytics(BaseModel):
    """Running aggregate of every analysis a user has recorded.

    ``average_score``, ``best_score`` and ``worst_score`` track the overall
    score; the ATS score is tracked separately because insights compare the
    latest ATS score with the one before it.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    total_analyses: int = 0
    average_score: float = 0.0
    average_ats_score: float = 0.0
    best_score: float = 0.0
    worst_score: float = 0.0
    latest_ats_score: float = 0.0
    previous_ats_score: float = 0.0
    last_updated: datetime | None = None
    version: int = 0

    @classmethod
    def zero(cls, user_id: str) -> "UserAnalytics":
        return cls(user_id=user_id)


class AnalyticsTrendPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    timestamp: datetime = Field(default_factory=utc_now)
    ats_score: float
    overall_score: float
    keyword_density: float = 0.0
    skills_match: float = 0.0
    readability_score: float = 0.0


class AnalyticsDashboard(BaseModel):
    analytics: UserAnalytics
    trends: list[AnalyticsTrendPoint] = Field(default_factory=list)


class AnalyticsInsight(BaseModel):
    type: Literal["improvement", "decline", "trend", "milestone"]
    category: str
    message: str
    impact: Literal["positive", "negative", "neutral"]

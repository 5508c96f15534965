from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from checkresume.analysis.schema import ResumeAnalysisResult


class CoursePrice(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: float = 0.0
    currency: str = "USD"
    is_free: bool = False


class CourseCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    provider: str
    category: str
    difficulty: str = "beginner"
    duration: str = ""
    description: str = ""
    skills: list[str] = Field(default_factory=list)
    rating: float = Field(default=0.0, ge=0.0, le=5.0)
    review_count: int = Field(default=0, ge=0)
    price: CoursePrice = Field(default_factory=CoursePrice)
    url: str = ""


class CourseRecommendation(CourseCandidate):
    relevance_score: float
    reasons: list[str] = Field(default_factory=list)


class RecommendationRequest(BaseModel):
    user_id: Optional[str] = None
    job_role: Optional[str] = None
    skills_gap: list[str] = Field(default_factory=list)
    analysis: Optional[ResumeAnalysisResult] = None
    category: Optional[str] = None
    limit: int = Field(default=10, ge=1, le=100)

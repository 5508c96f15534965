from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass

from checkresume.core.errors import InvalidRequest
from checkresume.core.scoring import get_scoring_value

from .catalog import CourseCatalog, role_key
from .models import CourseCandidate, CourseRecommendation, RecommendationRequest

logger = logging.getLogger(__name__)

_NON_WORD_RE = re.compile(r"[^\w+#.]+")


def _normalize_skill(skill: str) -> str:
    return " ".join(_NON_WORD_RE.sub(" ", skill.casefold()).split())


def _contains_phrase(haystack: str, needle: str) -> bool:
    return re.search(rf"(?<!\w){re.escape(needle)}(?!\w)", haystack) is not None


def skill_matches(course_skill: str, gap: list[str]) -> bool:
    """Whole-phrase, case-insensitive match in either direction ('Analytics' ~ 'Data Analytics')."""
    skill = _normalize_skill(course_skill)
    if not skill:
        return False
    for wanted in gap:
        if skill == wanted or _contains_phrase(skill, wanted) or _contains_phrase(wanted, skill):
            return True
    return False


@dataclass(frozen=True)
class _Weights:
    skills: float
    category: float
    popularity: float

    @classmethod
    def from_config(cls) -> "_Weights":
        return cls(
            skills=float(get_scoring_value("recommendations.weights.skills", 0.6)),
            category=float(get_scoring_value("recommendations.weights.category", 0.3)),
            popularity=float(get_scoring_value("recommendations.weights.popularity", 0.1)),
        )


def popularity(course: CourseCandidate) -> float:
    return course.rating * math.log1p(course.review_count)


class RecommendationEngine:
    """Ranks catalog courses against a skills gap and a target role or category."""

    def __init__(self, catalog: CourseCatalog):
        self._catalog = catalog
        self._weights = _Weights.from_config()
        self._max_reason_skills = int(get_scoring_value("recommendations.max_reason_skills", 3))

    @property
    def catalog(self) -> CourseCatalog:
        return self._catalog

    def skills_gap(self, request: RecommendationRequest) -> list[str]:
        if request.skills_gap:
            return list(request.skills_gap)
        if request.analysis is not None and request.analysis.skills_analysis.missing_skills:
            return list(request.analysis.skills_analysis.missing_skills)
        profile = self._catalog.role(request.job_role)
        return list(profile.skills) if profile else []

    def target_category(self, request: RecommendationRequest) -> str:
        if request.category:
            return request.category.strip().lower()
        profile = self._catalog.role(request.job_role)
        return profile.category.lower() if profile else ""

    def recommend(self, request: RecommendationRequest) -> list[CourseRecommendation]:
        gap = self.skills_gap(request)
        if not role_key(request.job_role) and not gap:
            raise InvalidRequest("Provide a job role or a non-empty skills gap to match courses against.")
        if not self._catalog.courses:
            logger.info("course_recommendations_empty_catalog user=%s", request.user_id or "-")
            return []

        normalized_gap = [skill for skill in (_normalize_skill(item) for item in gap) if skill]
        category = self.target_category(request)
        max_popularity = max(popularity(course) for course in self._catalog.courses)

        ranked = [self._score(course, normalized_gap, category, max_popularity) for course in self._catalog.courses]
        ranked.sort(key=lambda item: (-item.relevance_score, -item.rating, item.title))
        selected = ranked[: request.limit]

        logger.info(
            "course_recommendations_generated user=%s role=%s gap=%s returned=%s",
            request.user_id or "-",
            role_key(request.job_role) or "-",
            len(gap),
            len(selected),
        )
        return selected

    def _score(
        self,
        course: CourseCandidate,
        gap: list[str],
        category: str,
        max_popularity: float,
    ) -> CourseRecommendation:
        matched = [skill for skill in course.skills if skill_matches(skill, gap)]
        skill_fraction = len(matched) / len(course.skills) if course.skills else 0.0
        category_match = 1.0 if category and course.category.lower() == category else 0.0
        popularity_share = popularity(course) / max_popularity if max_popularity > 0 else 0.0

        contributions: list[tuple[float, str]] = []
        skill_part = self._weights.skills * skill_fraction
        if skill_part > 0:
            shown = ", ".join(matched[: self._max_reason_skills])
            plural = "s" if len(matched) > 1 else ""
            contributions.append((skill_part, f"Covers {len(matched)} skill{plural} you need: {shown}"))
        category_part = self._weights.category * category_match
        if category_part > 0:
            contributions.append((category_part, f"Matches the {course.category} track"))
        popularity_part = self._weights.popularity * popularity_share
        if popularity_part > 0:
            contributions.append(
                (popularity_part, f"Rated {course.rating:g}/5 by {course.review_count:,} learners")
            )

        contributions.sort(key=lambda item: item[0], reverse=True)
        total = skill_part + category_part + popularity_part
        return CourseRecommendation(
            **course.model_dump(),
            relevance_score=round(total * 100, 2),
            reasons=[reason for _, reason in contributions],
        )

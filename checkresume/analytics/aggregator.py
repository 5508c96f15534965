from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Callable

from checkresume.analysis.schema import ResumeAnalysisResult
from checkresume.core.errors import PersistenceUnavailable
from checkresume.core.scoring import get_scoring_value

from .models import AnalyticsDashboard, AnalyticsInsight, AnalyticsTrendPoint, UserAnalytics, utc_now
from .store import SQLiteAnalyticsStore

logger = logging.getLogger(__name__)


def _readability(difficulty: str) -> float:
    mapping = get_scoring_value("analytics.readability_by_difficulty", {}) or {}
    return float(mapping.get(difficulty, mapping.get("medium", 70)))


def apply_result(
    current: UserAnalytics | None,
    user_id: str,
    result: ResumeAnalysisResult,
    now: datetime,
) -> UserAnalytics:
    """Fold one analysis into a user's running aggregate."""
    base = current or UserAnalytics.zero(user_id)
    count = base.total_analyses
    overall = result.overall_score
    ats = result.ats_score
    first = count == 0
    return UserAnalytics(
        user_id=user_id,
        total_analyses=count + 1,
        average_score=(base.average_score * count + overall) / (count + 1),
        average_ats_score=(base.average_ats_score * count + ats) / (count + 1),
        best_score=overall if first else max(base.best_score, overall),
        worst_score=overall if first else min(base.worst_score, overall),
        latest_ats_score=ats,
        previous_ats_score=ats if first else base.latest_ats_score,
        last_updated=now,
        version=base.version + 1,
    )


def trend_point_for(user_id: str, result: ResumeAnalysisResult, now: datetime) -> AnalyticsTrendPoint:
    return AnalyticsTrendPoint(
        user_id=user_id,
        timestamp=now,
        ats_score=result.ats_score,
        overall_score=result.overall_score,
        keyword_density=result.keyword_analysis.density,
        skills_match=result.skills_analysis.skills_match,
        readability_score=_readability(result.estimated_reading.difficulty),
    )


class AnalyticsAggregator:
    """Maintains per-user running statistics and the trend history.

    Updates for the same user are serialized twice: by an in-process lock per
    user id and by the store's write transaction. Different users never share
    a lock.
    """

    def __init__(self, store: SQLiteAnalyticsStore, *, clock: Callable[[], datetime] = utc_now):
        self._store = store
        self._clock = clock
        # user id -> (lock, holders plus waiters); entries go away with the last user.
        self._locks: dict[str, tuple[asyncio.Lock, int]] = {}

    @property
    def lock_count(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def _user_lock(self, user_id: str) -> AsyncIterator[None]:
        lock, users = self._locks[user_id] if user_id in self._locks else (asyncio.Lock(), 0)
        self._locks[user_id] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._locks[user_id]
            if users <= 1:
                del self._locks[user_id]
            else:
                self._locks[user_id] = (lock, users - 1)

    async def record(self, user_id: str, result: ResumeAnalysisResult) -> UserAnalytics:
        if not user_id or not user_id.strip():
            raise ValueError("user_id must not be empty")
        now = self._clock()

        async with self._user_lock(user_id):
            analytics = await asyncio.to_thread(
                self._store.apply_user_analytics,
                user_id,
                lambda current: apply_result(current, user_id, result, now),
            )

        point = trend_point_for(user_id, result, now)
        try:
            await asyncio.to_thread(self._store.append_trend_point, point)
        except PersistenceUnavailable as exc:
            # The aggregate above is already committed and stays authoritative.
            logger.warning("analytics_trend_append_failed user=%s error=%s", user_id, exc)
            raise PersistenceUnavailable(
                f"Analytics aggregate updated but trend point was not stored: {exc}",
                code="trend_append_failed",
            ) from exc

        logger.info(
            "analytics_recorded user=%s total=%s average=%.2f version=%s",
            user_id,
            analytics.total_analyses,
            analytics.average_score,
            analytics.version,
        )
        return analytics

    async def get_dashboard(self, user_id: str) -> AnalyticsDashboard:
        window = int(get_scoring_value("analytics.trend_window", 30))
        analytics = await asyncio.to_thread(self._store.get_user_analytics, user_id)
        trends = await asyncio.to_thread(self._store.list_trend_points, user_id, window)
        return AnalyticsDashboard(analytics=analytics or UserAnalytics.zero(user_id), trends=trends)

    async def generate_insights(self, user_id: str) -> list[AnalyticsInsight]:
        dashboard = await self.get_dashboard(user_id)
        return build_insights(dashboard)


def build_insights(dashboard: AnalyticsDashboard) -> list[AnalyticsInsight]:
    analytics = dashboard.analytics
    sample = int(get_scoring_value("analytics.insights.trend_sample", 3))
    margin = float(get_scoring_value("analytics.insights.trend_margin", 5))
    milestone = int(get_scoring_value("analytics.insights.milestone_analyses", 5))

    insights: list[AnalyticsInsight] = []
    delta = analytics.latest_ats_score - analytics.previous_ats_score
    if analytics.total_analyses > 1 and delta > 0:
        insights.append(
            AnalyticsInsight(
                type="improvement",
                category="ATS Score",
                message=f"Your ATS score improved by {delta:.1f} points!",
                impact="positive",
            )
        )
    elif analytics.total_analyses > 1 and delta < 0:
        insights.append(
            AnalyticsInsight(
                type="decline",
                category="ATS Score",
                message=f"Your ATS score decreased by {-delta:.1f} points.",
                impact="negative",
            )
        )

    trends = dashboard.trends
    if len(trends) > sample:
        recent = trends[-sample:]
        older = trends[-2 * sample : -sample]
        recent_avg = sum(point.ats_score for point in recent) / len(recent)
        older_avg = sum(point.ats_score for point in older) / len(older)
        if recent_avg > older_avg + margin:
            insights.append(
                AnalyticsInsight(
                    type="trend",
                    category="Progress",
                    message="You're on an upward trend! Keep up the great work.",
                    impact="positive",
                )
            )

    if analytics.total_analyses >= milestone:
        insights.append(
            AnalyticsInsight(
                type="milestone",
                category="Usage",
                message=f"You've completed {analytics.total_analyses} resume analyses. You're becoming a pro!",
                impact="neutral",
            )
        )
    return insights

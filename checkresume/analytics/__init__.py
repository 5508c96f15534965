from .aggregator import AnalyticsAggregator, apply_result, build_insights
from .models import AnalyticsDashboard, AnalyticsInsight, AnalyticsTrendPoint, UserAnalytics
from .store import SQLiteAnalyticsStore

__all__ = [
    "AnalyticsAggregator",
    "AnalyticsDashboard",
    "AnalyticsInsight",
    "AnalyticsTrendPoint",
    "SQLiteAnalyticsStore",
    "UserAnalytics",
    "apply_result",
    "build_insights",
]

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from checkresume.ai.factory import build_providers
from checkresume.analysis.orchestrator import AnalysisOrchestrator
from checkresume.analytics.aggregator import AnalyticsAggregator
from checkresume.analytics.store import SQLiteAnalyticsStore
from checkresume.core.config import settings
from checkresume.extraction.extract import DocumentExtractor
from checkresume.recommendations.catalog import load_catalog
from checkresume.recommendations.engine import RecommendationEngine
from checkresume.services.pipeline import ResumeAnalysisPipeline

logger = logging.getLogger(__name__)

PURGE_INTERVAL_SECONDS = 3600


def telemetry_sink(store: SQLiteAnalyticsStore):
    """Attempt listener that writes telemetry rows from a worker thread, off the event loop."""

    async def record_attempt(attempt) -> None:
        await asyncio.to_thread(store.log_provider_attempt, attempt)

    return record_attempt


def build_components(app) -> None:
    """Wire the pipeline onto ``app.state``; pre-set ``store``/``providers``/``catalog`` are reused."""
    store = getattr(app.state, "store", None) or SQLiteAnalyticsStore(settings.analytics_db_path)
    store.init()

    providers = getattr(app.state, "providers", None)
    if providers is None:
        providers = build_providers()

    catalog = getattr(app.state, "catalog", None)
    if catalog is None:
        catalog = load_catalog(settings.course_catalog_path)

    orchestrator = AnalysisOrchestrator(
        providers,
        max_retries=settings.ai_max_retries,
        base_delay_ms=settings.ai_base_delay_ms,
        call_timeout_s=settings.ai_call_timeout_s,
        deadline_s=settings.ai_pipeline_deadline_s,
        on_attempt=telemetry_sink(store),
    )
    aggregator = AnalyticsAggregator(store)
    recommender = RecommendationEngine(catalog)

    app.state.store = store
    app.state.providers = providers
    app.state.catalog = catalog
    app.state.aggregator = aggregator
    app.state.recommender = recommender
    app.state.pipeline = ResumeAnalysisPipeline(
        DocumentExtractor(min_words=settings.min_content_words),
        orchestrator,
        aggregator=aggregator,
        recommender=recommender,
    )


@asynccontextmanager
async def lifespan(app):
    build_components(app)
    store: SQLiteAnalyticsStore = app.state.store

    stop_event = asyncio.Event()

    async def periodic_purge() -> None:
        while not stop_event.is_set():
            try:
                deleted = await asyncio.to_thread(store.purge_old_attempts, settings.telemetry_retention_days)
                if deleted:
                    logger.info("telemetry_retention_purge deleted=%s", deleted)
            except Exception as exc:  # pragma: no cover - purge must not stop the service
                logger.warning("telemetry_retention_purge_failed: %s", exc)
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=PURGE_INTERVAL_SECONDS)
            except asyncio.TimeoutError:
                continue

    purge_task = asyncio.create_task(periodic_purge())
    yield
    stop_event.set()
    if not purge_task.done():
        purge_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await purge_task

    for provider in app.state.providers:
        try:
            await provider.aclose()
        except Exception as exc:  # pragma: no cover - shutdown continues past a bad client
            logger.warning("ai_provider_close_failed provider=%s error=%s", provider.provider_id, exc)
    store.close()

import asyncio
import contextlib
import sys
import tempfile
import threading
import time
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
TESTS_DIR = Path(__file__).resolve().parent
for path in (PROJECT_ROOT, TESTS_DIR):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from checkresume.analysis.orchestrator import AnalysisOrchestrator  # noqa: E402
from checkresume.analysis.schema import AnalysisType  # noqa: E402
from checkresume.analytics import AnalyticsAggregator, SQLiteAnalyticsStore  # noqa: E402
from checkresume.core.errors import AllProvidersExhausted, EmptyContent, PersistenceUnavailable, UnsupportedFormat  # noqa: E402
from checkresume.core.lifespan import telemetry_sink  # noqa: E402
from checkresume.extraction import DocumentExtractor, RawDocument  # noqa: E402
from checkresume.recommendations import CourseCatalog, RecommendationEngine, load_catalog  # noqa: E402
from checkresume.services.pipeline import ResumeAnalysisPipeline  # noqa: E402
from fakes import RESUME_TEXT, FakeClock, HangingProvider, ScriptedProvider, success  # noqa: E402


class CrashingAggregator(AnalyticsAggregator):
    async def record(self, user_id, result):
        raise RuntimeError("disk quota exceeded")


class CrashingRecommender(RecommendationEngine):
    def recommend(self, request):
        raise KeyError("category")


class ResumeAnalysisPipelineTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.store = SQLiteAnalyticsStore(Path(self._tmp.name) / "analytics.db")
        self.store.init()
        self.clock = FakeClock()
        self.telemetry = []

    def tearDown(self):
        self.store.close()
        self._tmp.cleanup()

    def _pipeline(self, providers, catalog=None, store=None):
        orchestrator = AnalysisOrchestrator(
            providers,
            on_attempt=self.telemetry.append,
            sleep=self.clock.sleep,
            clock=self.clock,
        )
        return ResumeAnalysisPipeline(
            DocumentExtractor(),
            orchestrator,
            aggregator=AnalyticsAggregator(store or self.store),
            recommender=RecommendationEngine(catalog if catalog is not None else load_catalog("config/courses.yaml")),
        )

    async def test_end_to_end_clamps_and_records(self):
        pipeline = self._pipeline([ScriptedProvider("openai", [success(atsScore=150)])])

        report = await pipeline.run_text("user-1", RESUME_TEXT, "Software Engineer", AnalysisType.STANDARD)

        self.assertEqual(report.result.ats_score, 100)
        self.assertIn("experience", report.extracted.sections)
        self.assertIn("education", report.extracted.sections)
        self.assertFalse(report.partial)
        self.assertEqual(report.analytics.total_analyses, 1)
        self.assertEqual(report.analytics.latest_ats_score, 100)
        self.assertTrue(report.recommendations)
        self.assertEqual(len(self.telemetry), 1)

        body = report.to_response()
        self.assertEqual(body["analysis"]["atsScore"], 100)
        self.assertEqual(body["document"]["sections"], ["summary", "experience", "education", "skills"])
        self.assertIsNone(body["errors"]["analytics"])

    async def test_extraction_error_is_terminal(self):
        provider = ScriptedProvider("openai", [success()])
        pipeline = self._pipeline([provider])

        with self.assertRaises(EmptyContent):
            await pipeline.run_text("user-1", "too short", "Software Engineer")

        self.assertEqual(provider.calls, [])
        self.assertIsNone(self.store.get_user_analytics("user-1"))

    async def test_provider_exhaustion_persists_nothing(self):
        pipeline = self._pipeline([ScriptedProvider("openai", [])])

        with self.assertRaises(AllProvidersExhausted):
            await pipeline.run_text("user-1", RESUME_TEXT, "Software Engineer")

        self.assertIsNone(self.store.get_user_analytics("user-1"))
        self.assertEqual(self.store.list_trend_points("user-1"), [])

    async def test_analytics_failure_is_reported_not_raised(self):
        closed = SQLiteAnalyticsStore(Path(self._tmp.name) / "closed.db")
        pipeline = self._pipeline([ScriptedProvider("openai", [success()])], store=closed)

        report = await pipeline.run_text("user-1", RESUME_TEXT, "Software Engineer")

        self.assertEqual(report.result.ats_score, 78)
        self.assertIsInstance(report.analytics_error, PersistenceUnavailable)
        self.assertIsNone(report.analytics)
        self.assertTrue(report.partial)
        self.assertEqual(report.to_response()["errors"]["analytics"]["code"], "persistence_unavailable")

    async def test_recommendation_failure_is_reported_not_raised(self):
        pipeline = self._pipeline([ScriptedProvider("openai", [success(skillsAnalysis=None)])], catalog=CourseCatalog())

        report = await pipeline.run_text("user-1", RESUME_TEXT, "")

        self.assertEqual(report.result.ats_score, 78)
        self.assertEqual(report.recommendations, [])
        self.assertEqual(report.recommendations_error.code, "invalid_request")

    async def test_anonymous_requests_skip_analytics(self):
        pipeline = self._pipeline([ScriptedProvider("openai", [success()])])

        report = await pipeline.run_text(None, RESUME_TEXT, "Software Engineer", recommend=False)

        self.assertIsNone(report.analytics)
        self.assertEqual(report.recommendations, [])
        self.assertFalse(report.partial)

    async def test_cancellation_before_result_persists_nothing(self):
        provider = HangingProvider()
        pipeline = self._pipeline([provider])
        task = asyncio.create_task(pipeline.run_text("user-1", RESUME_TEXT, "Software Engineer"))
        await provider.started.wait()

        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task

        self.assertIsNone(self.store.get_user_analytics("user-1"))
        self.assertEqual(self.store.list_trend_points("user-1"), [])

    async def test_unsupported_upload_is_terminal(self):
        pipeline = self._pipeline([ScriptedProvider("openai", [success()])])
        raw = RawDocument(content=b"\x89PNG\r\n", mime_type="image/png", filename="resume.png")

        with self.assertRaises(UnsupportedFormat):
            await pipeline.run("user-1", raw, "Software Engineer")
        self.assertIsNone(self.store.get_user_analytics("user-1"))


    async def test_blank_user_id_is_treated_as_anonymous(self):
        pipeline = self._pipeline([ScriptedProvider("openai", [success()])])

        report = await pipeline.run_text("   ", RESUME_TEXT, "Software Engineer")

        self.assertEqual(report.result.ats_score, 78)
        self.assertIsNone(report.analytics)
        self.assertIsNone(report.analytics_error)
        self.assertFalse(report.partial)
        self.assertIsNone(self.store.get_user_analytics("   "))

    async def test_user_id_is_stripped_before_recording(self):
        pipeline = self._pipeline([ScriptedProvider("openai", [success()])])

        report = await pipeline.run_text("  user-1 ", RESUME_TEXT, "Software Engineer", recommend=False)

        self.assertEqual(report.analytics.user_id, "user-1")
        self.assertEqual(self.store.get_user_analytics("user-1").total_analyses, 1)

    async def test_unexpected_fan_out_errors_keep_the_result(self):
        orchestrator = AnalysisOrchestrator(
            [ScriptedProvider("openai", [success()])], sleep=self.clock.sleep, clock=self.clock
        )
        pipeline = ResumeAnalysisPipeline(
            DocumentExtractor(),
            orchestrator,
            aggregator=CrashingAggregator(self.store),
            recommender=CrashingRecommender(load_catalog("config/courses.yaml")),
        )

        report = await pipeline.run_text("user-1", RESUME_TEXT, "Software Engineer")

        self.assertEqual(report.result.ats_score, 78)
        self.assertTrue(report.partial)
        body = report.to_response()
        self.assertEqual(body["errors"]["analytics"]["code"], "analytics_failed")
        self.assertIn("disk quota exceeded", body["errors"]["analytics"]["detail"])
        self.assertEqual(body["errors"]["recommendations"]["code"], "recommendations_failed")

    async def test_telemetry_write_does_not_block_event_loop(self):
        orchestrator = AnalysisOrchestrator(
            [ScriptedProvider("openai", [success()])], on_attempt=telemetry_sink(self.store)
        )
        pipeline = ResumeAnalysisPipeline(DocumentExtractor(), orchestrator)
        held = threading.Event()
        release = threading.Event()

        def hold_store_lock():
            with self.store._lock:
                held.set()
                release.wait(5)

        holder = threading.Thread(target=hold_store_lock)
        holder.start()
        held.wait(5)

        gaps = []

        async def ticker():
            last = time.perf_counter()
            while True:
                await asyncio.sleep(0.02)
                now = time.perf_counter()
                gaps.append(now - last)
                last = now

        tick = asyncio.create_task(ticker())
        run = asyncio.create_task(pipeline.run_text(None, RESUME_TEXT, "Software Engineer", recommend=False))
        try:
            await asyncio.sleep(0.4)
            self.assertFalse(run.done())
        finally:
            release.set()
        report = await run
        tick.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await tick
        holder.join()

        self.assertEqual(report.result.ats_score, 78)
        self.assertLess(max(gaps), 0.25)
        self.assertEqual(self.store.count_provider_attempts(), 1)


if __name__ == "__main__":
    unittest.main()

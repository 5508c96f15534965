import asyncio
import json
import sys
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
TESTS_DIR = Path(__file__).resolve().parent
for path in (PROJECT_ROOT, TESTS_DIR):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from checkresume.ai.types import FatalFailure, RateLimited, Success, TransientFailure  # noqa: E402
from checkresume.analysis.orchestrator import AnalysisOrchestrator  # noqa: E402
from checkresume.analysis.prompt import AnalysisRequest, build_analysis_prompt  # noqa: E402
from checkresume.analysis.schema import AnalysisType  # noqa: E402
from checkresume.core.errors import AllProvidersExhausted, SchemaValidationFailed  # noqa: E402
from checkresume.extraction import DocumentExtractor, RawDocument  # noqa: E402
from fakes import RESUME_TEXT, FakeClock, HangingProvider, ScriptedProvider, make_payload, success  # noqa: E402


def _request(analysis_type: AnalysisType = AnalysisType.STANDARD) -> AnalysisRequest:
    raw = RawDocument(content=RESUME_TEXT.encode("utf-8"), mime_type="text/plain", filename="resume.txt")
    return AnalysisRequest(
        text=DocumentExtractor().extract(raw),
        job_role="Software Engineer",
        analysis_type=analysis_type,
    )


class PromptTests(unittest.TestCase):
    def test_prompt_carries_role_sections_and_shape(self):
        prompt = build_analysis_prompt(_request(AnalysisType.DETAILED))
        self.assertIn("Job Role/Industry: Software Engineer", prompt)
        self.assertIn("Analysis Type: detailed", prompt)
        self.assertIn("EXPERIENCE:", prompt)
        self.assertIn('"atsScore"', prompt)
        self.assertIn('"estimatedReading"', prompt)


class AnalysisOrchestratorTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.attempts = []

    def _orchestrator(self, providers, **kwargs):
        kwargs.setdefault("on_attempt", self.attempts.append)
        return AnalysisOrchestrator(
            providers,
            sleep=self.clock.sleep,
            clock=self.clock,
            **kwargs,
        )

    async def test_fatal_failures_advance_without_retry(self):
        first = ScriptedProvider("openai", [FatalFailure("invalid api key")])
        second = ScriptedProvider("groq", [FatalFailure("model not found")])
        third = ScriptedProvider("together", [success()])

        result = await self._orchestrator([first, second, third]).analyze(_request())

        self.assertEqual(result.ats_score, 78)
        self.assertEqual(len(first.calls), 1)
        self.assertEqual(len(second.calls), 1)
        self.assertEqual(len(third.calls), 1)
        self.assertEqual([a.provider_id for a in self.attempts], ["openai", "groq", "together"])
        self.assertEqual([a.outcome.kind for a in self.attempts], ["fatal_failure", "fatal_failure", "success"])
        self.assertEqual(self.clock.sleeps, [])

    async def test_rate_limit_delay_overrides_backoff(self):
        provider = ScriptedProvider("openai", [RateLimited(5), RateLimited(5), success()])

        result = await self._orchestrator([provider]).analyze(_request())

        self.assertEqual(result.overall_score, 74)
        self.assertEqual(self.clock.sleeps, [5, 5])
        self.assertGreaterEqual(sum(self.clock.sleeps), 10)
        self.assertEqual(len(self.attempts), 3)

    async def test_transient_failures_use_exponential_backoff(self):
        provider = ScriptedProvider("openai", [TransientFailure("503"), TransientFailure("503"), success()])

        await self._orchestrator([provider], base_delay_ms=1000).analyze(_request())

        self.assertEqual(self.clock.sleeps, [1.0, 2.0])

    async def test_all_transient_exhausts_every_provider(self):
        providers = [ScriptedProvider(name, []) for name in ("openai", "groq", "together")]

        with self.assertRaises(AllProvidersExhausted) as ctx:
            await self._orchestrator(providers, max_retries=3).analyze(_request())

        exc = ctx.exception
        self.assertEqual(len(exc.attempts), len(providers) * 3)
        self.assertFalse(exc.deadline_exceeded)
        self.assertTrue(exc.retryable)
        self.assertEqual(exc.stage, "analysis")
        self.assertEqual(self.clock.sleeps, [1.0, 2.0] * 3)
        self.assertEqual(len(exc.to_dict()["attempts"]), 9)

    async def test_no_providers(self):
        with self.assertRaises(AllProvidersExhausted) as ctx:
            await self._orchestrator([]).analyze(_request())
        self.assertEqual(ctx.exception.attempts, ())

    async def test_unparseable_payload_is_retried(self):
        provider = ScriptedProvider("openai", [Success("Sorry, I can't do that."), success()])

        result = await self._orchestrator([provider]).analyze(_request())

        self.assertEqual(result.ats_score, 78)
        self.assertEqual([a.outcome.kind for a in self.attempts], ["transient_failure", "success"])

    async def test_schema_failure_is_terminal(self):
        broken = make_payload()
        del broken["strengths"]
        first = ScriptedProvider("openai", [Success(json.dumps(broken))])
        second = ScriptedProvider("groq", [success()])

        with self.assertRaises(SchemaValidationFailed) as ctx:
            await self._orchestrator([first, second]).analyze(_request())

        self.assertEqual(ctx.exception.provider_id, "openai")
        self.assertEqual(second.calls, [])

    async def test_out_of_range_score_is_clamped(self):
        provider = ScriptedProvider("openai", [success(atsScore=150)])
        result = await self._orchestrator([provider]).analyze(_request())
        self.assertEqual(result.ats_score, 100)

    async def test_default_model_is_used(self):
        provider = ScriptedProvider("groq", [success()], default_model="llama-3.3-70b-versatile")
        await self._orchestrator([provider]).analyze(_request())
        self.assertEqual(provider.calls[0][1], "llama-3.3-70b-versatile")
        self.assertEqual(self.attempts[0].model, "llama-3.3-70b-versatile")

    async def test_call_timeout_is_transient(self):
        async def slow():
            await asyncio.sleep(5)
            return success()

        provider = ScriptedProvider("openai", [slow, success()])

        result = await self._orchestrator([provider], call_timeout_s=0.05).analyze(_request())

        self.assertEqual(result.ats_score, 78)
        self.assertEqual(self.attempts[0].outcome.kind, "transient_failure")
        self.assertIn("timed out", self.attempts[0].outcome.cause)

    async def test_deadline_stops_remaining_providers(self):
        async def slow_failure():
            self.clock.advance(50)
            return TransientFailure("overloaded")

        first = ScriptedProvider("openai", [slow_failure, slow_failure, slow_failure])
        second = ScriptedProvider("groq", [success()])

        with self.assertRaises(AllProvidersExhausted) as ctx:
            await self._orchestrator([first, second], deadline_s=120).analyze(_request())

        self.assertTrue(ctx.exception.deadline_exceeded)
        self.assertEqual(len(ctx.exception.attempts), 3)
        self.assertEqual(second.calls, [])

    async def test_retry_that_would_cross_deadline_moves_to_next_provider(self):
        first = ScriptedProvider("openai", [RateLimited(600)])
        second = ScriptedProvider("groq", [success()])

        result = await self._orchestrator([first, second], deadline_s=120).analyze(_request())

        self.assertEqual(result.ats_score, 78)
        self.assertEqual(self.clock.sleeps, [])
        self.assertEqual(len(first.calls), 1)

    async def test_failing_telemetry_callback_does_not_break_analysis(self):
        def explode(attempt):
            raise RuntimeError("telemetry down")

        provider = ScriptedProvider("openai", [success()])
        result = await self._orchestrator([provider], on_attempt=explode).analyze(_request())
        self.assertEqual(result.ats_score, 78)

    async def test_async_telemetry_listener_is_awaited(self):
        seen = []

        async def record(attempt):
            await asyncio.sleep(0)
            seen.append(attempt.outcome.kind)

        provider = ScriptedProvider("openai", [TransientFailure("503"), success()])
        await self._orchestrator([provider], on_attempt=record).analyze(_request())
        self.assertEqual(seen, ["transient_failure", "success"])

    async def test_cancellation_interrupts_in_flight_call(self):
        provider = HangingProvider()
        orchestrator = AnalysisOrchestrator([provider])
        task = asyncio.create_task(orchestrator.analyze(_request()))
        await provider.started.wait()

        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task
        self.assertTrue(provider.cancelled)

    async def test_cancellation_interrupts_backoff_sleep(self):
        provider = ScriptedProvider("openai", [RateLimited(30), success()])
        orchestrator = AnalysisOrchestrator([provider])
        task = asyncio.create_task(orchestrator.analyze(_request()))
        while not provider.calls:
            await asyncio.sleep(0)

        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await asyncio.wait_for(task, timeout=1)
        self.assertEqual(len(provider.calls), 1)

    def test_invalid_retry_budget(self):
        with self.assertRaises(ValueError):
            AnalysisOrchestrator([], max_retries=0)


if __name__ == "__main__":
    unittest.main()

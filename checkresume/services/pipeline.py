from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from checkresume.analysis.orchestrator import AnalysisOrchestrator
from checkresume.analysis.prompt import AnalysisRequest
from checkresume.analysis.schema import SCHEMA_VERSION, AnalysisType, ResumeAnalysisResult
from checkresume.analytics.aggregator import AnalyticsAggregator
from checkresume.analytics.models import UserAnalytics
from checkresume.core.errors import AnalyticsFailed, PipelineError, RecommendationsFailed
from checkresume.core.scoring import get_scoring_value
from checkresume.extraction.extract import DocumentExtractor
from checkresume.extraction.models import ExtractedText, RawDocument
from checkresume.recommendations.engine import RecommendationEngine
from checkresume.recommendations.models import CourseRecommendation, RecommendationRequest

logger = logging.getLogger(__name__)


@dataclass
class PipelineReport:
    """Outcome of one analysis request.

    ``result`` is always present. Analytics and recommendation failures that
    happen after the analysis succeeded are reported next to it instead of
    failing the request.
    """

    run_id: str
    result: ResumeAnalysisResult
    extracted: ExtractedText
    analytics: UserAnalytics | None = None
    recommendations: list[CourseRecommendation] = field(default_factory=list)
    analytics_error: PipelineError | None = None
    recommendations_error: PipelineError | None = None
    latency_ms: int = 0

    @property
    def partial(self) -> bool:
        return self.analytics_error is not None or self.recommendations_error is not None

    def to_response(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "schema_version": SCHEMA_VERSION,
            "analysis": self.result.to_contract(),
            "document": {
                "source_type": self.extracted.source_type,
                "page_count": self.extracted.page_count,
                "word_count": self.extracted.word_count,
                "sections": [span.name for span in self.extracted.spans],
                "warnings": list(self.extracted.warnings),
            },
            "analytics": self.analytics.model_dump(mode="json") if self.analytics else None,
            "recommendations": [item.model_dump(mode="json") for item in self.recommendations],
            "errors": {
                "analytics": self.analytics_error.to_dict() if self.analytics_error else None,
                "recommendations": self.recommendations_error.to_dict() if self.recommendations_error else None,
            },
            "partial": self.partial,
            "latency_ms": self.latency_ms,
        }


class ResumeAnalysisPipeline:
    """extraction -> orchestration -> (aggregation, recommendation)."""

    def __init__(
        self,
        extractor: DocumentExtractor,
        orchestrator: AnalysisOrchestrator,
        aggregator: AnalyticsAggregator | None = None,
        recommender: RecommendationEngine | None = None,
    ):
        self._extractor = extractor
        self._orchestrator = orchestrator
        self._aggregator = aggregator
        self._recommender = recommender

    async def run(
        self,
        user_id: str | None,
        raw: RawDocument,
        job_role: str,
        analysis_type: AnalysisType = AnalysisType.STANDARD,
        recommend: bool = True,
    ) -> PipelineReport:
        run_id = uuid.uuid4().hex
        user_id = (user_id or "").strip() or None
        started = time.perf_counter()
        logger.info(
            "pipeline_started run_id=%s user=%s file=%s mime=%s bytes=%s type=%s",
            run_id,
            user_id or "-",
            raw.filename,
            raw.mime_type,
            raw.size,
            analysis_type.value,
        )

        # Extraction and analysis errors are terminal and propagate unchanged.
        extracted = await asyncio.to_thread(self._extractor.extract, raw)
        result = await self._orchestrator.analyze(
            AnalysisRequest(text=extracted, job_role=job_role, analysis_type=analysis_type)
        )

        report = PipelineReport(run_id=run_id, result=result, extracted=extracted)

        if self._aggregator is not None and user_id:
            try:
                report.analytics = await self._aggregator.record(user_id, result)
            except PipelineError as exc:
                logger.warning("pipeline_analytics_failed run_id=%s user=%s error=%s", run_id, user_id, exc)
                report.analytics_error = exc
            except Exception as exc:
                logger.exception("pipeline_analytics_crashed run_id=%s user=%s", run_id, user_id)
                report.analytics_error = AnalyticsFailed(f"{type(exc).__name__}: {exc}")

        if recommend and self._recommender is not None:
            try:
                report.recommendations = self._recommender.recommend(
                    RecommendationRequest(
                        user_id=user_id,
                        job_role=job_role or None,
                        analysis=result,
                        limit=int(get_scoring_value("recommendations.default_limit", 10)),
                    )
                )
            except PipelineError as exc:
                logger.info("pipeline_recommendations_skipped run_id=%s reason=%s", run_id, exc)
                report.recommendations_error = exc
            except Exception as exc:
                logger.exception("pipeline_recommendations_crashed run_id=%s", run_id)
                report.recommendations_error = RecommendationsFailed(f"{type(exc).__name__}: {exc}")

        report.latency_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "pipeline_completed run_id=%s ats=%.1f overall=%.1f partial=%s latency_ms=%s",
            run_id,
            result.ats_score,
            result.overall_score,
            report.partial,
            report.latency_ms,
        )
        return report

    async def run_text(
        self,
        user_id: str | None,
        resume_text: str,
        job_role: str,
        analysis_type: AnalysisType = AnalysisType.STANDARD,
        recommend: bool = True,
    ) -> PipelineReport:
        raw = RawDocument(content=resume_text.encode("utf-8"), mime_type="text/plain", filename="resume.txt")
        return await self.run(user_id, raw, job_role, analysis_type, recommend)

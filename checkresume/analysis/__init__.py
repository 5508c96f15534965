from .orchestrator import AnalysisOrchestrator
from .prompt import AnalysisRequest, build_analysis_prompt
from .schema import SCHEMA_VERSION, AnalysisType, ResumeAnalysisResult, normalize_result
from .validation import SchemaCheck, check_payload, decode_payload

__all__ = [
    "SCHEMA_VERSION",
    "AnalysisOrchestrator",
    "AnalysisRequest",
    "AnalysisType",
    "ResumeAnalysisResult",
    "SchemaCheck",
    "build_analysis_prompt",
    "check_payload",
    "decode_payload",
    "normalize_result",
]

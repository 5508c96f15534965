from __future__ import annotations

from dataclasses import dataclass

from checkresume.extraction.models import ExtractedText

from .schema import AnalysisType


@dataclass(frozen=True)
class AnalysisRequest:
    text: ExtractedText
    job_role: str
    analysis_type: AnalysisType = AnalysisType.STANDARD


ANALYSIS_PROMPT = """
Analyze the following resume for ATS (Applicant Tracking System) compatibility and overall quality.

Job Role/Industry: {job_role}
Analysis Type: {analysis_type}
{focus}

Resume Text:
{resume_text}

Detected Sections:
{sections}

Respond with a single JSON object in exactly this shape:
{{
  "atsScore": number (0-100),
  "overallScore": number (0-100),
  "strengths": [string],
  "weaknesses": [string],
  "recommendations": [{{"category": string, "priority": "high" | "medium" | "low", "description": string, "impact": number (0-100)}}],
  "skillsAnalysis": {{"presentSkills": [string], "missingSkills": [string], "skillsMatch": number (0-100), "industryRelevance": number (0-100)}},
  "sectionAnalysis": {{
    "contactInfo": {{"score": number, "feedback": string}},
    "summary": {{"score": number, "feedback": string}},
    "experience": {{"score": number, "feedback": string}},
    "education": {{"score": number, "feedback": string}},
    "skills": {{"score": number, "feedback": string}}
  }},
  "keywordAnalysis": {{"density": number (0-100), "relevantKeywords": [string], "missingKeywords": [string]}},
  "formatting": {{"score": number (0-100), "issues": [string], "suggestions": [string]}},
  "industryBenchmark": {{"industry": string, "averageScore": number, "percentile": number}},
  "estimatedReading": {{"timeSeconds": number, "difficulty": "easy" | "medium" | "hard"}}
}}
""".strip()

_FOCUS = {
    AnalysisType.STANDARD: (
        "Cover ATS compatibility, keyword optimization, content quality, structure and "
        "skills alignment. Give specific, actionable recommendations."
    ),
    AnalysisType.DETAILED: (
        "Give an in-depth review: quantify achievements, critique every section and return "
        "at least five prioritized recommendations."
    ),
    AnalysisType.ATS_ONLY: (
        "Focus only on ATS parsing and keyword coverage. Strengths and weaknesses may be empty."
    ),
}


def _format_sections(text: ExtractedText, max_chars_per_section: int) -> str:
    if not text.spans:
        return "(none detected)"
    lines = []
    for span in text.spans:
        body = span.text
        if len(body) > max_chars_per_section:
            body = body[:max_chars_per_section] + "..."
        lines.append(f"{span.name.upper()}: {body}")
    return "\n\n".join(lines)


def build_analysis_prompt(request: AnalysisRequest, max_chars_per_section: int = 1500) -> str:
    return ANALYSIS_PROMPT.format(
        job_role=request.job_role.strip() or "general",
        analysis_type=request.analysis_type.value,
        focus=_FOCUS[request.analysis_type],
        resume_text=request.text.text,
        sections=_format_sections(request.text, max_chars_per_section),
    )

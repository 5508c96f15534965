"""Best-effort heading detection for resume text.

A line opens a section when it is short, does not read like a sentence and
is made up entirely of known heading phrases, alone or joined ("Skills &
Expertise"). Job titles such as "Research Assistant" are not headings even
though they start with one. Unusual headings stay in the surrounding section.
"""
from __future__ import annotations

import re

from .models import SectionSpan

MAX_HEADING_WORDS = 6

SECTION_HEADINGS: dict[str, tuple[str, ...]] = {
    "contact": (
        "contact",
        "contact information",
        "contact details",
        "contact info",
        "personal information",
        "personal details",
    ),
    "summary": (
        "summary",
        "professional summary",
        "career summary",
        "executive summary",
        "profile",
        "professional profile",
        "objective",
        "career objective",
        "about me",
        "about",
    ),
    "experience": (
        "experience",
        "work experience",
        "professional experience",
        "relevant experience",
        "employment",
        "employment history",
        "work history",
        "career history",
    ),
    "education": (
        "education",
        "academic background",
        "academic history",
        "qualifications",
        "academic qualifications",
        "education and training",
    ),
    "skills": (
        "skills",
        "technical skills",
        "core skills",
        "key skills",
        "core competencies",
        "competencies",
        "areas of expertise",
        "expertise",
        "technologies",
        "tech stack",
    ),
    "projects": ("projects", "personal projects", "key projects", "portfolio"),
    "certifications": (
        "certifications",
        "certification",
        "certificates",
        "licenses",
        "licenses and certifications",
    ),
    "achievements": ("achievements", "accomplishments", "awards", "honors", "honors and awards"),
    "languages": ("languages",),
    "volunteer": ("volunteer", "volunteering", "volunteer experience"),
    "publications": ("publications", "research"),
    "interests": ("interests", "hobbies", "hobbies and interests"),
    "references": ("references",),
}

_PHRASE_TO_SECTION = {
    phrase: name for name, phrases in SECTION_HEADINGS.items() for phrase in phrases
}
# "Skills & Expertise", "Projects / Portfolio": every part must be a heading phrase.
_HEADING_JOINER_RE = re.compile(r"\s*(?:\band\b|[/|,+])\s*")
_LEADING_NOISE_RE = re.compile(r"^[^0-9a-z]+")
_TRAILING_NOISE_RE = re.compile(r"[^0-9a-z]+$")
_SENTENCE_END = (".", ",", ";", "!", "?")


def _normalize_heading(line: str) -> str:
    lowered = line.strip().lower().replace("&", " and ")
    lowered = _TRAILING_NOISE_RE.sub("", _LEADING_NOISE_RE.sub("", lowered))
    return re.sub(r"\s+", " ", lowered).strip()


def classify_heading(line: str) -> str | None:
    """Return the logical section name when ``line`` looks like a heading."""
    candidate = line.strip()
    if not candidate:
        return None
    if candidate.endswith(":"):
        candidate = candidate[:-1].rstrip()
    if ":" in candidate or candidate.endswith(_SENTENCE_END):
        return None
    if len(candidate.split()) > MAX_HEADING_WORDS:
        return None

    normalized = _normalize_heading(candidate)
    if normalized in _PHRASE_TO_SECTION:
        return _PHRASE_TO_SECTION[normalized]
    parts = [part for part in _HEADING_JOINER_RE.split(normalized) if part]
    if len(parts) < 2 or any(part not in _PHRASE_TO_SECTION for part in parts):
        return None
    return _PHRASE_TO_SECTION[parts[0]]


def segment_sections(text: str) -> tuple[str, list[SectionSpan]]:
    """Split normalized text into preamble and ordered section spans."""
    boundaries: list[tuple[str, str, int, int]] = []
    offset = 0
    for line in text.splitlines(keepends=True):
        name = classify_heading(line)
        if name is not None:
            boundaries.append((name, line.strip(), offset, offset + len(line)))
        offset += len(line)

    if not boundaries:
        return text.strip(), []

    preamble = text[: boundaries[0][2]].strip()
    spans: list[SectionSpan] = []
    for index, (name, heading, _, body_start) in enumerate(boundaries):
        body_end = boundaries[index + 1][2] if index + 1 < len(boundaries) else len(text)
        spans.append(
            SectionSpan(
                name=name,
                heading=heading,
                start=body_start,
                end=body_end,
                text=text[body_start:body_end].strip(),
            )
        )
    return preamble, spans


def sections_by_name(spans: list[SectionSpan]) -> dict[str, str]:
    sections: dict[str, str] = {}
    for span in spans:
        sections.setdefault(span.name, span.text)
    return sections

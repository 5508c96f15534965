from .extract import DEFAULT_MIN_WORDS, SUPPORTED_MIME_TYPES, DocumentExtractor, normalize_whitespace
from .models import ExtractedText, RawDocument, SectionSpan
from .sections import classify_heading, segment_sections

__all__ = [
    "DEFAULT_MIN_WORDS",
    "SUPPORTED_MIME_TYPES",
    "DocumentExtractor",
    "ExtractedText",
    "RawDocument",
    "SectionSpan",
    "classify_heading",
    "normalize_whitespace",
    "segment_sections",
]

from __future__ import annotations

import logging
import mimetypes
import re
import unicodedata
from io import BytesIO

from checkresume.core.errors import CorruptDocument, EmptyContent, UnsupportedFormat

from .models import ExtractedText, RawDocument
from .sections import sections_by_name, segment_sections

logger = logging.getLogger(__name__)

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

SUPPORTED_MIME_TYPES = {
    "application/pdf": "pdf",
    DOCX_MIME: "docx",
    "text/plain": "txt",
    "text/markdown": "txt",
}

_GENERIC_MIME_TYPES = {"", "application/octet-stream", "binary/octet-stream"}
_TEXT_ENCODINGS = ("utf-8-sig", "cp1252")
_HORIZONTAL_WS_RE = re.compile(r"[ \t\f\v\u00a0\u2000-\u200b\u3000]+")

DEFAULT_MIN_WORDS = 50


def normalize_whitespace(text: str) -> str:
    """NFC-normalize, trim each line and keep at most one blank line between blocks."""
    if not text:
        return ""
    text = unicodedata.normalize("NFC", text).replace("\r\n", "\n").replace("\r", "\n")
    lines: list[str] = []
    previous_blank = True
    for raw_line in text.split("\n"):
        line = _HORIZONTAL_WS_RE.sub(" ", raw_line).strip()
        if not line:
            if not previous_blank:
                lines.append("")
            previous_blank = True
            continue
        lines.append(line)
        previous_blank = False
    return "\n".join(lines).strip()


def _resolve_source_type(raw: RawDocument) -> str:
    mime = (raw.mime_type or "").split(";", 1)[0].strip().lower()
    if mime in _GENERIC_MIME_TYPES:
        guessed, _ = mimetypes.guess_type(raw.filename or "")
        if raw.filename.lower().endswith(".docx"):
            guessed = DOCX_MIME
        mime = (guessed or mime).lower()
    source_type = SUPPORTED_MIME_TYPES.get(mime)
    if source_type is None:
        raise UnsupportedFormat(raw.mime_type or "unknown", sorted(SUPPORTED_MIME_TYPES))
    return source_type


def _pdf_pages(raw: RawDocument, warnings: list[str]) -> list[str]:
    from pypdf import PdfReader

    try:
        reader = PdfReader(BytesIO(raw.content))
        if reader.is_encrypted and not reader.decrypt(""):
            raise CorruptDocument(raw.filename, "PDF is password protected")
        page_count = len(reader.pages)
    except CorruptDocument:
        raise
    except Exception as exc:
        raise CorruptDocument(raw.filename, f"PDF parsing failed: {exc}") from exc

    if page_count == 0:
        raise CorruptDocument(raw.filename, "PDF has no pages")

    pages: list[str] = []
    for index, page in enumerate(reader.pages, start=1):
        try:
            page_text = page.extract_text() or ""
        except Exception as exc:  # noqa: BLE001 - one bad page should not sink the document
            warnings.append(f"Page {index}: plain extraction failed: {exc}")
            page_text = ""
        if not page_text.strip():
            try:
                page_text = page.extract_text(extraction_mode="layout") or ""
            except Exception as exc:  # noqa: BLE001
                warnings.append(f"Page {index}: layout extraction failed: {exc}")
                page_text = ""
        if not page_text.strip():
            warnings.append(f"Page {index}: no extractable text.")
        pages.append(page_text)
    return pages


def _docx_pages(raw: RawDocument, warnings: list[str]) -> list[str]:
    from docx import Document
    from docx.table import Table

    try:
        document = Document(BytesIO(raw.content))
        blocks = list(document.iter_inner_content())
    except Exception as exc:
        raise CorruptDocument(raw.filename, f"DOCX parsing failed: {exc}") from exc

    pages: list[list[str]] = [[]]
    for block in blocks:
        if isinstance(block, Table):
            for row in block.rows:
                cells: list[str] = []
                for cell in row.cells:
                    cell_text = cell.text.strip()
                    if cell_text and cell_text not in cells:
                        cells.append(cell_text)
                if cells:
                    pages[-1].append(" | ".join(cells))
            continue
        text = block.text.strip()
        if text:
            pages[-1].append(text)
        for _ in block.rendered_page_breaks:
            pages.append([])

    if not any(pages):
        warnings.append("No extractable text found in DOCX.")
    return ["\n".join(lines) for lines in pages]


def _text_pages(raw: RawDocument, warnings: list[str]) -> list[str]:
    if b"\x00" in raw.content:
        raise CorruptDocument(raw.filename, "text document contains binary data")
    for encoding in _TEXT_ENCODINGS:
        try:
            decoded = raw.content.decode(encoding)
            break
        except UnicodeDecodeError:
            continue
    else:
        decoded = raw.content.decode("latin-1")
        warnings.append("Text decoded as latin-1; some characters may be wrong.")
    return decoded.split("\f")


_PAGE_READERS = {
    "pdf": _pdf_pages,
    "docx": _docx_pages,
    "txt": _text_pages,
}


class DocumentExtractor:
    """Turns uploaded resume bytes into normalized text plus sections."""

    def __init__(self, min_words: int = DEFAULT_MIN_WORDS):
        self._min_words = max(0, int(min_words))

    @property
    def min_words(self) -> int:
        return self._min_words

    def extract(self, raw: RawDocument) -> ExtractedText:
        source_type = _resolve_source_type(raw)
        warnings: list[str] = []
        pages = _PAGE_READERS[source_type](raw, warnings)
        if not pages:
            raise CorruptDocument(raw.filename, "parser produced no pages")

        text = normalize_whitespace("\n".join(pages))
        word_count = len(text.split())
        if word_count < self._min_words:
            raise EmptyContent(word_count, self._min_words)

        preamble, spans = segment_sections(text)
        extracted = ExtractedText(
            source_type=source_type,
            text=text,
            page_count=len(pages),
            word_count=word_count,
            char_count=len(text),
            preamble=preamble,
            spans=spans,
            sections=sections_by_name(spans),
            warnings=warnings,
        )
        logger.info(
            "document_extracted file=%s type=%s pages=%s words=%s sections=%s",
            raw.filename,
            source_type,
            extracted.page_count,
            word_count,
            ",".join(span.name for span in spans) or "-",
        )
        return extracted

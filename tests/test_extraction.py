import sys
import unittest
from io import BytesIO
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
TESTS_DIR = Path(__file__).resolve().parent
for path in (PROJECT_ROOT, TESTS_DIR):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from docx import Document  # noqa: E402
from pypdf import PdfWriter  # noqa: E402

from checkresume.core.errors import CorruptDocument, EmptyContent, UnsupportedFormat  # noqa: E402
from checkresume.extraction import (  # noqa: E402
    DocumentExtractor,
    RawDocument,
    classify_heading,
    normalize_whitespace,
    segment_sections,
)
from checkresume.extraction.extract import DOCX_MIME  # noqa: E402
from fakes import RESUME_TEXT  # noqa: E402


def _text_doc(text: str, mime_type: str = "text/plain", filename: str = "resume.txt") -> RawDocument:
    return RawDocument(content=text.encode("utf-8"), mime_type=mime_type, filename=filename)


def _docx_bytes() -> bytes:
    document = Document()
    for line in RESUME_TEXT.split("\n\n")[0:2]:
        document.add_paragraph(line)
    document.add_paragraph("Experience")
    document.add_paragraph(
        "Senior Software Engineer at Acme Payments where I designed a settlement service "
        "in Python and PostgreSQL handling two million transactions per day."
    )
    document.add_paragraph("Education")
    document.add_paragraph("BSc Computer Science, Technical University of Munich, 2015")
    document.add_paragraph("Skills")
    table = document.add_table(rows=2, cols=2)
    table.cell(0, 0).text = "Backend"
    table.cell(0, 1).text = "Python, Go"
    table.cell(1, 0).text = "Cloud"
    table.cell(1, 1).text = "AWS, Kubernetes"
    buffer = BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def _blank_pdf_bytes() -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=612, height=792)
    buffer = BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


class NormalizeWhitespaceTests(unittest.TestCase):
    def test_collapses_horizontal_space_and_blank_runs(self):
        raw = "Jane \t Doe  \r\n\r\n\r\n\n  Berlin  Germany  \n"
        self.assertEqual(normalize_whitespace(raw), "Jane Doe\n\nBerlin Germany")

    def test_nfc_normalization(self):
        decomposed = "Jose\u0301"
        self.assertEqual(normalize_whitespace(decomposed), "Jos\u00e9")

    def test_empty_input(self):
        self.assertEqual(normalize_whitespace(""), "")


class HeadingClassificationTests(unittest.TestCase):
    def test_synonyms_map_to_logical_sections(self):
        self.assertEqual(classify_heading("Work Experience"), "experience")
        self.assertEqual(classify_heading("EMPLOYMENT HISTORY"), "experience")
        self.assertEqual(classify_heading("Professional Summary"), "summary")
        self.assertEqual(classify_heading("Skills & Expertise"), "skills")
        self.assertEqual(classify_heading("Licenses and Certifications"), "certifications")

    def test_joined_and_decorated_headings(self):
        self.assertEqual(classify_heading("Projects / Portfolio"), "projects")
        self.assertEqual(classify_heading("## Experience"), "experience")
        self.assertEqual(classify_heading("EDUCATION -"), "education")

    def test_job_titles_starting_with_heading_words_are_not_headings(self):
        self.assertIsNone(classify_heading("Research Assistant at MIT"))
        self.assertIsNone(classify_heading("Portfolio Manager"))
        self.assertIsNone(classify_heading("Skills Development Lead"))
        self.assertIsNone(classify_heading("Skills and Coffee"))

    def test_job_title_stays_inside_experience(self):
        text = "Jane Doe\nExperience\nResearch Assistant at MIT\nBuilt lab tooling\nEducation\nBSc Physics"
        _, spans = segment_sections(text)
        self.assertEqual([span.name for span in spans], ["experience", "education"])
        self.assertIn("Research Assistant at MIT", spans[0].text)

    def test_trailing_label_colon_is_tolerated(self):
        self.assertEqual(classify_heading("Education:"), "education")

    def test_sentences_and_inline_labels_are_not_headings(self):
        self.assertIsNone(classify_heading("Experience: 8 years"))
        self.assertIsNone(classify_heading("Education was funded by a scholarship."))
        self.assertIsNone(classify_heading("Skills gained while leading a team of twelve engineers"))
        self.assertIsNone(classify_heading("Senior Software Engineer"))
        self.assertIsNone(classify_heading(""))

    def test_segmenter_handles_empty_text(self):
        self.assertEqual(segment_sections(""), ("", []))

    def test_text_without_headings_is_all_preamble(self):
        preamble, spans = segment_sections("Jane Doe\nBackend engineer")
        self.assertEqual(preamble, "Jane Doe\nBackend engineer")
        self.assertEqual(spans, [])


class DocumentExtractorTests(unittest.TestCase):
    def setUp(self):
        self.extractor = DocumentExtractor(min_words=50)

    def test_plain_text_sections_are_ordered(self):
        extracted = self.extractor.extract(_text_doc(RESUME_TEXT))

        self.assertEqual(extracted.source_type, "txt")
        self.assertTrue(extracted.text)
        self.assertGreaterEqual(extracted.word_count, 50)
        self.assertEqual([span.name for span in extracted.spans], ["summary", "experience", "education", "skills"])
        starts = [span.start for span in extracted.spans]
        self.assertEqual(starts, sorted(set(starts)))
        for previous, current in zip(extracted.spans, extracted.spans[1:]):
            self.assertLessEqual(previous.end, current.start)
        self.assertIn("Jane Doe", extracted.preamble)
        self.assertIn("Acme Payments", extracted.sections["experience"])
        self.assertNotIn("Education", extracted.sections["experience"])
        self.assertEqual(extracted.char_count, len(extracted.text))

    def test_span_offsets_point_into_text(self):
        extracted = self.extractor.extract(_text_doc(RESUME_TEXT))
        for span in extracted.spans:
            self.assertEqual(extracted.text[span.start : span.end].strip(), span.text)

    def test_markdown_is_read_as_text(self):
        extracted = self.extractor.extract(_text_doc(RESUME_TEXT, "text/markdown", "resume.md"))
        self.assertEqual(extracted.source_type, "txt")

    def test_generic_mime_falls_back_to_filename(self):
        extracted = self.extractor.extract(_text_doc(RESUME_TEXT, "application/octet-stream", "resume.txt"))
        self.assertEqual(extracted.source_type, "txt")

    def test_form_feed_splits_pages(self):
        extracted = self.extractor.extract(_text_doc(RESUME_TEXT.replace("Education", "\fEducation", 1)))
        self.assertEqual(extracted.page_count, 2)

    def test_cp1252_text_is_decoded(self):
        raw = RawDocument(
            content=(RESUME_TEXT + "\nCafé owner").encode("cp1252"),
            mime_type="text/plain",
            filename="resume.txt",
        )
        extracted = self.extractor.extract(raw)
        self.assertIn("Café", extracted.text)

    def test_too_few_words_is_empty_content(self):
        with self.assertRaises(EmptyContent) as ctx:
            self.extractor.extract(_text_doc("Jane Doe\nEngineer"))
        self.assertEqual(ctx.exception.word_count, 3)
        self.assertEqual(ctx.exception.min_words, 50)
        self.assertEqual(ctx.exception.stage, "extraction")
        self.assertFalse(ctx.exception.retryable)

    def test_unsupported_type(self):
        raw = RawDocument(content=b"\x89PNG", mime_type="image/png", filename="photo.png")
        with self.assertRaises(UnsupportedFormat) as ctx:
            self.extractor.extract(raw)
        self.assertIn("application/pdf", ctx.exception.supported)

    def test_legacy_word_documents_are_unsupported(self):
        raw = RawDocument(content=b"\xd0\xcf\x11\xe0", mime_type="application/msword", filename="resume.doc")
        with self.assertRaises(UnsupportedFormat):
            self.extractor.extract(raw)

    def test_binary_text_is_corrupt(self):
        raw = RawDocument(content=b"Jane\x00Doe", mime_type="text/plain", filename="resume.txt")
        with self.assertRaises(CorruptDocument):
            self.extractor.extract(raw)

    def test_docx_paragraphs_and_tables(self):
        raw = RawDocument(content=_docx_bytes(), mime_type=DOCX_MIME, filename="resume.docx")
        extracted = self.extractor.extract(raw)

        self.assertEqual(extracted.source_type, "docx")
        self.assertIn("Backend | Python, Go", extracted.text)
        self.assertEqual([span.name for span in extracted.spans], ["summary", "experience", "education", "skills"])
        self.assertIn("AWS, Kubernetes", extracted.sections["skills"])

    def test_docx_detected_from_filename(self):
        raw = RawDocument(content=_docx_bytes(), mime_type="application/octet-stream", filename="resume.docx")
        self.assertEqual(self.extractor.extract(raw).source_type, "docx")

    def test_broken_docx_is_corrupt(self):
        raw = RawDocument(content=b"not a zip archive", mime_type=DOCX_MIME, filename="resume.docx")
        with self.assertRaises(CorruptDocument):
            self.extractor.extract(raw)

    def test_broken_pdf_is_corrupt(self):
        raw = RawDocument(content=b"%PDF-1.4 garbage", mime_type="application/pdf", filename="resume.pdf")
        with self.assertRaises(CorruptDocument):
            self.extractor.extract(raw)

    def test_scanned_pdf_without_text_is_empty(self):
        raw = RawDocument(content=_blank_pdf_bytes(), mime_type="application/pdf", filename="scan.pdf")
        with self.assertRaises(EmptyContent):
            self.extractor.extract(raw)

    def test_raw_document_size_defaults_to_content_length(self):
        self.assertEqual(_text_doc("abc").size, 3)


if __name__ == "__main__":
    unittest.main()

import io

import pytest

from resume_parser import parser
from schemas.errors import ExtractionError

GOOD_TEXT = "Alex Applicant backend engineer building reliable distributed services " * 3


def test_read_source_bytes_accepts_bytes_paths_and_files(tmp_path):
    path = tmp_path / "resume.pdf"
    path.write_bytes(b"%PDF-1.4")
    assert parser.read_source_bytes(b"%PDF") == b"%PDF"
    assert parser.read_source_bytes(str(path)) == b"%PDF-1.4"
    assert parser.read_source_bytes(io.BytesIO(b"data")) == b"data"


def test_read_source_bytes_rejects_missing_input(tmp_path):
    with pytest.raises(ExtractionError):
        parser.read_source_bytes(None)
    with pytest.raises(ExtractionError):
        parser.read_source_bytes(str(tmp_path / "missing.pdf"))


def test_missing_image_is_not_reported_as_pdf():
    assert parser.read_image_bytes(b"\x89PNG") == b"\x89PNG"
    with pytest.raises(ExtractionError, match="No image uploaded."):
        parser.read_image_bytes(None)


def test_pdfplumber_result_is_preferred(monkeypatch):
    monkeypatch.setattr(parser, "_extract_with_pdfplumber", lambda data: GOOD_TEXT)
    monkeypatch.setattr(parser, "_extract_with_pymupdf", lambda data: "unused")
    result = parser.parse_resume_pdf(b"%PDF")
    assert result.method == "pdfplumber"
    assert result.raw_text == GOOD_TEXT


def test_low_quality_text_falls_back_to_pymupdf(monkeypatch):
    monkeypatch.setattr(parser, "_extract_with_pdfplumber", lambda data: "x x x")
    monkeypatch.setattr(parser, "_extract_with_pymupdf", lambda data: GOOD_TEXT)
    assert parser.parse_resume_pdf(b"%PDF").method == "pymupdf"


def test_no_text_raises_extraction_error(monkeypatch):
    monkeypatch.setattr(parser, "_extract_with_pdfplumber", lambda data: None)
    monkeypatch.setattr(parser, "_extract_with_pymupdf", lambda data: None)
    with pytest.raises(ExtractionError):
        parser.extract_text(b"%PDF")

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from schemas.errors import ExtractionError

logger = logging.getLogger(__name__)

SourceDocument = Union[str, Path, bytes, bytearray]


@dataclass
class ResumeParseResult:
    raw_text: str
    method: str
    metadata: Optional[dict] = None


def _read_upload(source, kind: str) -> bytes:
    if source is None:
        raise ExtractionError(f"No {kind} uploaded.")
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    if hasattr(source, "read"):
        return source.read()
    if isinstance(source, (str, Path)) and Path(source).exists():
        return Path(source).read_bytes()
    raise ExtractionError(f"Unsupported {kind} input; please re-upload the file.")


def read_source_bytes(source) -> bytes:
    """Support raw bytes, file objects and filepath strings."""
    return _read_upload(source, "PDF")


def read_image_bytes(source) -> bytes:
    return _read_upload(source, "image")


def _extract_with_pdfplumber(data: bytes) -> Optional[str]:
    try:
        import pdfplumber
    except Exception as exc:  # pragma: no cover - import guard
        logger.info("pdfplumber unavailable: %s", exc)
        return None

    try:
        text_chunks = []
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            for page in pdf.pages:
                text_chunks.append(page.extract_text() or "")
        text = "\n".join(text_chunks).strip()
        return text or None
    except Exception as exc:  # pragma: no cover - safety
        logger.warning("pdfplumber failed, will fallback: %s", exc)
        return None


def _extract_with_pymupdf(data: bytes) -> Optional[str]:
    try:
        import fitz  # type: ignore
    except Exception as exc:  # pragma: no cover - import guard
        logger.info("pymupdf unavailable: %s", exc)
        return None

    try:
        with fitz.open(stream=data, filetype="pdf") as doc:
            text_chunks = [page.get_text(sort=True) for page in doc]
        text = "\n".join(text_chunks).strip()
        return text or None
    except Exception as exc:  # pragma: no cover - safety
        logger.warning("pymupdf failed: %s", exc)
        return None


def parse_resume_pdf(source: SourceDocument) -> ResumeParseResult:
    """
    Extract resume text preferring pdfplumber first, then falling back to pymupdf.

    Raises ExtractionError when the source is unreadable or no extractor
    produces text.
    """
    data = read_source_bytes(source)
    text = _extract_with_pdfplumber(data)
    method_used = "pdfplumber"

    if not text or _is_low_quality(text):
        fallback_text = _extract_with_pymupdf(data)
        if fallback_text:
            text = fallback_text
            method_used = "pymupdf"

    if not text:
        raise ExtractionError("Unable to extract text from PDF with available extractors")

    metadata = {"path": str(source)} if isinstance(source, (str, Path)) else None
    return ResumeParseResult(raw_text=text, method=method_used, metadata=metadata)


def extract_text(source: SourceDocument) -> str:
    result = parse_resume_pdf(source)
    logger.info("Extracted %s characters using %s", len(result.raw_text), result.method)
    return result.raw_text


def _is_low_quality(text: str) -> bool:
    # Basic heuristic: very few unique words implies extraction failed.
    words = [w for w in text.split() if w.isalpha()]
    unique_ratio = len(set(words)) / max(len(words), 1)
    return unique_ratio < 0.15 or len(text) < 100

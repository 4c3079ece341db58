"""
Text Extractor
==============
Turns source documents into the plain text the parsers consume, using
PyMuPDF (fitz) for PDFs and mammoth for Word (.docx) files.

PDF text is rebuilt span by span: a new line starts whenever the baseline
moves by more than ``line_tolerance`` points, and pages are separated by a
blank line. No layout analysis beyond that is attempted.
"""

from __future__ import annotations

import io
import logging
import os
import zipfile
from pathlib import Path
from typing import Optional

import fitz  # PyMuPDF
import mammoth

from .errors import ExtractionError

logger = logging.getLogger(__name__)

PDF_SUFFIXES = {".pdf"}
DOCX_SUFFIXES = {".docx"}
TEXT_SUFFIXES = {".txt", ".text", ".md"}
DEFAULT_LINE_TOLERANCE = 5.0


class TextExtractor:
    """
    Handles document ingestion and text reconstruction.
    """

    def __init__(self, line_tolerance: float = DEFAULT_LINE_TOLERANCE):
        self.line_tolerance = line_tolerance

    def extract(self, path: str) -> str:
        """
        Extract UTF-8 text with reconstructed line breaks.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            ExtractionError: If the file type is unsupported or unreadable.
        """
        if not os.path.exists(path):
            raise FileNotFoundError(f"Document not found: {path}")

        suffix = Path(path).suffix.lower()
        if suffix in PDF_SUFFIXES:
            return self.extract_pdf(path)
        if suffix in DOCX_SUFFIXES:
            with open(path, "rb") as f:
                return self.extract_docx(f, path)
        if suffix in TEXT_SUFFIXES:
            return self._read_text(path)
        raise ExtractionError(f"Unsupported document type: {suffix or path}")

    def extract_pdf(self, pdf_path: str) -> str:
        try:
            doc = fitz.open(pdf_path)
        except RuntimeError as e:
            raise ExtractionError(f"Failed to parse PDF file: {e}") from e

        with doc:
            logger.info(f"Extracting text from {pdf_path} ({doc.page_count} pages)")
            pages = [self._page_text(page) for page in doc]

        return "".join(page + "\n\n" for page in pages)

    def extract_bytes(self, data: bytes, filename: str) -> str:
        """Extract text from an in-memory upload."""
        suffix = Path(filename).suffix.lower()
        if suffix in TEXT_SUFFIXES:
            return self._decode(data, filename)
        if suffix in DOCX_SUFFIXES:
            return self.extract_docx(io.BytesIO(data), filename)
        if suffix not in PDF_SUFFIXES:
            raise ExtractionError(f"Unsupported document type: {suffix or filename}")

        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except RuntimeError as e:
            raise ExtractionError(f"Failed to parse PDF file: {e}") from e

        with doc:
            pages = [self._page_text(page) for page in doc]
        return "".join(page + "\n\n" for page in pages)

    def extract_docx(self, fileobj, name: str) -> str:
        """Raw paragraph text of a Word document; formatting is dropped."""
        try:
            result = mammoth.extract_raw_text(fileobj)
        except (zipfile.BadZipFile, KeyError, OSError) as e:
            raise ExtractionError(f"Failed to parse Word file {name}: {e}") from e

        for message in result.messages:
            logger.debug(f"{name}: {message}")
        return result.value.replace("\r\n", "\n").replace("\r", "\n")

    def _page_text(self, page) -> str:
        """Rebuild the lines of one page from its spans."""
        lines: list[str] = []
        current = ""
        last_y: Optional[float] = None

        page_dict = page.get_text("dict", flags=fitz.TEXT_PRESERVE_WHITESPACE)
        for block in page_dict.get("blocks", []):
            if block.get("type") != 0:
                continue
            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    text = span.get("text", "")
                    y = span.get("origin", (0.0, 0.0))[1]

                    if last_y is not None and abs(y - last_y) > self.line_tolerance:
                        if current.strip():
                            lines.append(current.strip())
                        current = text
                    else:
                        if current and not current.endswith(" ") and not text.startswith(" "):
                            current += " "
                        current += text
                    last_y = y

        if current.strip():
            lines.append(current.strip())

        return "\n".join(lines)

    def _read_text(self, path: str) -> str:
        with open(path, "rb") as f:
            return self._decode(f.read(), path)

    def _decode(self, data: bytes, name: str) -> str:
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ExtractionError(f"{name} is not valid UTF-8: {e}") from e
        return text.replace("\r\n", "\n").replace("\r", "\n")

"""
Extraction Providers  —  PDF Text Layer + Image OCR
════════════════════════════════════════════════════

Design: Strategy
────────────────
Raw text/pixel extraction from binaries lives behind two small interfaces
so the page extractor never touches a parsing library directly:

  BaseTextExtractor   PDF bytes → {page_number: text} for pages 1..page_count
    └── PyMuPDFExtractor   native PDF text layer via PyMuPDF (fitz)

  BaseOcrProvider     page image → text
    (no implementation ships; image documents are stored as images only
     unless an OCR provider is configured and OCR is enabled)

Both extractors run their blocking work in the default thread executor so
the event loop keeps servicing other coroutines while a large PDF parses.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

from docflow.models.documents import BinaryContent

logger = logging.getLogger(__name__)

# Placeholder stored for pages whose text layer could not be read
PAGE_EXTRACTION_ERROR_TEMPLATE = "Error extracting text from page {page_number}"


# ---------------------------------------------------------------------------
# Shared data types
# ---------------------------------------------------------------------------

@dataclass
class PageText:
    """
    Text extracted from a single page.

    page_number       : 1-based page index
    text              : raw extracted text (may be empty for image-only pages)
    extraction_method : "pymupdf" | "error"
    """
    page_number:       int
    text:              str
    extraction_method: str = "unknown"


# ---------------------------------------------------------------------------
# Abstract strategies
# ---------------------------------------------------------------------------

class BaseTextExtractor(ABC):
    """
    Abstract base for PDF text extraction strategies.

    Implementations accept raw PDF bytes (never a file path) and return one
    entry per page of the source, keyed by 1-based page number. Per-page
    failures are reported in-band with the error placeholder text; failing to
    open the document at all propagates to the caller.
    """

    @property
    @abstractmethod
    def strategy_name(self) -> str:
        """Unique name for logging."""

    @abstractmethod
    async def extract(self, pdf_bytes: bytes) -> dict[int, str]:
        """Return {page_number: text} for every page of the PDF."""


class BaseOcrProvider(ABC):
    """Turns a page image into text."""

    @abstractmethod
    async def recognize(self, image: BinaryContent) -> str:
        """Return the text recognised in ``image``."""


# ---------------------------------------------------------------------------
# Strategy: PyMuPDF (fitz)
# ---------------------------------------------------------------------------

class PyMuPDFExtractor(BaseTextExtractor):
    """
    Reads the native PDF text layer with PyMuPDF.

    Limitations:
      - Cannot OCR image-only pages (returns empty string for those)
      - Encrypted PDFs fail to open
    """

    @property
    def strategy_name(self) -> str:
        return "pymupdf"

    async def extract(self, pdf_bytes: bytes) -> dict[int, str]:
        loop = asyncio.get_running_loop()
        t0 = time.monotonic()

        pages = await loop.run_in_executor(None, self._extract_sync, pdf_bytes)

        logger.info(
            "PyMuPDF | pages=%d total_chars=%d elapsed_ms=%.0f",
            len(pages), sum(len(p.text) for p in pages),
            (time.monotonic() - t0) * 1000,
        )
        return {p.page_number: p.text for p in pages}

    def _extract_sync(self, pdf_bytes: bytes) -> list[PageText]:
        """Blocking extraction — runs in thread executor."""
        import fitz  # PyMuPDF; imported here to avoid module-level import cost

        pages: list[PageText] = []

        with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
            for page_num, page in enumerate(doc, start=1):
                try:
                    raw = page.get_text("text") or ""
                    pages.append(PageText(page_num, raw, self.strategy_name))
                except Exception as exc:
                    logger.warning("PyMuPDF | page=%d extraction failed: %s", page_num, exc)
                    pages.append(PageText(
                        page_num,
                        PAGE_EXTRACTION_ERROR_TEMPLATE.format(page_number=page_num),
                        "error",
                    ))

        return pages

"""
Page Extractor  —  File bytes → Pages
═════════════════════════════════════

One materialization procedure per document family:

  PDF          raw text for every page 1..page_count (only where unset)
  Image        single page holding the bytes as image content
  CSV          single page whose raw text is "<header>: <value>" lines,
               one blank line after each row
  Spreadsheet  one page per worksheet, only when the document has no pages

All procedures are idempotent: re-running them never duplicates pages and
never overwrites raw text that is already set (CSV text is the exception:
it is always rebuilt from the file).

The PDF text layer and workbook parsing are delegated to the providers in
ocr.py and spreadsheets.py; CSV and image handling are in-process.
"""

from __future__ import annotations

import csv
import io
import logging

from docflow.core.errors import MissingFileContentError
from docflow.models.documents import BinaryContent, Document, Page
from docflow.processing.ocr import BaseTextExtractor, PyMuPDFExtractor
from docflow.processing.spreadsheets import WorkbookReader

logger = logging.getLogger(__name__)


def strip_nul(text: str) -> str:
    return text.replace("\0", "")


def require_bytes(document: Document) -> bytes:
    """Return the document's file bytes or raise MissingFileContentError."""
    if document.file is None or document.file.data is None:
        raise MissingFileContentError(f"Document file is null: {document.name!r}")
    return document.file.data


def csv_to_text(data: bytes) -> str:
    """
    Re-serialize CSV content as ``"<header>: <value>"`` lines.

    The first row is the header, written as-is; blank or missing header
    cells are named positionally (Column1, Column2, ...). Cells that are
    blank after trimming are omitted. Every row is followed by one blank
    line. Blank lines in the input are skipped.
    """
    reader = csv.reader(io.StringIO(data.decode("utf-8-sig", errors="replace")))
    rows = (row for row in reader if row)

    header = next(rows, None)
    if header is None:
        return ""

    lines: list[str] = []
    for row in rows:
        for idx, value in enumerate(row):
            if not value.strip():
                continue
            name = header[idx] if idx < len(header) else ""
            if not name.strip():
                name = f"Column{idx + 1}"
            lines.append(f"{name}: {value}\n")
        lines.append("\n")

    return "".join(lines)


class PageExtractor:
    """
    Materializes pages on a Document from its File.

    Constructor args:
        pdf_extractor   : PDF text-layer strategy (default PyMuPDFExtractor)
        workbook_reader : spreadsheet reader (default WorkbookReader)
    """

    def __init__(
        self,
        pdf_extractor:   BaseTextExtractor | None = None,
        workbook_reader: WorkbookReader | None = None,
    ) -> None:
        self._pdf_extractor   = pdf_extractor or PyMuPDFExtractor()
        self._workbook_reader = workbook_reader or WorkbookReader()

    async def extract_pdf_pages(self, document: Document) -> None:
        pages_texts = await self._pdf_extractor.extract(require_bytes(document))
        filled = 0
        for page_number, page_text in sorted(pages_texts.items()):
            page = document.get_or_create_page(page_number)
            if page.raw_text is None:
                page.raw_text = strip_nul(page_text)
                filled += 1

        logger.info(
            "PDF pages | document=%s pages=%d filled=%d",
            document.name, len(pages_texts), filled,
        )

    def attach_image_page(self, document: Document) -> Page:
        page = document.get_or_create_page(1)
        if page.image is None:
            page.image = BinaryContent(require_bytes(document), document.media_type)
        return page

    def extract_csv_page(self, document: Document) -> Page:
        data = require_bytes(document)
        page = document.get_or_create_page(1)
        page.raw_text = csv_to_text(data)
        logger.info("CSV page | document=%s chars=%d", document.name, len(page.raw_text))
        return page

    async def extract_spreadsheet_pages(self, document: Document) -> None:
        if document.pages:
            logger.info("Document %s already has pages.", document.name)
            return

        for _sheet_name, text in await self._workbook_reader.read_sheets(require_bytes(document)):
            page = document.get_or_create_page(len(document.pages) + 1)
            page.raw_text = strip_nul(text)

        logger.info("Spreadsheet pages | document=%s sheets=%d", document.name, len(document.pages))

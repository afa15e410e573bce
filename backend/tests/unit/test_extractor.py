"""
Unit Tests — Page extraction
════════════════════════════
PDF text layer, image pages, CSV re-serialization and worksheet pages.

Coverage targets:
  ✅ PDF         → one page per source page, raw text only filled when unset
  ✅ Image       → single page holding the bytes, created once
  ✅ CSV         → "<header>: <value>" lines, blank cells omitted, Column<n> names
  ✅ Spreadsheet → one page per worksheet, skipped when pages exist
  ✅ Missing bytes → MissingFileContentError
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from docflow.core.errors import MissingFileContentError
from docflow.models.documents import MediaType
from docflow.processing.extractor import PageExtractor, csv_to_text, strip_nul
from docflow.processing.ocr import PAGE_EXTRACTION_ERROR_TEMPLATE, PyMuPDFExtractor


@pytest.fixture
def extractor() -> PageExtractor:
    return PageExtractor()


# ─────────────────────────────────────────────────────────────────────────────
# PDF
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
@pytest.mark.processing
class TestPdfExtraction:

    async def test_pymupdf_reads_every_page(self, sample_pdf_bytes):
        pages = await PyMuPDFExtractor().extract(sample_pdf_bytes)
        assert sorted(pages) == list(range(1, 11))
        assert "Page 7" in pages[7]

    async def test_creates_pages_in_order(self, extractor, make_document, sample_pdf_bytes):
        document = make_document("report.pdf", MediaType.APPLICATION_PDF, sample_pdf_bytes)
        await extractor.extract_pdf_pages(document)

        assert [p.page_number for p in document.pages] == list(range(1, 11))
        assert all(p.document_id == document.id for p in document.pages)
        assert "Page 1" in document.pages[0].raw_text

    async def test_existing_raw_text_is_kept(self, extractor, make_document, sample_pdf_bytes):
        document = make_document("report.pdf", MediaType.APPLICATION_PDF, sample_pdf_bytes)
        document.get_or_create_page(2).raw_text = "already extracted"

        await extractor.extract_pdf_pages(document)
        await extractor.extract_pdf_pages(document)

        assert len(document.pages) == 10
        assert document.get_page(2).raw_text == "already extracted"

    async def test_nul_characters_are_removed(self, make_document):
        stub = AsyncMock()
        stub.extract.return_value = {1: "a\0b\0c"}
        document = make_document("x.pdf", MediaType.APPLICATION_PDF, b"%PDF")

        await PageExtractor(pdf_extractor=stub).extract_pdf_pages(document)

        assert document.get_page(1).raw_text == "abc"

    async def test_missing_bytes_raise(self, extractor, make_document):
        document = make_document("x.pdf", MediaType.APPLICATION_PDF, None)
        with pytest.raises(MissingFileContentError):
            await extractor.extract_pdf_pages(document)

    def test_error_placeholder_names_the_page(self):
        assert PAGE_EXTRACTION_ERROR_TEMPLATE.format(page_number=4) == (
            "Error extracting text from page 4"
        )


# ─────────────────────────────────────────────────────────────────────────────
# Images
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
@pytest.mark.processing
class TestImagePage:

    def test_single_page_holds_the_bytes(self, extractor, make_document, sample_png_bytes):
        document = make_document("scan.png", MediaType.IMAGE_PNG, sample_png_bytes)
        page = extractor.attach_image_page(document)

        assert document.pages == [page]
        assert page.page_number == 1
        assert page.image.data == sample_png_bytes
        assert page.image.media_type is MediaType.IMAGE_PNG

    def test_is_idempotent(self, extractor, make_document, sample_png_bytes):
        document = make_document("scan.png", MediaType.IMAGE_PNG, sample_png_bytes)
        first = extractor.attach_image_page(document)
        image = first.image
        assert extractor.attach_image_page(document) is first
        assert first.image is image
        assert len(document.pages) == 1


# ─────────────────────────────────────────────────────────────────────────────
# CSV
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
@pytest.mark.processing
class TestCsvToText:

    def test_blank_cells_are_omitted(self, sample_csv_bytes):
        assert csv_to_text(sample_csv_bytes) == "Header1: Value1\n\n"

    def test_every_row_is_followed_by_blank_line(self):
        data = b"Name,Age\nAda,36\nAlan,41\n"
        assert csv_to_text(data) == "Name: Ada\nAge: 36\n\nName: Alan\nAge: 41\n\n"

    def test_missing_headers_are_named_positionally(self):
        data = b"Name,\nAda,36,London\n"
        assert csv_to_text(data) == "Name: Ada\nColumn2: 36\nColumn3: London\n\n"

    def test_header_text_is_kept_as_is(self):
        data = b" Name ,  \nAda,36\n"
        assert csv_to_text(data) == " Name : Ada\nColumn2: 36\n\n"

    def test_quoted_fields(self):
        data = b'Title,Notes\n"Report, final","said ""hi"""\n'
        assert csv_to_text(data) == 'Title: Report, final\nNotes: said "hi"\n\n'

    def test_header_only_and_empty_input(self):
        assert csv_to_text(b"A,B\n") == ""
        assert csv_to_text(b"") == ""

    def test_byte_order_mark_is_ignored(self):
        assert csv_to_text(b"\xef\xbb\xbfA\n1\n") == "A: 1\n\n"

    def test_page_text_is_rebuilt(self, extractor, make_document, sample_csv_bytes):
        document = make_document("table.csv", MediaType.TEXT_CSV, sample_csv_bytes)
        document.get_or_create_page(1).raw_text = "stale"

        page = extractor.extract_csv_page(document)

        assert page.raw_text == "Header1: Value1\n\n"
        assert len(document.pages) == 1


# ─────────────────────────────────────────────────────────────────────────────
# Spreadsheets
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
@pytest.mark.processing
class TestSpreadsheetPages:

    async def test_one_page_per_sheet(self, extractor, make_document, sample_xlsx_bytes):
        document = make_document("book.xlsx", MediaType.APPLICATION_XLSX, sample_xlsx_bytes)
        await extractor.extract_spreadsheet_pages(document)

        assert [p.page_number for p in document.pages] == [1, 2]
        first, second = document.pages
        assert first.raw_text.startswith("Sheet1")
        assert "Header1" in first.raw_text and "Value2" in first.raw_text
        assert second.raw_text.startswith("Totals")
        assert "42" in second.raw_text

    async def test_existing_pages_short_circuit(self, make_document):
        reader = AsyncMock()
        document = make_document("book.xlsx", MediaType.APPLICATION_XLSX, b"PK")
        document.get_or_create_page(1).raw_text = "kept"

        await PageExtractor(workbook_reader=reader).extract_spreadsheet_pages(document)

        reader.read_sheets.assert_not_awaited()
        assert [p.raw_text for p in document.pages] == ["kept"]


def test_strip_nul():
    assert strip_nul("\0x\0") == "x"

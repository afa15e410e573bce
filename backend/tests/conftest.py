"""
Root conftest.py — Shared fixtures for all tests

Fixture hierarchy:
  function-scoped : fake_embeddings, fake_analyzer, processing_service,
                    context_service, sample_pdf_bytes, sample_xlsx_bytes,
                    sample_csv_bytes, sample_png_bytes, make_document

Environment strategy:
  - No test reaches OpenAI: the services receive deterministic fakes that
    implement the same provider interfaces.
  - Binary fixtures are generated in memory with the same libraries the
    extractors read them with (PyMuPDF, openpyxl).

How to run:
  pytest                                   # all tests
  pytest -m processing                     # processing pipeline only
  pytest -m workflow                       # workflow tree + context loading
  pytest backend/tests/unit/test_embeddings.py
"""

from __future__ import annotations

import io
import os
from typing import Sequence

import pytest

# ─────────────────────────────────────────────────────────────────────────────
# Patch settings BEFORE any docflow imports so modules read test config
# ─────────────────────────────────────────────────────────────────────────────

os.environ.setdefault("OPENAI_API_KEY", "sk-test-key")
os.environ.setdefault("OCR_ENABLED",    "false")

from docflow.models.documents import Document, File, MediaType, Page  # noqa: E402
from docflow.processing.analysis import BaseDocumentAnalyzer  # noqa: E402
from docflow.processing.embeddings import BaseEmbeddingProvider  # noqa: E402
from docflow.services.document_processing import DocumentProcessingService  # noqa: E402
from docflow.services.workflow_context import WorkflowContextService  # noqa: E402

FAKE_EMBEDDING_MODEL = "fake-embedding-1"


# ─────────────────────────────────────────────────────────────────────────────
# Fake providers
# ─────────────────────────────────────────────────────────────────────────────

class FakeEmbeddingProvider(BaseEmbeddingProvider):
    """
    Deterministic embedding provider.

    fail_calls  : 0-based call indices that raise RuntimeError
    none_texts  : texts answered with None
    drop_last   : number of trailing vectors omitted from every response
    """

    def __init__(
        self,
        fail_calls: Sequence[int] = (),
        none_texts: Sequence[str] = (),
        drop_last:  int = 0,
    ) -> None:
        self.calls: list[list[str]] = []
        self._fail_calls = set(fail_calls)
        self._none_texts = set(none_texts)
        self._drop_last  = drop_last

    @property
    def model_name(self) -> str:
        return FAKE_EMBEDDING_MODEL

    async def embed(self, texts: Sequence[str]) -> list[list[float] | None]:
        call_idx = len(self.calls)
        self.calls.append(list(texts))
        if call_idx in self._fail_calls:
            raise RuntimeError(f"embedding call {call_idx} failed")

        vectors = [
            None if t in self._none_texts else [float(len(t)), float(call_idx)]
            for t in texts
        ]
        return vectors[: len(vectors) - self._drop_last] if self._drop_last else vectors

    @property
    def sent_texts(self) -> list[str]:
        return [t for call in self.calls for t in call]


class FakeAnalyzer(BaseDocumentAnalyzer):
    """
    Analyzer that writes predictable values and records every call.

    skip_overview_pages : page numbers left without an overview
    """

    def __init__(self, skip_overview_pages: Sequence[int] = ()) -> None:
        self.setup_calls = 0
        self.overview_calls:  list[str] = []
        self.section_calls:   list[str] = []
        self.topic_calls:     list[int] = []
        self.toc_calls:       list[tuple[str, str]] = []
        self._skip = set(skip_overview_pages)

    async def setup_prompts(self) -> None:
        self.setup_calls += 1

    async def generate_overviews(self, document: Document) -> None:
        self.overview_calls.append(document.name)
        for page in document.pages:
            if page.page_number in self._skip or page.overview:
                continue
            page.overview = f"Overview of {document.name} page {page.page_number}"

    async def detect_section_titles(self, document: Document) -> None:
        self.section_calls.append(document.name)
        for page in document.pages:
            page.section_titles = [f"Section {page.page_number}"]

    async def generate_topics(self, pages: Sequence[Page]) -> str | None:
        self.topic_calls.append(len(pages))
        return f"Topics of {len(pages)} pages"

    async def generate_table_of_contents(self, document: Document, toc_model: str) -> None:
        self.toc_calls.append((document.name, toc_model))
        document.table_of_contents = f"ToC of {document.name} using {toc_model}"


# ─────────────────────────────────────────────────────────────────────────────
# Provider + service fixtures
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def fake_embeddings() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def fake_analyzer() -> FakeAnalyzer:
    return FakeAnalyzer()


@pytest.fixture
def processing_service(fake_analyzer, fake_embeddings) -> DocumentProcessingService:
    return DocumentProcessingService(
        analyzer=fake_analyzer,
        embedding_provider=fake_embeddings,
        ocr_enabled=False,
        overview_fallback_text="fallback overview",
    )


@pytest.fixture
def context_service(fake_analyzer) -> WorkflowContextService:
    return WorkflowContextService(analyzer=fake_analyzer)


# ─────────────────────────────────────────────────────────────────────────────
# Sample file fixtures
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def sample_pdf_bytes() -> bytes:
    """Ten-page PDF whose page N carries the text "Page N"."""
    import fitz

    with fitz.open() as pdf:
        for page_number in range(1, 11):
            page = pdf.new_page()
            page.insert_text((72, 72), f"Page {page_number}")
        return pdf.tobytes()


@pytest.fixture
def sample_xlsx_bytes() -> bytes:
    """Workbook with two sheets: Sheet1 (data) and Totals."""
    from openpyxl import Workbook

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Sheet1"
    sheet.append(["Header1", "Header2"])
    sheet.append(["Value1", "Value2"])

    totals = workbook.create_sheet("Totals")
    totals.append(["Total", "42"])

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def sample_csv_bytes() -> bytes:
    return b"Header1,Header2\nValue1,\n"


@pytest.fixture
def sample_png_bytes() -> bytes:
    """PNG signature + IHDR; page images are stored, never decoded."""
    return (
        b"\x89PNG\r\n\x1a\n"
        b"\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00\x1f\x15\xc4\x89"
    )


@pytest.fixture
def make_document():
    """Factory: build a Document around in-memory bytes."""
    def _build(name: str, media_type: MediaType, data: bytes | None = b"") -> Document:
        return Document(name=name, media_type=media_type, file=File(name=name, data=data))
    return _build


@pytest.fixture
def make_embeddings():
    """Factory: FakeEmbeddingProvider with failure knobs."""
    return FakeEmbeddingProvider


@pytest.fixture
def make_analyzer():
    """Factory: FakeAnalyzer with failure knobs."""
    return FakeAnalyzer

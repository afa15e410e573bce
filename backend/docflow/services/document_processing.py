"""
Document Processing Pipeline
════════════════════════════

Per document, in input order (never concurrently):

  1. Dispatch on Document.media_type through the handler table
       application/pdf                → PDF handler
       image/jpeg, image/png          → image handler
       text/csv                       → CSV handler
       application/vnd.ms-excel, xlsx → spreadsheet handler
       anything else                  → UnknownMediaTypeError (fatal)
  2. Handler: page extraction → overviews (optional) → section titles
     (optional) → embeddings for pages lacking a valid one
  3. Await the caller's on_document_processed(document.name), if any

Failure policy:
  - None entries in the batch and documents without a File are logged and
    skipped; the batch continues.
  - Embedding failures become "ERROR" sentinel embeddings (never raise).
  - Unknown media types, missing file bytes and unavailable OCR propagate.

Re-running the pipeline on the same documents is safe: PDF raw text and
spreadsheet pages are only filled when absent and valid embeddings are kept.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Sequence

from docflow.core.errors import OcrUnavailableError, UnknownMediaTypeError
from docflow.models.documents import Document, MediaType, Page
from docflow.observability.tracing import traced
from docflow.processing.analysis import BaseDocumentAnalyzer
from docflow.processing.embeddings import (
    EMBEDDING_BATCH_SIZE,
    BaseEmbeddingProvider,
    EmbeddingBatcher,
    apply_embedding,
)
from docflow.processing.extractor import PageExtractor, strip_nul
from docflow.processing.ocr import BaseOcrProvider

logger = logging.getLogger(__name__)

OnDocumentProcessed = Callable[[str | None], Awaitable[None] | None]


@dataclass(frozen=True)
class _RunOptions:
    generate_overviews:    bool
    detect_section_titles: bool
    cancel_event:          asyncio.Event | None = None


async def notify(callback: OnDocumentProcessed | None, document_name: str | None) -> None:
    """Invoke a per-document callback, awaiting it when it is asynchronous."""
    if callback is None:
        return
    result = callback(document_name)
    if inspect.isawaitable(result):
        await result


class DocumentProcessingService:
    """
    Fills documents' pages with text, overviews and embedding vectors.

    Constructor args:
        analyzer               : generative-text provider
        embedding_provider     : embedding provider
        page_extractor         : page materialization (default PageExtractor())
        ocr_provider           : OCR for image documents (optional)
        ocr_enabled            : run OCR on images (default settings.ocr_enabled)
        batch_size             : pages per embedding call (default 50)
        overview_fallback_text : embedding input for single pages without overview
    """

    def __init__(
        self,
        analyzer:               BaseDocumentAnalyzer,
        embedding_provider:     BaseEmbeddingProvider,
        page_extractor:         PageExtractor | None = None,
        ocr_provider:           BaseOcrProvider | None = None,
        ocr_enabled:            bool | None = None,
        batch_size:             int = EMBEDDING_BATCH_SIZE,
        overview_fallback_text: str | None = None,
    ) -> None:
        from docflow.core.config import settings

        self._analyzer       = analyzer
        self._embeddings     = EmbeddingBatcher(embedding_provider, batch_size=batch_size)
        self._page_extractor = page_extractor or PageExtractor()
        self._ocr_provider   = ocr_provider
        self._ocr_enabled    = settings.ocr_enabled if ocr_enabled is None else ocr_enabled
        self._fallback_text  = overview_fallback_text or settings.overview_fallback_text

        # Adding a format is a table edit
        self._handlers: dict[MediaType, Callable[[Document, _RunOptions], Awaitable[None]]] = {
            MediaType.APPLICATION_PDF:          self._process_pdf,
            MediaType.IMAGE_JPEG:               self._process_image,
            MediaType.IMAGE_PNG:                self._process_image,
            MediaType.TEXT_CSV:                 self._process_csv,
            MediaType.APPLICATION_VND_MS_EXCEL: self._process_spreadsheet,
            MediaType.APPLICATION_XLSX:         self._process_spreadsheet,
        }

    @property
    def supported_media_types(self) -> frozenset[MediaType]:
        return frozenset(self._handlers)

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------

    @traced("process_documents")
    async def process_documents(
        self,
        documents:             Sequence[Document | None],
        generate_overviews:    bool = True,
        detect_section_titles: bool = True,
        on_document_processed: OnDocumentProcessed | None = None,
        cancel_event:          asyncio.Event | None = None,
    ) -> None:
        logger.info("Processing %d documents.", len(documents))
        await self._analyzer.setup_prompts()
        options = _RunOptions(generate_overviews, detect_section_titles, cancel_event)

        for document in documents:
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Processing cancelled before document %s.", getattr(document, "name", None))
                break

            if document is None:
                logger.error("Document is null.")
                continue

            logger.info("Processing document %s.", document.name)
            await self.process_pages(document, options)
            await notify(on_document_processed, document.name)
            logger.info("Document %s processed.", document.name)

        logger.info("Documents processed.")

    async def process_pages(self, document: Document, options: _RunOptions) -> None:
        handler = self._handlers.get(document.media_type)
        if handler is None:
            raise UnknownMediaTypeError(document.media_type, document.name)
        await handler(document, options)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _process_pdf(self, document: Document, options: _RunOptions) -> None:
        logger.info("Processing PDF document %s.", document.name)
        if not self._has_file(document):
            return

        await self._page_extractor.extract_pdf_pages(document)
        if options.generate_overviews:
            await self._analyzer.generate_overviews(document)
        if options.detect_section_titles:
            await self._analyzer.detect_section_titles(document)
        await self._embeddings.embed_document(document, options.cancel_event)

    async def _process_image(self, document: Document, options: _RunOptions) -> None:
        logger.info("Processing media document %s.", document.name)
        if not self._has_file(document):
            return

        page = self._page_extractor.attach_image_page(document)
        if not self._ocr_enabled:
            return

        if self._ocr_provider is None:
            raise OcrUnavailableError(
                f"OCR is enabled but no OCR provider is configured (document={document.name!r})"
            )

        logger.info("Processing media document %s with OCR.", document.name)
        raw_text = strip_nul(await self._ocr_provider.recognize(page.image))
        if page.raw_text is None:
            page.raw_text = raw_text
        if page.text is None:
            page.text = raw_text

        if options.generate_overviews:
            await self._analyzer.generate_overviews(document)
        if options.detect_section_titles:
            await self._analyzer.detect_section_titles(document)

        if page.has_valid_embedding():
            logger.debug(
                "Document %s already has an embedding for page %d.",
                document.name, page.page_number,
            )
            return

        if not (page.overview and page.overview.strip()):
            logger.error("Failed to get overview for page %d.", page.page_number)

        await self._embed_single_page(document, page)

    async def _process_csv(self, document: Document, options: _RunOptions) -> None:
        logger.info("Processing CSV document %s.", document.name)
        if not self._has_file(document):
            return

        page = self._page_extractor.extract_csv_page(document)
        await self._embed_single_page(document, page)

    async def _process_spreadsheet(self, document: Document, options: _RunOptions) -> None:
        logger.info("Processing Excel document %s.", document.name)
        if not self._has_file(document):
            return

        await self._page_extractor.extract_spreadsheet_pages(document)
        if options.generate_overviews:
            await self._analyzer.generate_overviews(document)
        await self._embeddings.embed_document(document, options.cancel_event)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _has_file(document: Document) -> bool:
        if document.file is None:
            logger.error("Document %s does not have a File.", document.name)
            return False
        return True

    async def _embed_single_page(self, document: Document, page: Page) -> None:
        """Embed one page outside the batch path, using the fallback text when needed."""
        provider = self._embeddings.provider
        try:
            vectors = await provider.embed([page.overview or self._fallback_text])
        except Exception as exc:
            logger.error(
                "Embedding failed | document=%s page=%d error=%s",
                document.name, page.page_number, exc, exc_info=True,
            )
            vectors = []

        vector = vectors[0] if vectors else None
        if not apply_embedding(page, vector, provider.model_name):
            logger.warning(
                "Embedding recorded as error | document=%s page=%d",
                document.name, page.page_number,
            )

"""
Document Processing Package
════════════════════════════

Building blocks of the per-document pipeline:

  Page extraction → Overviews → Section titles → Embeddings

Modules
───────
  ocr.py           PDF text-layer strategy (PyMuPDF) and the OCR provider interface
  spreadsheets.py  Workbook reader (one page per worksheet)
  extractor.py     Page materialization per media type (PDF, image, CSV, spreadsheet)
  analysis.py      Generative-text provider (overviews, section titles, topics, ToC)
  embeddings.py    Embedding provider + batcher with error-sentinel fallback

Every provider is injected; nothing here reads documents from storage.
"""

from docflow.processing.analysis import BaseDocumentAnalyzer, LLMDocumentAnalyzer
from docflow.processing.embeddings import (
    EMBEDDING_BATCH_SIZE,
    BaseEmbeddingProvider,
    EmbeddingBatcher,
    OpenAIEmbeddingProvider,
)
from docflow.processing.extractor import PageExtractor, csv_to_text
from docflow.processing.ocr import BaseOcrProvider, BaseTextExtractor, PyMuPDFExtractor
from docflow.processing.spreadsheets import WorkbookReader

__all__ = [
    "EMBEDDING_BATCH_SIZE",
    "BaseDocumentAnalyzer",
    "BaseEmbeddingProvider",
    "BaseOcrProvider",
    "BaseTextExtractor",
    "EmbeddingBatcher",
    "LLMDocumentAnalyzer",
    "OpenAIEmbeddingProvider",
    "PageExtractor",
    "PyMuPDFExtractor",
    "WorkbookReader",
    "csv_to_text",
]

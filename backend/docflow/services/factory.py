"""
Service Factory

Wires the services with the configured providers:

  analyzer   → LLMDocumentAnalyzer (LangChain ChatOpenAI)
  embeddings → OpenAIEmbeddingProvider (openai.AsyncOpenAI)

Tests construct the services directly with fake providers instead.
"""

from __future__ import annotations

from docflow.core.config import Settings, get_settings
from docflow.processing.analysis import BaseDocumentAnalyzer, LLMDocumentAnalyzer
from docflow.processing.embeddings import OpenAIEmbeddingProvider
from docflow.processing.ocr import BaseOcrProvider
from docflow.services.document_processing import DocumentProcessingService
from docflow.services.workflow_context import WorkflowContextService


def get_document_processing_service(
    analyzer:     BaseDocumentAnalyzer | None = None,
    ocr_provider: BaseOcrProvider | None = None,
    settings:     Settings | None = None,
) -> DocumentProcessingService:
    cfg = settings or get_settings()
    return DocumentProcessingService(
        analyzer=analyzer or LLMDocumentAnalyzer(),
        embedding_provider=OpenAIEmbeddingProvider(
            model=cfg.embedding_model,
            dimensions=cfg.embedding_dimensions,
            api_key=cfg.openai_api_key,
            base_url=cfg.openai_base_url,
        ),
        ocr_provider=ocr_provider,
        ocr_enabled=cfg.ocr_enabled,
        batch_size=cfg.embedding_batch_size,
        overview_fallback_text=cfg.overview_fallback_text,
    )


def get_workflow_context_service(
    analyzer: BaseDocumentAnalyzer | None = None,
) -> WorkflowContextService:
    return WorkflowContextService(analyzer=analyzer or LLMDocumentAnalyzer())

"""
Embedding Batcher  —  Page Overviews → Embedding Vectors
════════════════════════════════════════════════════════

Candidates:
  Only pages with no valid embedding AND a non-blank overview are embedded.
  A page without an overview is never sent and keeps whatever it had.

Batching:
  Candidates are grouped into batches of EMBEDDING_BATCH_SIZE (50) and sent
  to the provider one batch at a time, in order, each awaited before the
  next is issued. No retries here — back-off belongs to the provider.

Reconciliation:
  Responses are concatenated across batches and matched to candidates by
  position in the flattened candidate list. A batch whose call raised
  contributes one empty entry per requested text, so later batches keep
  their positions. A provider returning fewer vectors than requested leaves
  the trailing candidates without a vector.

  vector returned and overview present → (provider model name, vector)
  anything else                        → ("ERROR", [])

  An existing EmbeddingVector object on the page is updated in place
  (identity preserved) rather than replaced.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Sequence

from docflow.models.documents import ERROR_VECTOR_MODEL, Document, EmbeddingVector, Page

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

EMBEDDING_BATCH_SIZE = 50    # pages per provider call


# ---------------------------------------------------------------------------
# Provider interface
# ---------------------------------------------------------------------------

class BaseEmbeddingProvider(ABC):
    """Turns an ordered sequence of texts into an ordered sequence of vectors."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Identifier recorded on every successful EmbeddingVector."""

    @abstractmethod
    async def embed(self, texts: Sequence[str]) -> list[list[float] | None]:
        """
        Embed ``texts``; entry i of the result belongs to texts[i].
        Entries may be None (no vector for that text) and the list may be
        shorter than the input.
        """


class OpenAIEmbeddingProvider(BaseEmbeddingProvider):
    """
    OpenAI embeddings via ``openai.AsyncOpenAI`` (non-blocking I/O).

    text-embedding-3-small  → 1536 dims  (default, cost-efficient)
    text-embedding-3-large  → 3072 dims  (higher accuracy)
    """

    def __init__(
        self,
        model:      str | None = None,
        dimensions: int | None = None,
        api_key:    str | None = None,
        base_url:   str | None = None,
        client=None,
    ) -> None:
        from docflow.core.config import settings

        self._model      = model or settings.embedding_model
        self._dimensions = dimensions or settings.embedding_dimensions
        self._api_key    = api_key or settings.openai_api_key
        self._base_url   = base_url or settings.openai_base_url
        self._client     = client

    @property
    def model_name(self) -> str:
        return self._model

    def _get_client(self):
        if self._client is None:
            from openai import AsyncOpenAI
            self._client = AsyncOpenAI(api_key=self._api_key, base_url=self._base_url)
        return self._client

    async def embed(self, texts: Sequence[str]) -> list[list[float] | None]:
        if not texts:
            return []

        t_api = time.monotonic()
        kwargs: dict = {"model": self._model, "input": list(texts)}
        # dimensions only works for text-embedding-3-* models
        if self._model.startswith("text-embedding-3"):
            kwargs["dimensions"] = self._dimensions

        response = await self._get_client().embeddings.create(**kwargs)

        logger.debug(
            "OpenAI embeddings | size=%d api_ms=%.0f",
            len(texts), (time.monotonic() - t_api) * 1000,
        )
        ordered = sorted(response.data, key=lambda item: item.index)
        return [list(item.embedding) for item in ordered]


# ---------------------------------------------------------------------------
# Batcher
# ---------------------------------------------------------------------------

@dataclass
class EmbeddingReport:
    """Counts for one document's embedding pass."""
    total_pages:        int
    already_embedded:   int
    erroneous:          int
    candidates:         int
    embedded:           int = 0
    failed_pages:       list[int] = field(default_factory=list)


def is_embedding_candidate(page: Page) -> bool:
    return not page.has_valid_embedding() and bool(page.overview and page.overview.strip())


def apply_embedding(page: Page, vector: list[float] | None, model_name: str) -> bool:
    """
    Record ``vector`` on ``page``. Returns False when the sentinel was recorded.
    """
    ok = vector is not None and page.overview is not None
    model = model_name if ok else ERROR_VECTOR_MODEL

    embedding = page.embedding_vector or EmbeddingVector(model=model)
    embedding.model = model
    embedding.vector = list(vector) if ok else []
    page.embedding_vector = embedding
    return ok


class EmbeddingBatcher:
    """
    Embeds the pages of a document that lack a valid embedding.

    Usage:
        batcher = EmbeddingBatcher(OpenAIEmbeddingProvider())
        await batcher.embed_document(document)
    """

    def __init__(
        self,
        provider:   BaseEmbeddingProvider,
        batch_size: int = EMBEDDING_BATCH_SIZE,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self._provider   = provider
        self._batch_size = batch_size

    @property
    def provider(self) -> BaseEmbeddingProvider:
        return self._provider

    async def embed_document(
        self,
        document:     Document,
        cancel_event: asyncio.Event | None = None,
    ) -> EmbeddingReport:
        candidates = [p for p in document.pages if is_embedding_candidate(p)]
        report = EmbeddingReport(
            total_pages=len(document.pages),
            already_embedded=sum(1 for p in document.pages if p.embedding_vector is not None),
            erroneous=sum(
                1 for p in document.pages
                if p.embedding_vector is not None and p.embedding_vector.is_error
            ),
            candidates=len(candidates),
        )

        logger.info(
            "Embeddings | document=%s pages=%d already_embedded=%d erroneous=%d to_embed=%d",
            document.name, report.total_pages, report.already_embedded,
            report.erroneous, report.candidates,
        )

        if not candidates:
            return report

        vectors, sent = await self._embed_in_batches(
            [p.overview for p in candidates], cancel_event,
        )

        # Pages of batches never sent (cancellation) are left untouched
        for idx, page in enumerate(candidates[:sent]):
            vector = vectors[idx] if idx < len(vectors) else None
            if apply_embedding(page, vector, self._provider.model_name):
                report.embedded += 1
            else:
                report.failed_pages.append(page.page_number)
                logger.warning(
                    "Failed to get embedding | document=%s page=%d",
                    document.name, page.page_number,
                )

        return report

    async def _embed_in_batches(
        self,
        texts:        list[str],
        cancel_event: asyncio.Event | None,
    ) -> tuple[list[list[float] | None], int]:
        """Return (flattened vectors, number of texts actually sent)."""
        all_vectors: list[list[float] | None] = []
        sent = 0

        for batch_idx, start in enumerate(range(0, len(texts), self._batch_size)):
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Embeddings cancelled | remaining_batches_from=%d", batch_idx)
                break

            batch = texts[start : start + self._batch_size]
            sent += len(batch)
            try:
                all_vectors.extend(await self._provider.embed(batch))
            except Exception as exc:
                logger.error(
                    "Embedding batch failed | batch=%d size=%d error=%s",
                    batch_idx, len(batch), exc, exc_info=True,
                )
                all_vectors.extend([None] * len(batch))

        return all_vectors, sent

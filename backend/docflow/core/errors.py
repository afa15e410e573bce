"""
Error taxonomy.

Only terminal conditions are raised. Everything recoverable (missing
documents, ineligible attachments, failed embeddings) is logged by the
services and processing continues.
"""

from __future__ import annotations


class DocflowError(Exception):
    """Base class for every error raised by docflow."""


class UnknownMediaTypeError(DocflowError, ValueError):
    """No page extraction strategy exists for the document's media type."""

    def __init__(self, media_type: object, document_name: str = "") -> None:
        self.media_type = media_type
        self.document_name = document_name
        label = getattr(media_type, "value", media_type)
        super().__init__(f"Document media type is unknown: {label} (document={document_name!r})")


class MissingFileContentError(DocflowError):
    """A document's file has no bytes at the moment extraction needs them."""


class BlockNotFoundError(DocflowError, IndexError):
    """No block in the workflow carries the requested order value."""

    def __init__(self, order: int) -> None:
        self.order = order
        super().__init__(f"Block at index {order} not found.")


class WorkflowConfigurationError(DocflowError):
    """The workflow tree is malformed (orphan RAG settings, nesting too deep)."""


class OcrUnavailableError(DocflowError, NotImplementedError):
    """OCR was requested for an image document but no OCR provider is configured."""

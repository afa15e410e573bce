from docflow.models.documents import (
    ERROR_VECTOR_MODEL,
    BinaryContent,
    Document,
    DocumentInfo,
    EmbeddingVector,
    File,
    MediaType,
    Page,
    get_or_create_page,
)
from docflow.models.workflows import Block, BlockType, RagSettings, RagType, Workflow

__all__ = [
    "ERROR_VECTOR_MODEL",
    "BinaryContent",
    "Block",
    "BlockType",
    "Document",
    "DocumentInfo",
    "EmbeddingVector",
    "File",
    "MediaType",
    "Page",
    "RagSettings",
    "RagType",
    "Workflow",
    "get_or_create_page",
]

"""
Content Model — Documents, Pages, Files, Embeddings
═══════════════════════════════════════════════════

In-memory representation of an ingested artifact:

  File            immutable identity + name + raw bytes
  Document        owns an ordered (by page number) list of Pages
  Page            text / overview / image / embedding for one page
  EmbeddingVector model tag + vector; tag "ERROR" marks a failed computation
  DocumentInfo    transient (document, asserted document class) pair used
                  only while loading a workflow context

Ownership flows downward: a Document owns its Pages. The Page → Document
link is a weak reference (navigation only).
"""

from __future__ import annotations

import bisect
import mimetypes
import uuid
import weakref
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from docflow.models.workflows import Block

# Sentinel model tag for embeddings that could not be computed
ERROR_VECTOR_MODEL = "ERROR"

# Document-class eligibility keywords (see DocumentInfo.can_be_processed_for_block)
ANY_DOCUMENT_CLASS  = "Any"
NONE_DOCUMENT_CLASS = "None"


def _new_id() -> str:
    return str(uuid.uuid4())


class MediaType(str, Enum):
    IMAGE_JPEG = "image/jpeg"
    IMAGE_PNG  = "image/png"
    IMAGE_GIF  = "image/gif"
    IMAGE_WEBP = "image/webp"
    IMAGE_TIFF = "image/tiff"
    TEXT_PLAIN = "text/plain"
    TEXT_CSV   = "text/csv"
    APPLICATION_PDF  = "application/pdf"
    APPLICATION_JSON = "application/json"
    APPLICATION_ZIP  = "application/zip"
    APPLICATION_VND_MS_EXCEL = "application/vnd.ms-excel"
    APPLICATION_XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    UNKNOWN = "application/octet-stream"

    @classmethod
    def from_filename(cls, filename: str) -> "MediaType":
        """Guess the media type from a file extension; UNKNOWN when unmapped."""
        guessed, _ = mimetypes.guess_type(filename)
        if guessed is None:
            return cls.UNKNOWN
        try:
            return cls(guessed)
        except ValueError:
            return cls.UNKNOWN


# Platform mime.types files disagree on workbook extensions
mimetypes.add_type(MediaType.APPLICATION_VND_MS_EXCEL.value, ".xls")
mimetypes.add_type(MediaType.APPLICATION_XLSX.value, ".xlsx")


@dataclass(frozen=True)
class BinaryContent:
    """Binary payload (page image) tagged with its media type."""
    data:       bytes
    media_type: MediaType


@dataclass(frozen=True, eq=False)
class File:
    """Raw uploaded bytes. Read-only once constructed."""
    name:  str
    data:  bytes | None = None
    id:    str = field(default_factory=_new_id)


@dataclass(eq=False)
class EmbeddingVector:
    model:  str = ""
    vector: list[float] = field(default_factory=list)
    id:     str = field(default_factory=_new_id)

    @property
    def is_error(self) -> bool:
        return self.model == ERROR_VECTOR_MODEL


@dataclass(eq=False)
class Page:
    """
    One page of a Document.

    page_number    : 1-based, set once at creation
    raw_text       : text as extracted from the source
    text           : post-processed text (OCR clean-up etc.)
    overview       : natural-language overview used as the embedding input
    section_titles : headings detected on the page
    image          : page image (raster documents)
    """
    page_number:      int
    document_id:      str = ""
    raw_text:         str | None = None
    text:             str | None = None
    overview:         str | None = None
    section_titles:   list[str] = field(default_factory=list)
    image:            BinaryContent | None = None
    embedding_vector: EmbeddingVector | None = None
    id:               str = field(default_factory=_new_id)
    _document_ref:    weakref.ReferenceType | None = field(
        default=None, init=False, repr=False,
    )

    def __setattr__(self, name: str, value: object) -> None:
        if name == "page_number" and "page_number" in self.__dict__:
            raise AttributeError("Page.page_number is immutable once set")
        super().__setattr__(name, value)

    @property
    def document(self) -> "Document | None":
        return self._document_ref() if self._document_ref is not None else None

    @property
    def content(self) -> str | None:
        """Best available text for the page: post-processed, else raw."""
        return self.text if self.text is not None else self.raw_text

    def has_valid_embedding(self) -> bool:
        """True iff an embedding exists and is not tagged with the error sentinel."""
        return self.embedding_vector is not None and not self.embedding_vector.is_error


@dataclass(eq=False)
class Document:
    name:       str = ""
    media_type: MediaType = MediaType.UNKNOWN
    file:       File | None = None
    pages:      list[Page] = field(default_factory=list)
    table_of_contents: str | None = None
    id:         str = field(default_factory=_new_id)

    def __post_init__(self) -> None:
        # Pages handed to the constructor are adopted like created ones
        numbers = [p.page_number for p in self.pages]
        if len(numbers) != len(set(numbers)):
            raise ValueError(f"Duplicate page numbers in document {self.name!r}: {sorted(numbers)}")
        self.pages.sort(key=lambda p: p.page_number)
        for page in self.pages:
            page.document_id = self.id
            page._document_ref = weakref.ref(self)

    def get_page(self, page_number: int) -> Page | None:
        """Pure lookup — never creates a page."""
        for page in self.pages:
            if page.page_number == page_number:
                return page
        return None

    def get_or_create_page(self, page_number: int) -> Page:
        """
        Return the page with this number, creating and inserting it
        (in page-number order) when it does not exist yet.
        """
        page = self.get_page(page_number)
        if page is not None:
            return page

        if page_number < 1:
            raise ValueError(f"Page numbers are 1-based, got {page_number}")

        page = Page(page_number=page_number, document_id=self.id)
        page._document_ref = weakref.ref(self)
        numbers = [p.page_number for p in self.pages]
        self.pages.insert(bisect.bisect_left(numbers, page_number), page)
        return page


def get_or_create_page(document: Document, page_number: int) -> Page:
    return document.get_or_create_page(page_number)


class DocumentInfo:
    """
    A processed document paired with the document class the caller asserts for it.

    document_id follows the current document unless an explicit id was given.
    """

    def __init__(
        self,
        document:       Document | None = None,
        document_class: str = "",
        document_id:    str = "",
        id:             str | None = None,
    ) -> None:
        self.document       = document
        self.document_class = document_class
        self._document_id   = document_id
        self.id             = id or _new_id()

    def __repr__(self) -> str:
        return (
            f"DocumentInfo(document_id={self.document_id!r}, "
            f"document_class={self.document_class!r})"
        )

    @property
    def document_id(self) -> str:
        if self._document_id:
            return self._document_id
        return self.document.id if self.document is not None else ""

    @document_id.setter
    def document_id(self, value: str) -> None:
        self._document_id = value

    def can_be_processed_for_block(self, block: "Block") -> bool:
        """
        Class eligibility:
          "None" in supported classes → nothing is eligible
          empty or "Any"              → everything is eligible
          otherwise                   → exact membership
        """
        supported = block.supported_document_classes
        if NONE_DOCUMENT_CLASS in supported:
            return False
        return (
            not supported
            or ANY_DOCUMENT_CLASS in supported
            or self.document_class in supported
        )

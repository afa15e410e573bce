"""
Workflow Tree — Workflows, Blocks, RAG settings
════════════════════════════════════════════════

  Workflow (top level)
    ├── Block, Block, ...                 ordered by Block.order
    └── Workflow (child), ...             ordered by Workflow.order
          └── Block, Block, ...

Only one level of child workflows is supported: a child workflow cannot
own children of its own. add_child() enforces this.

Back references (Block → Workflow, RagSettings → Block, Workflow → parent)
are weak; ownership flows strictly downward.
"""

from __future__ import annotations

import uuid
import weakref
from dataclasses import dataclass, field
from enum import Enum

from docflow.core.errors import BlockNotFoundError, WorkflowConfigurationError
from docflow.models.documents import Document, Page


def _new_id() -> str:
    return str(uuid.uuid4())


def _deref(ref: weakref.ReferenceType | None):
    return ref() if ref is not None else None


class BlockType(str, Enum):
    AI_QUERY   = "AiQuery"
    SIMPLE_RAG = "SimpleRag"
    MERGE      = "Merge"


class RagType(str, Enum):
    WHOLE_DOCUMENT = "WholeDocument"
    USE_TOPICS     = "UseTopics"
    USE_AUTO_DETECTED_TABLE_OF_CONTENTS = "UseAutoDetectedTableOfContents"


@dataclass(eq=False)
class RagSettings:
    type: RagType = RagType.WHOLE_DOCUMENT
    # ToC model / template; only meaningful for USE_AUTO_DETECTED_TABLE_OF_CONTENTS
    table_of_contents_input: str | None = None
    id:   str = field(default_factory=_new_id)
    _block_ref: weakref.ReferenceType | None = field(default=None, init=False, repr=False)

    @property
    def block(self) -> "Block | None":
        return _deref(self._block_ref)


@dataclass(eq=False)
class Block:
    name:  str = ""
    order: int = 0
    type:  BlockType = BlockType.AI_QUERY
    # Empty = any class; "Any" = explicit wildcard; "None" = reject everything
    supported_document_classes: list[str] = field(default_factory=list)
    rag_settings: list[RagSettings] = field(default_factory=list)
    replacement_tag: str | None = None
    should_use_page_images: bool = False
    # Replaced on every context load
    documents: list[Document] = field(default_factory=list)
    id: str = field(default_factory=_new_id)
    _workflow_ref: weakref.ReferenceType | None = field(default=None, init=False, repr=False)

    @property
    def workflow(self) -> "Workflow | None":
        return _deref(self._workflow_ref)

    def add_rag_settings(self, rag_settings: RagSettings) -> RagSettings:
        rag_settings._block_ref = weakref.ref(self)
        self.rag_settings.append(rag_settings)
        return rag_settings

    def should_use_documents(self) -> bool:
        return self.type in (BlockType.AI_QUERY, BlockType.SIMPLE_RAG)

    def uses_rag_type(self, rag_type: RagType) -> bool:
        return any(r.type is rag_type for r in self.rag_settings)

    def has_document(self, document_id: str) -> bool:
        return any(d.id == document_id for d in self.documents)


@dataclass(eq=False)
class Workflow:
    name:  str = ""
    order: int = 0
    children: list["Workflow"] = field(default_factory=list)
    blocks:   list[Block] = field(default_factory=list)
    # Every page of every document ever loaded under this workflow (deduplicated by document)
    all_pages: list[Page] = field(default_factory=list)
    all_pages_topics: str | None = None
    # Documents whose pages are already in all_pages
    loaded_document_ids: set[str] = field(default_factory=set, repr=False)
    id: str = field(default_factory=_new_id)
    _parent_ref: weakref.ReferenceType | None = field(default=None, init=False, repr=False)

    @property
    def parent(self) -> "Workflow | None":
        return _deref(self._parent_ref)

    def add_child(self, child: "Workflow") -> "Workflow":
        if self.parent is not None:
            raise WorkflowConfigurationError(
                f"Workflow {self.name!r} is already a child; only one level of nesting is supported."
            )
        if child.children:
            raise WorkflowConfigurationError(
                f"Workflow {child.name!r} has children and cannot become a child workflow."
            )
        child._parent_ref = weakref.ref(self)
        self.children.append(child)
        return child

    def add_block(self, block: Block) -> Block:
        block._workflow_ref = weakref.ref(self)
        self.blocks.append(block)
        return block

    def block_at(self, order: int) -> Block:
        """Return the block whose order equals ``order``."""
        for block in self.blocks:
            if block.order == order:
                return block
        raise BlockNotFoundError(order)

    def get_top_level_workflow(self) -> "Workflow":
        workflow = self
        while workflow.parent is not None:
            workflow = workflow.parent
        return workflow

    def get_all_blocks(self) -> list[Block]:
        """Blocks of the top-level workflow followed by the blocks of each child."""
        top = self.get_top_level_workflow()
        return [*top.blocks, *(b for child in top.children for b in child.blocks)]

    def uses_rag_type(self, rag_type: RagType) -> bool:
        """True if any block in this subtree carries RAG settings of ``rag_type``."""
        return (
            any(b.uses_rag_type(rag_type) for b in self.blocks)
            or any(c.uses_rag_type(rag_type) for c in self.children)
        )

    def uses_topics(self) -> bool:
        return self.uses_rag_type(RagType.USE_TOPICS)

    def uses_toc(self) -> bool:
        return self.uses_rag_type(RagType.USE_AUTO_DETECTED_TABLE_OF_CONTENTS)

    def has_pages_of(self, document_id: str) -> bool:
        return document_id in self.loaded_document_ids

    def add_pages_of(self, document: Document) -> bool:
        """Append the document's pages once per document id. False if already present."""
        if self.has_pages_of(document.id):
            return False
        self.loaded_document_ids.add(document.id)
        self.all_pages.extend(document.pages)
        return True

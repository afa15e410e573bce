"""
Workflow Context Loader
═══════════════════════

load_context(document_infos, workflow, block_index=None):

  1. Reset: every block under the top-level workflow loses its documents.
  2. For each DocumentInfo, in order (missing documents are logged + skipped):
       a. append the document's pages to workflow.all_pages, once per document
       b. attach the document to eligible blocks — child workflows first,
          then the workflow's own blocks; only the block with
          order == block_index when one is given
  3. Any UseTopics RAG settings in the subtree → generate the topic summary
     from workflow.all_pages, once per workflow (cached on the workflow).
  4. Any UseAutoDetectedTableOfContents RAG settings in the subtree →
     table-of-contents orchestration (see _generate_tocs).

A document is attached to a block iff:
  block type uses documents (AiQuery, SimpleRag)
  AND the DocumentInfo's class is eligible for the block
  AND the block has at least one RagSettings
  AND the block does not already hold that document

on_document_processed is never invoked for page aggregation or block
attachment; it only fires after a table of contents is generated for a
document.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from docflow.core.errors import WorkflowConfigurationError
from docflow.models.documents import Document, DocumentInfo
from docflow.models.workflows import Block, RagSettings, RagType, Workflow
from docflow.observability.tracing import traced
from docflow.processing.analysis import BaseDocumentAnalyzer
from docflow.services.document_processing import OnDocumentProcessed, notify

logger = logging.getLogger(__name__)


def _owning_block(rag: RagSettings) -> Block:
    block = rag.block
    if block is None:
        raise WorkflowConfigurationError(f"RAG settings {rag.id} have no owning block.")
    return block


class WorkflowContextService:
    """
    Attaches processed documents to the blocks of a workflow tree.

    Constructor args:
        analyzer : generative-text provider (topics + table of contents)
    """

    def __init__(self, analyzer: BaseDocumentAnalyzer) -> None:
        self._analyzer = analyzer

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------

    @traced("load_context")
    async def load_context(
        self,
        document_infos:        Sequence[DocumentInfo],
        workflow:              Workflow,
        block_index:           int | None = None,
        on_document_processed: OnDocumentProcessed | None = None,
        cancel_event:          asyncio.Event | None = None,
    ) -> None:
        logger.info(
            "Loading context to workflow handler with %d documents.", len(document_infos),
        )
        await self._analyzer.setup_prompts()

        for block in workflow.get_all_blocks():
            block.documents.clear()

        for document_info in document_infos:
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Context loading cancelled at document %s.", document_info.document_id)
                break

            document = document_info.document
            if document is None:
                logger.error("Document %s is null.", document_info.document_id)
                continue

            logger.info("Loading document %s to workflow.", document.name)
            self._append_pages_to_workflow(workflow, document)
            self._attach_document_to_blocks(workflow, block_index, document_info)
            logger.info("Document %s processed.", document.name)

        if workflow.uses_topics():
            logger.info("Workflow uses topics, generating topics.")
            if workflow.all_pages_topics is None:
                workflow.all_pages_topics = await self._analyzer.generate_topics(workflow.all_pages)

        if workflow.uses_toc():
            logger.info("Workflow uses auto-detected TOC, generating TOC.")
            await self._generate_tocs(document_infos, workflow, on_document_processed)

    # ------------------------------------------------------------------
    # Page aggregation + block attachment
    # ------------------------------------------------------------------

    @staticmethod
    def _append_pages_to_workflow(workflow: Workflow, document: Document) -> None:
        if not workflow.add_pages_of(document):
            logger.info("Document %s's pages are already in the workflow.", document.name)
            return

        logger.info("Document %s's pages added to the workflow.", document.name)

    def _attach_document_to_blocks(
        self,
        workflow:      Workflow,
        block_index:   int | None,
        document_info: DocumentInfo,
        depth:         int = 0,
    ) -> None:
        if depth > 1:
            raise WorkflowConfigurationError(
                f"Workflow {workflow.name!r} is nested deeper than one level."
            )

        for child in workflow.children:
            self._attach_document_to_blocks(child, block_index, document_info, depth + 1)

        if block_index is not None:
            self._load_document_to_block(workflow.block_at(block_index), document_info)
            return

        for block in workflow.blocks:
            self._load_document_to_block(block, document_info)

    @staticmethod
    def _load_document_to_block(block: Block, document_info: DocumentInfo) -> None:
        document = document_info.document
        if document is None:
            logger.error("Document %s is null.", document_info.document_id)
            return

        if not document_info.can_be_processed_for_block(block) or not block.should_use_documents():
            logger.debug(
                "Document %s cannot be processed for block %s.", document.name, block.name,
            )
            return

        if not block.rag_settings:
            logger.warning("Block %s does not have RAG settings.", block.name)
            return

        if block.has_document(document_info.document_id):
            logger.debug(
                "Document %s is already attached to block %s.", document.name, block.name,
            )
            return

        logger.info("Attaching document %s to block %s.", document.name, block.name)
        block.documents.append(document)

    # ------------------------------------------------------------------
    # Table-of-contents orchestration
    # ------------------------------------------------------------------

    async def _generate_tocs(
        self,
        document_infos: Sequence[DocumentInfo],
        workflow:       Workflow,
        on_document_processed: OnDocumentProcessed | None = None,
    ) -> None:
        """
        ToC RAG settings are collected from child workflows only, ordered by
        child order then block order. The first selected document without a
        ToC model stops the run for every document after it.
        """
        toc_rags = [
            rag
            for child in sorted(workflow.children, key=lambda c: c.order)
            for block in sorted(child.blocks, key=lambda b: b.order)
            for rag in block.rag_settings
            if rag.type is RagType.USE_AUTO_DETECTED_TABLE_OF_CONTENTS
        ]

        documents = self._select_documents_for_toc(document_infos, toc_rags)
        if not documents:
            logger.info("No documents to generate TOC for.")
            return

        toc_models = self._get_toc_models_map(document_infos, toc_rags)
        for document in documents:
            toc_model = toc_models.get(document.id)
            if toc_model is None:
                # TODO: confirm with product whether one missing model should stop the remaining documents
                logger.warning("No TOC model found for document %s.", document.name)
                return

            logger.info(
                "Generating TOC for document %s with model %s.", document.name, toc_model,
            )
            await self._analyzer.generate_table_of_contents(document, toc_model)
            await notify(on_document_processed, document.name)

    @staticmethod
    def _select_documents_for_toc(
        document_infos: Sequence[DocumentInfo],
        toc_rags:       list[RagSettings],
    ) -> list[Document]:
        documents: list[Document] = []
        for document_info in document_infos:
            if document_info.document is None:
                logger.error("Document %s is null.", document_info.document_id)
                continue

            if any(document_info.can_be_processed_for_block(_owning_block(r)) for r in toc_rags):
                documents.append(document_info.document)

        return documents

    @staticmethod
    def _get_toc_models_map(
        document_infos: Sequence[DocumentInfo],
        toc_rags:       list[RagSettings],
    ) -> dict[str, str]:
        logger.info("Getting TOC models map for %d documents.", len(document_infos))
        toc_models: dict[str, str] = {}

        for document_info in document_infos:
            name = document_info.document.name if document_info.document else None
            for rag in toc_rags:
                block = _owning_block(rag)
                if not document_info.can_be_processed_for_block(block):
                    continue
                if not rag.table_of_contents_input:
                    logger.warning(
                        "Auto TOC RAG settings for block %s do not have a TOC model.", block.name,
                    )
                    continue
                toc_models[document_info.document_id] = rag.table_of_contents_input
                break

            if document_info.document_id in toc_models:
                logger.info(
                    "TOC model for document %s found: %s.",
                    name, toc_models[document_info.document_id],
                )
            else:
                logger.info("TOC model for document %s not found.", name)

        return toc_models

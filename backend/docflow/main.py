"""
Command-line runner

    python -m docflow.main report.pdf prices.xlsx scan.png \
        --workflow workflow.json --document-class Contract

  1. Build one Document per file (media type guessed from the extension)
  2. Run the processing pipeline with the configured OpenAI providers
  3. Optionally load the processed documents into a workflow read from JSON
  4. Log a per-document summary
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from docflow.core.config import settings
from docflow.core.errors import DocflowError
from docflow.models.documents import Document, DocumentInfo, File, MediaType
from docflow.observability.tracing import TracingConfig
from docflow.processing.analysis import LLMDocumentAnalyzer
from docflow.schemas.workflows import WorkflowDefinition, build_workflow
from docflow.services.factory import (
    get_document_processing_service,
    get_workflow_context_service,
)

logger = logging.getLogger(__name__)


def load_documents(paths: list[str]) -> list[Document]:
    documents = []
    for raw_path in paths:
        path = Path(raw_path)
        documents.append(Document(
            name=path.name,
            media_type=MediaType.from_filename(path.name),
            file=File(name=path.name, data=path.read_bytes()),
        ))
    return documents


def log_summary(documents: list[Document]) -> None:
    for document in documents:
        embedded = sum(1 for p in document.pages if p.has_valid_embedding())
        errors = sum(
            1 for p in document.pages
            if p.embedding_vector is not None and p.embedding_vector.is_error
        )
        logger.info(
            "Summary | document=%s type=%s pages=%d embedded=%d errors=%d toc=%s",
            document.name, document.media_type.value, len(document.pages),
            embedded, errors, "yes" if document.table_of_contents else "no",
        )


async def run(args: argparse.Namespace) -> None:
    documents = load_documents(args.files)
    analyzer = LLMDocumentAnalyzer()

    processing = get_document_processing_service(analyzer=analyzer)
    await processing.process_documents(
        documents,
        generate_overviews=not args.no_overviews,
        detect_section_titles=not args.no_section_titles,
        on_document_processed=lambda name: logger.info("Processed %s", name),
    )

    if args.workflow:
        definition = WorkflowDefinition.model_validate_json(Path(args.workflow).read_text())
        workflow = build_workflow(definition)
        infos = [DocumentInfo(document=d, document_class=args.document_class) for d in documents]
        await get_workflow_context_service(analyzer=analyzer).load_context(infos, workflow)
        for block in workflow.get_all_blocks():
            logger.info(
                "Block %s | documents=%s",
                block.name, [d.name for d in block.documents],
            )

    log_summary(documents)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Document processing CLI")
    parser.add_argument("files", nargs="+", help="Files to process")
    parser.add_argument("--no-overviews", action="store_true", help="Skip page overviews")
    parser.add_argument("--no-section-titles", action="store_true", help="Skip section titles")
    parser.add_argument("--workflow", help="Workflow definition JSON to load documents into")
    parser.add_argument("--document-class", default="", help="Document class for every file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if (settings.debug or args.verbose) else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    TracingConfig.init()

    try:
        asyncio.run(run(args))
    except DocflowError as exc:
        logger.error("Processing failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

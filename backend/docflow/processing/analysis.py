"""
Document Analysis  —  Overviews, Section Titles, Topics, Table of Contents
══════════════════════════════════════════════════════════════════════════

Every generative step the pipeline and the context loader need sits behind
BaseDocumentAnalyzer:

  generate_overviews(document)                 per page, fills Page.overview
  detect_section_titles(document)              per page, fills Page.section_titles
  generate_topics(pages) -> str | None         cross-document topic summary
  generate_table_of_contents(document, model)  fills Document.table_of_contents

LLMDocumentAnalyzer implements it with LangChain LCEL chains
(ChatPromptTemplate | ChatOpenAI | StrOutputParser). Pages are processed
sequentially; a page whose LLM call fails is logged and left without an
overview, which keeps it out of the embedding step.
"""

from __future__ import annotations

import base64
import logging
from abc import ABC, abstractmethod
from typing import Sequence

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate

from docflow.models.documents import Document, Page

logger = logging.getLogger(__name__)

# Marker the section-title prompt asks for when a page has no headings
NO_SECTION_TITLES = "NONE"

# Keep prompts within the model context on very long pages
MAX_PAGE_CHARS = 12_000


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------

class BaseDocumentAnalyzer(ABC):
    """Generative-text capabilities consumed by the services."""

    async def setup_prompts(self) -> None:
        """Prepare prompt templates. Called once per service entry point."""

    @abstractmethod
    async def generate_overviews(self, document: Document) -> None:
        """Fill ``overview`` on the document's pages."""

    @abstractmethod
    async def detect_section_titles(self, document: Document) -> None:
        """Fill ``section_titles`` on the document's pages."""

    @abstractmethod
    async def generate_topics(self, pages: Sequence[Page]) -> str | None:
        """Summarise the topics covered by ``pages``."""

    @abstractmethod
    async def generate_table_of_contents(self, document: Document, toc_model: str) -> None:
        """Build a table of contents for ``document`` following ``toc_model``."""


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

_OVERVIEW_SYSTEM = (
    "You write short factual overviews of document pages. "
    "Describe what the page is about in at most five sentences. "
    "Do not invent content that is not on the page."
)

_SECTION_TITLES_SYSTEM = (
    "You detect section headings in a document page. "
    "Return each heading that starts a section on this page on its own line, "
    "in reading order, without numbering changes. "
    f"If the page has no section headings, return {NO_SECTION_TITLES}."
)

_TOPICS_SYSTEM = (
    "You receive overviews of pages from several documents. "
    "List the main topics they cover as a concise bullet list, "
    "naming the documents each topic appears in."
)

_TOC_SYSTEM = (
    "You build a table of contents for a document from its page overviews "
    "and detected section titles. Follow this table of contents model exactly:\n"
    "{toc_model}"
)


def _clip(text: str) -> str:
    return text if len(text) <= MAX_PAGE_CHARS else text[:MAX_PAGE_CHARS]


def _page_digest(page: Page) -> str:
    titles = "; ".join(page.section_titles) if page.section_titles else "-"
    return f"Page {page.page_number} | sections: {titles}\n{page.overview or ''}"


# ---------------------------------------------------------------------------
# LangChain implementation
# ---------------------------------------------------------------------------

class LLMDocumentAnalyzer(BaseDocumentAnalyzer):
    """
    LLM-backed analyzer.

    Usage:
        analyzer = LLMDocumentAnalyzer()          # model/key from settings
        await analyzer.generate_overviews(document)
    """

    def __init__(self, llm=None) -> None:
        self._llm = llm or self._build_llm()
        self._parser = StrOutputParser()
        self._chains: dict | None = None

    @staticmethod
    def _build_llm():
        from langchain_openai import ChatOpenAI

        from docflow.core.config import settings

        return ChatOpenAI(
            model=settings.llm_model,
            api_key=settings.openai_api_key or None,
            base_url=settings.openai_base_url,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        )

    async def setup_prompts(self) -> None:
        if self._chains is not None:
            return

        self._chains = {
            "overview": ChatPromptTemplate.from_messages(
                [("system", _OVERVIEW_SYSTEM), ("human", "{content}")]
            ) | self._llm | self._parser,
            "section_titles": ChatPromptTemplate.from_messages(
                [("system", _SECTION_TITLES_SYSTEM), ("human", "{content}")]
            ) | self._llm | self._parser,
            "topics": ChatPromptTemplate.from_messages(
                [("system", _TOPICS_SYSTEM), ("human", "{content}")]
            ) | self._llm | self._parser,
            "toc": ChatPromptTemplate.from_messages(
                [("system", _TOC_SYSTEM), ("human", "{content}")]
            ) | self._llm | self._parser,
        }
        logger.debug("Analysis prompts ready | chains=%d", len(self._chains))

    async def _chain(self, name: str):
        await self.setup_prompts()
        return self._chains[name]

    # -----------------------------------------------------------------
    # Overviews
    # -----------------------------------------------------------------

    async def generate_overviews(self, document: Document) -> None:
        generated = 0
        for page in document.pages:
            if page.overview and page.overview.strip():
                continue
            try:
                overview = await self._overview_for(page)
            except Exception as exc:
                logger.error(
                    "Overview generation failed | document=%s page=%d error=%s",
                    document.name, page.page_number, exc,
                )
                continue
            if overview:
                page.overview = overview.strip()
                generated += 1

        logger.info("Overviews | document=%s generated=%d", document.name, generated)

    async def _overview_for(self, page: Page) -> str | None:
        content = page.content
        if content and content.strip():
            chain = await self._chain("overview")
            return await chain.ainvoke({"content": _clip(content)})

        if page.image is not None:
            encoded = base64.b64encode(page.image.data).decode("ascii")
            message = HumanMessage(content=[
                {"type": "text", "text": "Write the overview of this page image."},
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:{page.image.media_type.value};base64,{encoded}"},
                },
            ])
            response = await self._llm.ainvoke([SystemMessage(content=_OVERVIEW_SYSTEM), message])
            return self._parser.invoke(response)

        return None

    # -----------------------------------------------------------------
    # Section titles
    # -----------------------------------------------------------------

    async def detect_section_titles(self, document: Document) -> None:
        chain = await self._chain("section_titles")
        for page in document.pages:
            content = page.content
            if page.section_titles or not (content and content.strip()):
                continue
            try:
                answer = await chain.ainvoke({"content": _clip(content)})
            except Exception as exc:
                logger.error(
                    "Section title detection failed | document=%s page=%d error=%s",
                    document.name, page.page_number, exc,
                )
                continue
            page.section_titles = [
                line.strip() for line in answer.splitlines()
                if line.strip() and line.strip() != NO_SECTION_TITLES
            ]

    # -----------------------------------------------------------------
    # Topics + table of contents
    # -----------------------------------------------------------------

    async def generate_topics(self, pages: Sequence[Page]) -> str | None:
        lines = []
        for page in pages:
            if not (page.overview and page.overview.strip()):
                continue
            owner = page.document.name if page.document is not None else page.document_id
            lines.append(f"[{owner} p.{page.page_number}] {page.overview.strip()}")

        if not lines:
            logger.info("Topics | no page overviews available")
            return None

        chain = await self._chain("topics")
        topics = await chain.ainvoke({"content": _clip("\n".join(lines))})
        logger.info("Topics | pages=%d chars=%d", len(lines), len(topics))
        return topics.strip() or None

    async def generate_table_of_contents(self, document: Document, toc_model: str) -> None:
        chain = await self._chain("toc")
        digest = "\n\n".join(_page_digest(p) for p in document.pages)
        toc = await chain.ainvoke({"toc_model": toc_model, "content": _clip(digest)})
        document.table_of_contents = toc.strip()
        logger.info("Table of contents | document=%s chars=%d", document.name, len(toc))

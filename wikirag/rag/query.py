"""Retrieval-augmented question answering over the synced wiki pages.

``QueryEngine`` offers three entry points:

``answer``
    Search, build a grounded prompt, generate the full reply, and return it
    together with the cited source pages.  Never raises; failures become a
    polite fallback answer with no sources.

``answer_stream``
    Async generator of :class:`StreamEvent` objects for one question::

        sources  {"sourcePages": [...]}        always first, exactly once
        chunk    {"content": "..."}            zero or more, in order
        complete {"fullResponse": "..."}       terminal, on success
        error    {"message": "..."}            terminal, on failure/timeout

    At most one terminal event is emitted.  Closing the generator early
    closes the underlying model stream.

``relevant_titles``
    Retrieval only; the titles of the matching pages.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional

from wikirag.db.vectors import SearchHit, VectorIndex
from wikirag.rag.llm import ChatGenerator

logger = logging.getLogger(__name__)

SOURCES = "sources"
CHUNK = "chunk"
COMPLETE = "complete"
ERROR = "error"

DEFAULT_TOP_K = 5
DEFAULT_SIMILARITY_THRESHOLD = 0.5
DEFAULT_CONVERSATION_ID = "001"

FALLBACK_ANSWER = (
    "I'm sorry, but I encountered an error while processing your question. "
    "Please try again later."
)

SYSTEM_PROMPT = """\
You are a helpful assistant for company employees that answers questions based on the internal wiki documentation.
Use the provided context from wiki pages to answer the user's question.

Guidelines:
- If the context doesn't contain enough information to answer the question, say so
- Be concise but comprehensive in your response
- Include relevant page titles or spaces when referencing information
- If multiple documents contain relevant information, synthesize them appropriately
"""

_PROMPT_TEMPLATE = """\
{question}

Context information is below.

---------------------
{context}
---------------------

Given the context information, answer the query.

Follow these rules:

1. If the answer is not in the context, just say that you don't know.
2. Avoid statements like "Based on the context..." or "The provided information...".
"""


@dataclass
class SourceCitation:
    page_id: str
    title: str
    space_key: str
    space_name: str
    url: str

    def to_dict(self) -> dict[str, str]:
        return {
            "pageId": self.page_id,
            "title": self.title,
            "spaceKey": self.space_key,
            "spaceName": self.space_name,
            "url": self.url,
        }


@dataclass
class Answer:
    answer: str
    sources: list[SourceCitation] = field(default_factory=list)


@dataclass
class StreamEvent:
    event: str
    data: dict[str, Any]


def page_url(base_url: str, page_id: str) -> str:
    """Viewer URL for *page_id*; empty when either part is missing."""
    if not base_url or not page_id:
        return ""
    return f"{base_url.rstrip('/')}/pages/viewpage.action?pageId={page_id}"


def build_prompt(question: str, hits: list[SearchHit]) -> str:
    """Render the user message: the question followed by the retrieved pages."""
    if hits:
        blocks = []
        for i, hit in enumerate(hits, start=1):
            title = hit.metadata.get("title", "Unknown")
            space = hit.metadata.get("spaceName", "")
            header = f"[{i}] {title} ({space})" if space else f"[{i}] {title}"
            blocks.append(f"{header}\n{hit.content}")
        context = "\n\n".join(blocks)
    else:
        context = "No relevant wiki pages were found."
    return _PROMPT_TEMPLATE.format(question=question, context=context)


class QueryEngine:
    """Answers questions from the vector index through the generation capability.

    Args:
        index: Vector index searched for context.
        generator: Text generation capability.
        base_url: Wiki root used to build source URLs ("" disables them).
        top_k / similarity_threshold: Search defaults, overridable per call.
        stream_timeout: Hard cap in seconds on one streamed answer.
        conversation_id: The single conversation all questions belong to.
    """

    def __init__(
        self,
        index: VectorIndex,
        generator: ChatGenerator,
        base_url: str = "",
        top_k: int = DEFAULT_TOP_K,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        stream_timeout: float = 30.0,
        conversation_id: str = DEFAULT_CONVERSATION_ID,
    ) -> None:
        self.index = index
        self.generator = generator
        self.base_url = base_url
        self.top_k = top_k
        self.similarity_threshold = similarity_threshold
        self.stream_timeout = stream_timeout
        self.conversation_id = conversation_id

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------
    def search(
        self,
        question: str,
        top_k: Optional[int] = None,
        similarity_threshold: Optional[float] = None,
    ) -> list[SearchHit]:
        return self.index.search(
            question,
            top_k=self.top_k if top_k is None else top_k,
            similarity_threshold=(
                self.similarity_threshold
                if similarity_threshold is None
                else similarity_threshold
            ),
        )

    def sources_for(self, hits: list[SearchHit]) -> list[SourceCitation]:
        citations = []
        for hit in hits:
            page_id = str(hit.metadata.get("id") or hit.page_id)
            citations.append(
                SourceCitation(
                    page_id=page_id,
                    title=str(hit.metadata.get("title", "Unknown")),
                    space_key=str(hit.metadata.get("spaceKey", "")),
                    space_name=str(hit.metadata.get("spaceName", "")),
                    url=page_url(self.base_url, page_id),
                )
            )
        return citations

    def relevant_titles(
        self,
        query: str,
        top_k: Optional[int] = None,
        similarity_threshold: Optional[float] = None,
    ) -> list[str]:
        """Titles of the pages matching *query*; ``[]`` on any failure."""
        try:
            hits = self.search(query, top_k, similarity_threshold)
        except Exception:  # noqa: BLE001
            logger.exception("Error retrieving document titles")
            return []
        return [str(hit.metadata.get("title", "Unknown")) for hit in hits]

    def reset_conversation(self) -> None:
        """Start the conversation over; earlier turns are no longer sent to the model."""
        self.generator.reset(self.conversation_id)
        logger.info("Conversation %s reset", self.conversation_id)

    # ------------------------------------------------------------------
    # Answering
    # ------------------------------------------------------------------
    def answer(
        self,
        question: str,
        top_k: Optional[int] = None,
        similarity_threshold: Optional[float] = None,
    ) -> Answer:
        """Answer *question* with cited sources.  Never raises."""
        logger.info("Processing question: %s", question)
        try:
            hits = self.search(question, top_k, similarity_threshold)
            sources = self.sources_for(hits)
            text = self.generator.generate(
                SYSTEM_PROMPT,
                build_prompt(question, hits),
                question=question,
                conversation_id=self.conversation_id,
            )
        except Exception:  # noqa: BLE001
            logger.exception("Error answering question")
            return Answer(answer=FALLBACK_ANSWER, sources=[])
        logger.info("Generated response with %d sources", len(sources))
        return Answer(answer=text, sources=sources)

    async def answer_stream(self, question: str) -> AsyncIterator[StreamEvent]:
        """Stream the answer to *question* as events (see module docstring)."""
        logger.info("Processing streaming question: %s", question)
        try:
            hits = await asyncio.to_thread(self.search, question)
        except Exception:  # noqa: BLE001
            logger.exception("Error retrieving context for streaming question")
            yield StreamEvent(SOURCES, {"sourcePages": []})
            yield StreamEvent(ERROR, {"message": FALLBACK_ANSWER})
            return

        sources = self.sources_for(hits)
        yield StreamEvent(SOURCES, {"sourcePages": [s.to_dict() for s in sources]})

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.stream_timeout
        parts: list[str] = []
        stream: Optional[AsyncIterator[str]] = None
        try:
            stream = self.generator.astream(
                SYSTEM_PROMPT,
                build_prompt(question, hits),
                question=question,
                conversation_id=self.conversation_id,
            )
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise asyncio.TimeoutError
                try:
                    chunk = await asyncio.wait_for(stream.__anext__(), remaining)
                except StopAsyncIteration:
                    break
                if not chunk:
                    continue
                parts.append(chunk)
                yield StreamEvent(CHUNK, {"content": chunk})
        except asyncio.TimeoutError:
            logger.warning("Streaming response timed out after %.1f seconds", self.stream_timeout)
            yield StreamEvent(
                ERROR,
                {"message": f"Response timed out after {self.stream_timeout:g} seconds"},
            )
            return
        except Exception as exc:  # noqa: BLE001
            logger.exception("Error in streaming response")
            yield StreamEvent(ERROR, {"message": f"Error generating response: {exc}"})
            return
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

        logger.info("Completed streaming response (%d chunks)", len(parts))
        yield StreamEvent(COMPLETE, {"fullResponse": "".join(parts)})

"""Question-answering endpoints.

Routes
------
POST /api/chat/ask              Body: {"question": "..."}   → answer + sources
GET  /api/chat/ask-stream       ?question=...               → SSE stream
POST /api/chat/relevant-docs    Body: {"question": "..."}   → matching titles
POST /api/chat/reset                                        → forget the conversation history
GET  /api/chat/health

Blank questions are rejected with 400 before the query engine is called.
"""

from __future__ import annotations

import json
from typing import Any, AsyncIterator, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from wikirag.rag.query import QueryEngine, StreamEvent

router = APIRouter()


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class ChatRequest(BaseModel):
    question: Optional[str] = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _engine(request: Request) -> QueryEngine:
    return request.app.state.services.engine


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"status": "error", "message": message})


def _is_blank(text: Optional[str]) -> bool:
    return text is None or not text.strip()


def _sse(event: StreamEvent) -> str:
    """Encode *event* as a named SSE frame."""
    return f"event: {event.event}\ndata: {json.dumps(event.data)}\n\n"


async def _sse_stream(engine: QueryEngine, question: str) -> AsyncIterator[str]:
    events = engine.answer_stream(question)
    try:
        async for event in events:
            yield _sse(event)
    finally:
        await events.aclose()


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/ask", response_model=None)
def ask(body: ChatRequest, request: Request) -> Any:
    """Answer a question and list the wiki pages it was grounded on."""
    if _is_blank(body.question):
        return _bad_request("Question cannot be empty")

    result = _engine(request).answer(body.question)  # type: ignore[arg-type]
    return {
        "status": "success",
        "question": body.question,
        "answer": result.answer,
        "sourcePages": [s.to_dict() for s in result.sources],
    }


@router.get("/ask-stream", response_model=None)
async def ask_stream(request: Request, question: str = "") -> Any:
    """Stream an answer as SSE events ``sources``, ``chunk``, ``complete``/``error``."""
    if _is_blank(question):
        return _bad_request("Question cannot be empty")

    return StreamingResponse(
        _sse_stream(_engine(request), question),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )


@router.post("/relevant-docs", response_model=None)
def relevant_docs(body: ChatRequest, request: Request) -> Any:
    """Return the titles of the pages most similar to the query."""
    if _is_blank(body.question):
        return _bad_request("Query cannot be empty")

    titles = _engine(request).relevant_titles(body.question)  # type: ignore[arg-type]
    return {
        "status": "success",
        "query": body.question,
        "relevantDocuments": titles,
    }


@router.post("/reset")
def reset(request: Request) -> dict[str, str]:
    """Clear the remembered conversation so the next question starts fresh."""
    _engine(request).reset_conversation()
    return {"status": "success", "message": "Conversation history cleared"}


@router.get("/health")
def health() -> dict[str, str]:
    return {
        "status": "healthy",
        "service": "chat",
        "message": "Chat service is running",
    }

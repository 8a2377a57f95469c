"""Sync pipeline and retrieval-augmented answering."""

from wikirag.rag.embedder import embed_text
from wikirag.rag.jobs import SyncJobs, SyncTask
from wikirag.rag.llm import ChatGenerator, ConversationMemory, LangChainGenerator
from wikirag.rag.orchestrator import SyncOrchestrator, SyncReport
from wikirag.rag.query import Answer, QueryEngine, SourceCitation, StreamEvent

__all__ = [
    "embed_text",
    "SyncJobs",
    "SyncTask",
    "ChatGenerator",
    "ConversationMemory",
    "LangChainGenerator",
    "SyncOrchestrator",
    "SyncReport",
    "Answer",
    "QueryEngine",
    "SourceCitation",
    "StreamEvent",
]

"""Generation capability: LangChain chat models behind a small protocol.

The query engine only sees :class:`ChatGenerator`; it hands over a system
instruction, the context-augmented prompt, the raw question, and a
conversation id.  :class:`LangChainGenerator` keeps a short rolling history
per conversation id in :class:`ConversationMemory` (the service uses a single
fixed id), so follow-up questions see the previous turns.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Any, AsyncIterator, Protocol

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from wikirag.config import settings

# Maximum question/answer turns remembered per conversation.
_MAX_HISTORY_TURNS = 10


class ChatGenerator(Protocol):
    def generate(
        self, system: str, prompt: str, *, question: str, conversation_id: str
    ) -> str: ...

    def astream(
        self, system: str, prompt: str, *, question: str, conversation_id: str
    ) -> AsyncIterator[str]: ...

    def reset(self, conversation_id: str) -> None: ...


class ConversationMemory:
    """Bounded in-process history of ``(question, answer)`` turns."""

    def __init__(self, max_turns: int = _MAX_HISTORY_TURNS) -> None:
        self.max_turns = max_turns
        self._turns: dict[str, deque[tuple[str, str]]] = {}
        self._lock = threading.Lock()

    def history(self, conversation_id: str) -> list[tuple[str, str]]:
        with self._lock:
            return list(self._turns.get(conversation_id, ()))

    def append(self, conversation_id: str, question: str, answer: str) -> None:
        with self._lock:
            turns = self._turns.setdefault(conversation_id, deque(maxlen=self.max_turns))
            turns.append((question, answer))

    def clear(self, conversation_id: str) -> None:
        with self._lock:
            self._turns.pop(conversation_id, None)


def _get_llm() -> Any:
    """Return a streaming-capable LangChain chat model from ``settings``."""
    if settings.llm_provider == "openai":
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(model=settings.openai_chat_model, temperature=0, streaming=True)

    from langchain_ollama import ChatOllama

    return ChatOllama(model=settings.ollama_chat_model, temperature=0)


def _text_of(message: Any) -> str:
    content = message.content if hasattr(message, "content") else message
    return content if isinstance(content, str) else ""


class LangChainGenerator:
    """:class:`ChatGenerator` over a LangChain chat model.

    Args:
        llm: Any LangChain chat model; built from ``settings`` when omitted.
        memory: Conversation history store; a fresh one when omitted.
    """

    def __init__(self, llm: Any = None, memory: ConversationMemory | None = None) -> None:
        self._llm = llm
        self.memory = memory or ConversationMemory()

    @property
    def llm(self) -> Any:
        if self._llm is None:
            self._llm = _get_llm()
        return self._llm

    def _messages(self, system: str, prompt: str, conversation_id: str) -> list[BaseMessage]:
        messages: list[BaseMessage] = [SystemMessage(content=system)]
        for question, answer in self.memory.history(conversation_id):
            messages.append(HumanMessage(content=question))
            messages.append(AIMessage(content=answer))
        messages.append(HumanMessage(content=prompt))
        return messages

    def generate(
        self, system: str, prompt: str, *, question: str, conversation_id: str
    ) -> str:
        response = self.llm.invoke(self._messages(system, prompt, conversation_id))
        answer = _text_of(response)
        self.memory.append(conversation_id, question, answer)
        return answer

    async def astream(
        self, system: str, prompt: str, *, question: str, conversation_id: str
    ) -> AsyncIterator[str]:
        """Yield text fragments as the model produces them.

        The turn is only remembered once the stream has run to completion.
        """
        parts: list[str] = []
        async for chunk in self.llm.astream(self._messages(system, prompt, conversation_id)):
            text = _text_of(chunk)
            if text:
                parts.append(text)
                yield text
        self.memory.append(conversation_id, question, "".join(parts))

    def reset(self, conversation_id: str) -> None:
        """Forget every remembered turn of *conversation_id*."""
        self.memory.clear(conversation_id)

"""Generation capability tests: conversation memory and the LangChain adapter.

The chat model is a ``MagicMock``; no Ollama or OpenAI call is made.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from wikirag.rag.llm import ConversationMemory, LangChainGenerator, _get_llm


async def _make_astream(*tokens: str):
    """Async generator that yields fake LLM chunk objects."""
    for token in tokens:
        chunk = MagicMock()
        chunk.content = token
        yield chunk


class TestConversationMemory:
    def test_append_and_history(self) -> None:
        memory = ConversationMemory()
        memory.append("c1", "q1", "a1")
        memory.append("c1", "q2", "a2")
        memory.append("c2", "other", "x")

        assert memory.history("c1") == [("q1", "a1"), ("q2", "a2")]
        assert memory.history("c2") == [("other", "x")]
        assert memory.history("missing") == []

    def test_bounded_to_max_turns(self) -> None:
        memory = ConversationMemory(max_turns=2)
        for i in range(5):
            memory.append("c", f"q{i}", f"a{i}")
        assert memory.history("c") == [("q3", "a3"), ("q4", "a4")]

    def test_clear(self) -> None:
        memory = ConversationMemory()
        memory.append("c", "q", "a")
        memory.clear("c")
        memory.clear("never-used")
        assert memory.history("c") == []


class TestLangChainGenerator:
    def test_generate_builds_messages_and_remembers_turn(self) -> None:
        llm = MagicMock()
        llm.invoke.return_value = AIMessage(content="Answer one")
        generator = LangChainGenerator(llm=llm)

        result = generator.generate("SYS", "prompt one", question="q1", conversation_id="001")

        assert result == "Answer one"
        messages = llm.invoke.call_args.args[0]
        assert isinstance(messages[0], SystemMessage)
        assert messages[0].content == "SYS"
        assert isinstance(messages[-1], HumanMessage)
        assert messages[-1].content == "prompt one"
        assert generator.memory.history("001") == [("q1", "Answer one")]

    def test_history_sent_on_follow_up(self) -> None:
        llm = MagicMock()
        llm.invoke.side_effect = [AIMessage(content="first"), AIMessage(content="second")]
        generator = LangChainGenerator(llm=llm)

        generator.generate("SYS", "p1", question="q1", conversation_id="001")
        generator.generate("SYS", "p2", question="q2", conversation_id="001")

        messages = llm.invoke.call_args.args[0]
        assert [type(m) for m in messages] == [SystemMessage, HumanMessage, AIMessage, HumanMessage]
        assert messages[1].content == "q1"
        assert messages[2].content == "first"

    async def test_astream_yields_text_and_remembers_on_completion(self) -> None:
        llm = MagicMock()
        llm.astream.return_value = _make_astream("Hel", "", "lo")
        generator = LangChainGenerator(llm=llm)

        parts = [
            p async for p in generator.astream("SYS", "p", question="q", conversation_id="001")
        ]

        assert parts == ["Hel", "lo"]
        assert generator.memory.history("001") == [("q", "Hello")]

    async def test_abandoned_stream_not_remembered(self) -> None:
        llm = MagicMock()
        llm.astream.return_value = _make_astream("a", "b", "c")
        generator = LangChainGenerator(llm=llm)

        stream = generator.astream("SYS", "p", question="q", conversation_id="001")
        assert await stream.__anext__() == "a"
        await stream.aclose()

        assert generator.memory.history("001") == []

    def test_reset_forgets_history(self) -> None:
        llm = MagicMock()
        llm.invoke.side_effect = [AIMessage(content="first"), AIMessage(content="second")]
        generator = LangChainGenerator(llm=llm)

        generator.generate("SYS", "p1", question="q1", conversation_id="001")
        generator.reset("001")
        generator.generate("SYS", "p2", question="q2", conversation_id="001")

        messages = llm.invoke.call_args.args[0]
        assert [type(m) for m in messages] == [SystemMessage, HumanMessage]
        assert generator.memory.history("001") == [("q2", "second")]

    def test_llm_built_lazily(self) -> None:
        with patch("wikirag.rag.llm._get_llm") as get_llm:
            generator = LangChainGenerator()
            get_llm.assert_not_called()
            assert generator.llm is get_llm.return_value
            assert generator.llm is get_llm.return_value
            get_llm.assert_called_once()


class TestGetLlm:
    def test_ollama_default(self) -> None:
        with (
            patch("wikirag.rag.llm.settings.llm_provider", "ollama"),
            patch("langchain_ollama.ChatOllama") as chat_ollama,
        ):
            llm = _get_llm()
        assert llm is chat_ollama.return_value

    def test_openai(self) -> None:
        with (
            patch("wikirag.rag.llm.settings.llm_provider", "openai"),
            patch("langchain_openai.ChatOpenAI") as chat_openai,
        ):
            llm = _get_llm()
        assert llm is chat_openai.return_value
        assert chat_openai.call_args.kwargs["streaming"] is True

"""Unit tests for ChatOrchestrator."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import json
import random
import threading
import time
import pytest
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import Mock
from models.conversation import Role
from models.document import Document
from services.analytics_ledger import InMemoryQueryLedger
from services.chat_orchestrator import ChatOrchestrator, ChatResult
from services.context_assembler import ContextAssembler
from services.document_store import InMemoryDocumentStore
from services.errors import GenerationFailed, InvalidInput, RetrievalUnavailable, AnalyticsRecordFailed
from services.llm_client import LLMResponse, LLMClientError, LLMError
from services.retrieval_engine import RetrievalEngine
from services.session_store import SessionStore
from services.telemetry_logger import TelemetryLogger

SENTINEL = "No relevant information found in the knowledge base."


def llm_response(text):
    return LLMResponse(text=text, tokens_input=100, tokens_output=20, latency_ms=5, model_used="test-model")


class EchoLLM:
    """Generation stand-in that answers with the last user message."""

    def __init__(self, delay=0.0):
        self.delay = delay
        self.calls = []
        self._lock = threading.Lock()

    def generate(self, messages, max_tokens=500):
        with self._lock:
            self.calls.append(messages)
        if self.delay:
            time.sleep(random.uniform(0, self.delay))
        return llm_response(f"echo: {messages[-1]['content']}")


@pytest.fixture
def documents():
    return [
        Document(document_id="kb-1", title="How to Reset Your Password", body="Use the Forgot Password link."),
        Document(document_id="kb-2", title="Pricing", body="The Pro plan costs $9.99 per month."),
    ]


@pytest.fixture
def session_store():
    return SessionStore()


@pytest.fixture
def ledger():
    return InMemoryQueryLedger()


@pytest.fixture
def telemetry(tmp_path):
    logger = TelemetryLogger(log_file_path=str(tmp_path / "telemetry.jsonl"))
    yield logger
    logger.close()


def build(session_store, ledger, llm, document_store=None, telemetry=None, **kwargs):
    return ChatOrchestrator(
        session_store=session_store,
        retrieval_engine=RetrievalEngine(document_store or InMemoryDocumentStore()),
        context_assembler=ContextAssembler(),
        analytics_ledger=ledger,
        llm_client=llm,
        telemetry=telemetry,
        **kwargs
    )


class TestValidation:
    """Input validation happens before any side effect."""

    @pytest.mark.parametrize("session_id, message", [
        ("s1", ""),
        ("s1", "   "),
        ("s1", None),
        ("", "hello"),
        ("  ", "hello"),
        (None, "hello"),
    ])
    def test_invalid_input_has_no_side_effects(self, session_store, ledger, session_id, message):
        llm = Mock()
        orchestrator = build(session_store, ledger, llm)

        with pytest.raises(InvalidInput):
            orchestrator.handle_turn(session_id, message)

        assert session_store.session_count() == 0
        assert ledger.stats().total_queries == 0
        llm.generate.assert_not_called()

    def test_history_window_must_be_positive(self, session_store, ledger):
        with pytest.raises(ValueError):
            build(session_store, ledger, Mock(), history_window=0)


class TestHandleTurn:
    """Test suite for the happy path and degrade paths."""

    def test_end_to_end_empty_store(self, session_store, ledger):
        """Empty store: sentinel context, user turn stored, one ledger entry."""
        llm = EchoLLM()
        orchestrator = build(session_store, ledger, llm)

        result = orchestrator.handle_turn("s1", "hello")

        system_message = llm.calls[0][0]
        assert system_message["role"] == "system"
        assert system_message["content"].endswith(SENTINEL)
        assert llm.calls[0][1:] == [{"role": "user", "content": "hello"}]

        turns = session_store.read_all("s1")
        assert [(turn.role, turn.content) for turn in turns] == [
            (Role.USER, "hello"),
            (Role.ASSISTANT, "echo: hello"),
        ]

        entries = ledger.top_n(10)
        assert [(entry.query, entry.frequency) for entry in entries] == [("hello", 1)]

        assert isinstance(result, ChatResult)
        assert result.response_text == "echo: hello"
        assert result.cited_documents == []

    def test_cites_documents_in_retrieval_order(self, session_store, ledger, documents):
        llm = EchoLLM()
        orchestrator = build(session_store, ledger, llm, InMemoryDocumentStore(documents))

        result = orchestrator.handle_turn("s1", "How do I reset my password?")

        assert [document.document_id for document in result.cited_documents] == ["kb-1"]
        assert "[Article 1]\nTitle: How to Reset Your Password" in llm.calls[0][0]["content"]

    def test_prompt_uses_windowed_history(self, session_store, ledger):
        """Test that only the most recent turns, ending with the new one, are sent."""
        llm = EchoLLM()
        orchestrator = build(session_store, ledger, llm, history_window=3)

        for i in range(4):
            orchestrator.handle_turn("s1", f"question {i}")

        last_prompt = llm.calls[-1]
        assert [message["content"] for message in last_prompt[1:]] == [
            "question 2", "echo: question 2", "question 3"
        ]
        # Full history is still retained
        assert len(session_store.read_all("s1")) == 8

    def test_sessions_are_isolated(self, session_store, ledger):
        llm = EchoLLM()
        orchestrator = build(session_store, ledger, llm)

        orchestrator.handle_turn("a", "first")
        orchestrator.handle_turn("b", "second")

        assert [message["content"] for message in llm.calls[1][1:]] == ["second"]
        assert len(session_store.read_all("a")) == 2

    def test_generation_failure_keeps_user_turn(self, session_store, ledger, telemetry, tmp_path):
        """Test that a failed generation surfaces GenerationFailed and stores no answer."""
        llm = Mock()
        llm.generate.side_effect = LLMClientError(
            LLMError(code="TIMEOUT_ERROR", message="Request timed out. Please try again.", details={"model": "m"})
        )
        orchestrator = build(session_store, ledger, llm, telemetry=telemetry)

        with pytest.raises(GenerationFailed) as exc_info:
            orchestrator.handle_turn("s1", "hello")

        assert exc_info.value.code == "GENERATION_FAILED"
        assert exc_info.value.details["cause"] == "TIMEOUT_ERROR"
        turns = session_store.read_all("s1")
        assert [(turn.role, turn.content) for turn in turns] == [(Role.USER, "hello")]

        with open(tmp_path / "telemetry.jsonl") as f:
            events = [json.loads(line) for line in f]
        assert events[-1]["category"] == "GENERATION_FAILED"

    def test_analytics_failure_is_swallowed(self, session_store, telemetry, tmp_path):
        ledger = Mock()
        ledger.record.side_effect = AnalyticsRecordFailed("db down")
        orchestrator = build(session_store, ledger, EchoLLM(), telemetry=telemetry)

        result = orchestrator.handle_turn("s1", "hello")

        assert result.response_text == "echo: hello"
        with open(tmp_path / "telemetry.jsonl") as f:
            events = [json.loads(line) for line in f]
        assert events[0]["category"] == "ANALYTICS_RECORD_FAILED"
        assert events[-1]["event"] == "chat_turn"

    def test_retrieval_unavailable_degrades_to_sentinel(self, session_store, ledger, telemetry, tmp_path):
        """Test that an unreachable store yields the empty-context sentinel."""
        document_store = Mock()
        document_store.search.side_effect = RetrievalUnavailable("store down")
        llm = EchoLLM()
        orchestrator = build(session_store, ledger, llm, document_store=document_store, telemetry=telemetry)

        result = orchestrator.handle_turn("s1", "password")

        assert result.cited_documents == []
        assert llm.calls[0][0]["content"].endswith(SENTINEL)
        with open(tmp_path / "telemetry.jsonl") as f:
            events = [json.loads(line) for line in f]
        assert events[0]["category"] == "RETRIEVAL_UNAVAILABLE"
        assert events[-1]["retrieval_degraded"] is True

    def test_unexpected_retrieval_error_degrades(self, session_store, ledger):
        document_store = Mock()
        document_store.search.side_effect = KeyError("title")
        orchestrator = build(session_store, ledger, EchoLLM(), document_store=document_store)

        assert orchestrator.handle_turn("s1", "password").cited_documents == []

    def test_token_counter_reported(self, session_store, ledger, telemetry, tmp_path):
        orchestrator = build(
            session_store, ledger, EchoLLM(), telemetry=telemetry,
            token_counter=lambda text: len(text.split())
        )

        orchestrator.handle_turn("s1", "reset my password")

        with open(tmp_path / "telemetry.jsonl") as f:
            turn_event = [json.loads(line) for line in f][-1]
        assert turn_event["prompt_tokens"] > 3


class TestConcurrency:
    """Concurrent turns for one session are serialized."""

    def test_interleaved_requests_across_sessions(self, session_store, ledger):
        """50 interleaved requests over 5 sessions keep every session consistent."""
        llm = EchoLLM(delay=0.005)
        orchestrator = build(session_store, ledger, llm)
        session_ids = [f"s{i}" for i in range(5)]
        requests = [(session_ids[n % 5], f"message {n}") for n in range(50)]

        with ThreadPoolExecutor(max_workers=16) as pool:
            results = list(pool.map(lambda req: orchestrator.handle_turn(*req), requests))

        assert all(result.response_text.startswith("echo: message") for result in results)

        for session_id in session_ids:
            turns = session_store.read_all(session_id)
            assert len(turns) == 20
            expected_messages = {message for sid, message in requests if sid == session_id}
            user_turns = [turn.content for turn in turns if turn.role == Role.USER]
            assert sorted(user_turns) == sorted(expected_messages)
            # Strict user/assistant alternation, each answer following its own question
            for question, answer in zip(turns[::2], turns[1::2]):
                assert question.role == Role.USER
                assert answer.role == Role.ASSISTANT
                assert answer.content == f"echo: {question.content}"
            timestamps = [turn.timestamp for turn in turns]
            assert timestamps == sorted(timestamps)

        # Every prompt ended with the user turn it was built for
        for messages in llm.calls:
            assert messages[-1]["role"] == "user"

        assert ledger.stats().total_frequency == 50

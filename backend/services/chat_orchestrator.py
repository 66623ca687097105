"""Session orchestrator tying retrieval, context, history and generation together."""
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from config import HISTORY_WINDOW_TURNS, MAX_RESPONSE_TOKENS
from models.conversation import ConversationTurn, Role
from models.document import Document
from services.analytics_ledger import QueryAnalyticsLedger
from services.context_assembler import ContextAssembler
from services.errors import (
    AnalyticsRecordFailed,
    GenerationFailed,
    InvalidInput,
    RetrievalUnavailable,
)
from services.llm_client import LLMClient, LLMClientError, SYSTEM_PREAMBLE
from services.retrieval_engine import RetrievalEngine
from services.session_store import SessionStore
from services.telemetry_logger import TelemetryLogger

logger = logging.getLogger(__name__)


@dataclass
class ChatResult:
    """Outcome of one successfully answered chat turn."""
    session_id: str
    response_text: str
    cited_documents: List[Document] = field(default_factory=list)


class ChatOrchestrator:
    """
    Handle one user message end to end.

    Steps, in order:
    1. Validate the session id and message (``InvalidInput``, no side effects)
    2. Record the query in the analytics ledger (best effort)
    3. Retrieve documents; an unavailable store degrades to no documents
    4. Assemble the bounded context
    5. Append the user turn
    6. Build the prompt from the preamble, context and windowed history
    7. Generate; on success append the assistant turn
    8. On generation failure raise ``GenerationFailed``; the user turn stays

    Steps 5-7 run under the session's lock so concurrent requests for the same
    session are serialized.
    """

    def __init__(
        self,
        session_store: SessionStore,
        retrieval_engine: RetrievalEngine,
        context_assembler: ContextAssembler,
        analytics_ledger: QueryAnalyticsLedger,
        llm_client: LLMClient,
        telemetry: Optional[TelemetryLogger] = None,
        history_window: int = HISTORY_WINDOW_TURNS,
        max_response_tokens: int = MAX_RESPONSE_TOKENS,
        preamble: str = SYSTEM_PREAMBLE,
        token_counter: Optional[Callable[[str], int]] = None
    ):
        if history_window <= 0:
            raise ValueError("history_window must be positive")
        self.session_store = session_store
        self.retrieval_engine = retrieval_engine
        self.context_assembler = context_assembler
        self.analytics_ledger = analytics_ledger
        self.llm_client = llm_client
        self.telemetry = telemetry
        self.history_window = history_window
        self.max_response_tokens = max_response_tokens
        self.preamble = preamble
        self.token_counter = token_counter
        logger.info(f"Initialized ChatOrchestrator (history window: {history_window} turns)")

    def handle_turn(self, session_id: Optional[str], user_message: Optional[str]) -> ChatResult:
        """
        Answer ``user_message`` within the conversation ``session_id``.

        Raises:
            InvalidInput: If the session id or message is missing or blank
            GenerationFailed: If the model call fails or times out
        """
        if not session_id or not session_id.strip():
            raise InvalidInput("Message and sessionId are required", {"field": "sessionId"})
        if not user_message or not user_message.strip():
            raise InvalidInput("Message and sessionId are required", {"field": "message"})

        start_time = time.time()
        logger.info(f"Handling turn for session {session_id}: {user_message[:100]}")

        self._record_query(user_message)
        documents, retrieval_degraded = self._retrieve(user_message)
        context = self.context_assembler.assemble(documents)

        with self.session_store.session_lock(session_id):
            self.session_store.append(session_id, ConversationTurn(role=Role.USER, content=user_message))
            history = self.session_store.windowed(session_id, self.history_window)
            messages = LLMClient.build_messages(context, history, self.preamble)
            prompt_tokens = self._count_tokens(messages)

            try:
                llm_response = self.llm_client.generate(messages, max_tokens=self.max_response_tokens)
            except LLMClientError as e:
                details = {"session_id": session_id, "cause": e.error.code, **e.error.details}
                self._report_failure(GenerationFailed.code, e.error.message, **details)
                raise GenerationFailed(f"Failed to generate a response: {e.error.message}", details) from e

            self.session_store.append(
                session_id, ConversationTurn(role=Role.ASSISTANT, content=llm_response.text)
            )

        latency_ms = int((time.time() - start_time) * 1000)
        if self.telemetry is not None:
            self.telemetry.log_turn(
                session_id=session_id,
                cited_document_ids=[document.document_id for document in documents],
                history_turns=len(history),
                latency_ms=latency_ms,
                prompt_tokens=prompt_tokens,
                tokens_input=llm_response.tokens_input,
                tokens_output=llm_response.tokens_output,
                retrieval_degraded=retrieval_degraded
            )
        logger.info(f"Turn for session {session_id} answered in {latency_ms}ms with {len(documents)} documents")

        return ChatResult(
            session_id=session_id,
            response_text=llm_response.text,
            cited_documents=documents
        )

    def _record_query(self, user_message: str) -> None:
        # Analytics is telemetry: any failure is reported, never raised
        try:
            self.analytics_ledger.record(user_message)
        except Exception as e:
            logger.warning(f"Query logging error: {e}")
            self._report_failure(AnalyticsRecordFailed.code, str(e))

    def _retrieve(self, user_message: str) -> Tuple[List[Document], bool]:
        try:
            return self.retrieval_engine.retrieve(user_message), False
        except RetrievalUnavailable as e:
            logger.warning(f"Retrieval unavailable, continuing without context: {e.message}")
            self._report_failure(RetrievalUnavailable.code, e.message, **e.details)
        except Exception as e:
            logger.error(f"Search error: {e}", exc_info=True)
            self._report_failure(RetrievalUnavailable.code, str(e))
        return [], True

    def _count_tokens(self, messages: List[dict]) -> Optional[int]:
        if self.token_counter is None:
            return None
        return sum(self.token_counter(message["content"]) for message in messages)

    def _report_failure(self, category: str, message: str, **details) -> None:
        if self.telemetry is not None:
            self.telemetry.log_failure(category, message, **details)

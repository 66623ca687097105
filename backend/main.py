"""Main entry point for the Knowledge Base Assistant API."""
import logging
import tiktoken
from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import (
    PORT,
    LOG_LEVEL,
    LOG_FORMAT,
    CORS_ORIGINS,
    STORAGE_BACKEND,
    MAX_SESSIONS,
    TOP_QUERIES_DEFAULT_LIMIT,
    TOP_QUERIES_MAX_LIMIT,
)
from logger import setup_logging
from models.api import (
    ChatRequest,
    ChatResponse,
    CitedDocument,
    HistoryTurn,
    HistoryResponse,
    ClearHistoryResponse,
    TopQuery,
    TopQueriesResponse,
    StatsResponse,
)
from seed_documents import sample_documents
from services.analytics_ledger import QueryAnalyticsLedger, InMemoryQueryLedger, SupabaseQueryLedger
from services.chat_orchestrator import ChatOrchestrator
from services.context_assembler import ContextAssembler
from services.document_store import DocumentStore, InMemoryDocumentStore, SupabaseDocumentStore
from services.errors import AssistantError
from services.llm_client import LLMClient
from services.retrieval_engine import RetrievalEngine
from services.session_store import SessionStore, LRUEvictionPolicy, NoEvictionPolicy
from services.telemetry_logger import TelemetryLogger

# Initialize logging
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Knowledge Base Assistant",
    description="Retrieval-augmented support assistant answering from a knowledge base",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize services (will be done on startup)
session_store: SessionStore = None
analytics_ledger: QueryAnalyticsLedger = None
chat_orchestrator: ChatOrchestrator = None
telemetry_logger: TelemetryLogger = None


def build_document_store(backend: str) -> DocumentStore:
    """Document store for the configured storage backend."""
    if backend == "supabase":
        return SupabaseDocumentStore()
    if backend == "memory":
        return InMemoryDocumentStore(sample_documents())
    raise ValueError(f"Unknown STORAGE_BACKEND: {backend}")


def build_analytics_ledger(backend: str) -> QueryAnalyticsLedger:
    """Query analytics ledger for the configured storage backend."""
    if backend == "supabase":
        return SupabaseQueryLedger()
    if backend == "memory":
        return InMemoryQueryLedger()
    raise ValueError(f"Unknown STORAGE_BACKEND: {backend}")


def build_token_counter():
    """Prompt token estimator, or None when the encoding cannot be loaded."""
    try:
        encoder = tiktoken.get_encoding("o200k_base")
    except Exception as e:
        logger.warning(f"Token counting disabled, could not load tiktoken encoding: {e}")
        return None
    logger.info("Initialized tiktoken encoder (o200k_base)")
    return lambda text: len(encoder.encode(text))


@app.on_event("startup")
def startup_event():
    """Initialize services on startup."""
    global session_store, analytics_ledger, chat_orchestrator, telemetry_logger

    if LOG_FORMAT == "json":
        setup_logging(LOG_LEVEL)

    logger.info(f"Initializing Knowledge Base Assistant services (storage: {STORAGE_BACKEND})...")

    try:
        eviction_policy = LRUEvictionPolicy(MAX_SESSIONS) if MAX_SESSIONS > 0 else NoEvictionPolicy()
        session_store = SessionStore(eviction_policy)

        analytics_ledger = build_analytics_ledger(STORAGE_BACKEND)
        retrieval_engine = RetrievalEngine(build_document_store(STORAGE_BACKEND))
        telemetry_logger = TelemetryLogger()

        chat_orchestrator = ChatOrchestrator(
            session_store=session_store,
            retrieval_engine=retrieval_engine,
            context_assembler=ContextAssembler(),
            analytics_ledger=analytics_ledger,
            llm_client=LLMClient(),
            telemetry=telemetry_logger,
            token_counter=build_token_counter()
        )

        logger.info("All services initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}", exc_info=True)
        raise


@app.on_event("shutdown")
def shutdown_event():
    """Flush and close the telemetry log."""
    if telemetry_logger is not None:
        telemetry_logger.close()


@app.exception_handler(AssistantError)
async def assistant_error_handler(request: Request, exc: AssistantError) -> JSONResponse:
    """Render engine errors as structured JSON with a stable category code."""
    logger.warning(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render any unexpected failure as a structured 500."""
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return _internal_error("Internal server error", exc)


def _internal_error(message: str, error: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"error": message, "code": "INTERNAL_ERROR", "details": {"message": str(error)}}
    )


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "Knowledge Base Assistant API"}


@app.get("/health")
def health():
    """Detailed health check."""
    return {
        "status": "healthy",
        "service": "kb-assistant",
        "version": "1.0.0",
        "storage_backend": STORAGE_BACKEND
    }


@app.post("/api/chat", response_model=ChatResponse)
def chat_endpoint(request: ChatRequest):
    """
    Answer a chat message using the knowledge base.

    Handlers are synchronous so each request runs on the server's worker
    thread pool; turns for the same session are serialized by the orchestrator.

    Args:
        request: ChatRequest with message and sessionId

    Returns:
        ChatResponse with the answer and the cited articles

    Raises:
        InvalidInput: Rendered as 400 when message or sessionId is missing
        GenerationFailed: Rendered as 503 when the model call fails
    """
    try:
        result = chat_orchestrator.handle_turn(request.session_id, request.message)
    except AssistantError:
        raise
    except Exception as e:
        logger.error(f"Chat error: {e}", exc_info=True)
        return _internal_error("Failed to process chat message", e)

    return ChatResponse(
        response_text=result.response_text,
        session_id=result.session_id,
        cited_documents=[
            CitedDocument(title=document.title, id=document.document_id)
            for document in result.cited_documents
        ]
    )


@app.get("/api/chat/history/{session_id}", response_model=HistoryResponse)
def get_history(session_id: str) -> HistoryResponse:
    """Full conversation history for a session; empty for unknown sessions."""
    turns = session_store.read_all(session_id)
    return HistoryResponse(
        history=[
            HistoryTurn(role=turn.role.value, content=turn.content, timestamp=turn.timestamp)
            for turn in turns
        ]
    )


@app.delete("/api/chat/history/{session_id}", response_model=ClearHistoryResponse)
def clear_history(session_id: str) -> ClearHistoryResponse:
    """Clear a session's history. Idempotent."""
    session_store.clear(session_id)
    return ClearHistoryResponse(message="Conversation history cleared")


@app.get("/api/analytics/top-queries", response_model=TopQueriesResponse)
def top_queries(
    limit: int = Query(TOP_QUERIES_DEFAULT_LIMIT, ge=0, le=TOP_QUERIES_MAX_LIMIT)
):
    """Most frequently asked queries, most recent first among equal frequencies."""
    try:
        entries = analytics_ledger.top_n(limit)
    except Exception as e:
        logger.error(f"Analytics error: {e}", exc_info=True)
        return _internal_error("Failed to fetch analytics", e)

    return TopQueriesResponse(
        count=len(entries),
        queries=[
            TopQuery(
                query=entry.query,
                frequency=entry.frequency,
                last_asked=entry.last_asked,
                created_at=entry.created_at
            )
            for entry in entries
        ]
    )


@app.get("/api/analytics/stats", response_model=StatsResponse)
def analytics_stats():
    """Aggregate query statistics."""
    try:
        stats = analytics_ledger.stats()
    except Exception as e:
        logger.error(f"Stats error: {e}", exc_info=True)
        return _internal_error("Failed to fetch stats", e)

    return StatsResponse(
        total_queries=stats.total_queries,
        unique_queries=stats.unique_queries,
        total_frequency=stats.total_frequency
    )


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting Knowledge Base Assistant API on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)

"""Data models for the Knowledge Base Assistant."""
from .document import Document
from .conversation import ConversationTurn, Role
from .query_log import QueryLogEntry, QueryStats
from .api import (
    ChatRequest,
    ChatResponse,
    CitedDocument,
    HistoryTurn,
    HistoryResponse,
    ClearHistoryResponse,
    TopQuery,
    TopQueriesResponse,
    StatsResponse,
    ErrorResponse,
)

__all__ = [
    "Document",
    "ConversationTurn",
    "Role",
    "QueryLogEntry",
    "QueryStats",
    "ChatRequest",
    "ChatResponse",
    "CitedDocument",
    "HistoryTurn",
    "HistoryResponse",
    "ClearHistoryResponse",
    "TopQuery",
    "TopQueriesResponse",
    "StatsResponse",
    "ErrorResponse",
]

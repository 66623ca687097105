"""Request and response schemas for the HTTP API."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CamelModel(BaseModel):
    """Base schema exposing camelCase field names on the wire."""
    model_config = ConfigDict(populate_by_name=True)


class ChatRequest(CamelModel):
    """Body of POST /api/chat. Emptiness is validated by the orchestrator."""
    message: Optional[str] = None
    session_id: Optional[str] = Field(default=None, alias="sessionId")


class CitedDocument(CamelModel):
    """Knowledge base article surfaced while answering."""
    title: str
    id: str


class ChatResponse(CamelModel):
    """Body returned by POST /api/chat."""
    response_text: str = Field(alias="responseText")
    session_id: str = Field(alias="sessionId")
    cited_documents: List[CitedDocument] = Field(default_factory=list, alias="citedDocuments")


class HistoryTurn(CamelModel):
    """One stored conversation turn."""
    role: str
    content: str
    timestamp: datetime


class HistoryResponse(CamelModel):
    """Body returned by GET /api/chat/history/{sessionId}."""
    history: List[HistoryTurn]


class ClearHistoryResponse(CamelModel):
    """Acknowledgement returned by DELETE /api/chat/history/{sessionId}."""
    message: str


class TopQuery(CamelModel):
    """Ranked entry of the query analytics ledger."""
    query: str
    frequency: int
    last_asked: datetime = Field(alias="lastAsked")
    created_at: datetime = Field(alias="createdAt")


class TopQueriesResponse(CamelModel):
    """Body returned by GET /api/analytics/top-queries."""
    count: int
    queries: List[TopQuery]


class StatsResponse(CamelModel):
    """Body returned by GET /api/analytics/stats."""
    total_queries: int = Field(alias="totalQueries")
    unique_queries: int = Field(alias="uniqueQueries")
    total_frequency: int = Field(alias="totalFrequency")


class ErrorResponse(CamelModel):
    """Structured error body."""
    error: str
    code: str
    details: Dict[str, Any] = Field(default_factory=dict)

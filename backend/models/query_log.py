"""Query analytics models."""
from dataclasses import dataclass
from datetime import datetime


@dataclass
class QueryLogEntry:
    """Frequency record for one normalized query."""
    query: str  # normalized: lowercased and trimmed
    frequency: int
    last_asked: datetime
    created_at: datetime


@dataclass(frozen=True)
class QueryStats:
    """Aggregate figures derived from the query ledger."""
    total_queries: int  # number of ledger entries
    unique_queries: int  # distinct normalized queries
    total_frequency: int  # sum of all frequencies

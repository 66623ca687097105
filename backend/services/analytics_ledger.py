"""Query frequency analytics with upsert semantics."""
import dataclasses
import logging
import threading
from datetime import datetime
from typing import Callable, Dict, List, Optional

from supabase import create_client, Client

from config import SUPABASE_URL, SUPABASE_KEY
from models.conversation import utc_now
from models.query_log import QueryLogEntry, QueryStats
from services.errors import AnalyticsRecordFailed
from services.keyed_lock import KeyedLock
from services.supabase_rows import parse_timestamp

logger = logging.getLogger(__name__)


def normalize_query(query: str) -> str:
    """Natural key of a query: lowercased and trimmed."""
    return query.strip().lower()


class QueryAnalyticsLedger:
    """
    Records how often each normalized query is asked.

    ``record`` must be atomic per normalized query: concurrent calls for the
    same key never lose an increment.
    """

    def record(self, query: str) -> QueryLogEntry:
        raise NotImplementedError

    def top_n(self, n: int) -> List[QueryLogEntry]:
        raise NotImplementedError

    def stats(self) -> QueryStats:
        raise NotImplementedError

    @staticmethod
    def _normalize_or_fail(query: str) -> str:
        normalized = normalize_query(query or "")
        if not normalized:
            raise AnalyticsRecordFailed("Cannot record an empty query")
        return normalized


class InMemoryQueryLedger(QueryAnalyticsLedger):
    """Ledger kept in process memory, locked per normalized query."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or utc_now
        self._entries: Dict[str, QueryLogEntry] = {}
        self._guard = threading.Lock()
        self._key_locks = KeyedLock()
        logger.info("Initialized InMemoryQueryLedger")

    def record(self, query: str) -> QueryLogEntry:
        normalized = self._normalize_or_fail(query)

        with self._key_locks.hold(normalized):
            now = self._clock()
            with self._guard:
                entry = self._entries.get(normalized)
                if entry is None:
                    entry = QueryLogEntry(query=normalized, frequency=1, last_asked=now, created_at=now)
                    self._entries[normalized] = entry
                else:
                    entry.frequency += 1
                    entry.last_asked = now
                snapshot = dataclasses.replace(entry)

        logger.debug(f"Recorded query '{normalized}' (frequency={snapshot.frequency})")
        return snapshot

    def _snapshot(self) -> List[QueryLogEntry]:
        with self._guard:
            return [dataclasses.replace(entry) for entry in self._entries.values()]

    def top_n(self, n: int) -> List[QueryLogEntry]:
        """Entries by frequency descending, most recently asked first on ties."""
        if n <= 0:
            return []
        entries = self._snapshot()
        entries.sort(key=lambda entry: (-entry.frequency, -entry.last_asked.timestamp()))
        return entries[:n]

    def stats(self) -> QueryStats:
        entries = self._snapshot()
        return QueryStats(
            total_queries=len(entries),
            unique_queries=len({entry.query for entry in entries}),
            total_frequency=sum(entry.frequency for entry in entries)
        )


class SupabaseQueryLedger(QueryAnalyticsLedger):
    """Ledger backed by a Supabase ``query_logs`` table."""

    COLUMNS = "query, frequency, last_asked, created_at"

    def __init__(
        self,
        supabase_url: str = SUPABASE_URL,
        supabase_key: str = SUPABASE_KEY,
        table_name: str = "query_logs"
    ):
        if not supabase_url or not supabase_key:
            raise ValueError("SUPABASE_URL and SUPABASE_KEY environment variables are required")

        self.table_name = table_name
        self.client: Client = create_client(supabase_url, supabase_key)
        logger.info(f"Initialized SupabaseQueryLedger with table: {table_name}")

    def record(self, query: str) -> QueryLogEntry:
        """
        Upsert the normalized query in a single statement.

        The RPC function should be created in Supabase with:
        CREATE OR REPLACE FUNCTION record_query(normalized_query text)
        RETURNS SETOF query_logs
        LANGUAGE sql
        AS $$
          INSERT INTO query_logs (query, frequency, last_asked, created_at)
          VALUES (normalized_query, 1, now(), now())
          ON CONFLICT (query) DO UPDATE
            SET frequency = query_logs.frequency + 1,
                last_asked = now()
          RETURNING *;
        $$;
        """
        normalized = self._normalize_or_fail(query)

        try:
            response = self.client.rpc("record_query", {"normalized_query": normalized}).execute()
        except Exception as e:
            error_msg = f"Failed to record query: {str(e)}"
            logger.error(error_msg)
            raise AnalyticsRecordFailed(error_msg, {"query": normalized})

        if not response.data:
            raise AnalyticsRecordFailed("record_query returned no row", {"query": normalized})
        return self._row_to_entry(response.data[0])

    def top_n(self, n: int) -> List[QueryLogEntry]:
        if n <= 0:
            return []

        try:
            response = (
                self.client.table(self.table_name)
                .select(self.COLUMNS)
                .order("frequency", desc=True)
                .order("last_asked", desc=True)
                .limit(n)
                .execute()
            )
        except Exception as e:
            error_msg = f"Failed to fetch top queries: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)

        return [self._row_to_entry(row) for row in (response.data or [])]

    def stats(self) -> QueryStats:
        """
        Aggregate over the whole ledger in one server-side statement.

        The RPC function should be created in Supabase with:
        CREATE OR REPLACE FUNCTION query_stats()
        RETURNS TABLE (total_queries bigint, unique_queries bigint, total_frequency bigint)
        LANGUAGE sql STABLE
        AS $$
          SELECT count(*), count(DISTINCT query), coalesce(sum(frequency), 0)
          FROM query_logs;
        $$;
        """
        try:
            response = self.client.rpc("query_stats", {}).execute()
        except Exception as e:
            error_msg = f"Failed to fetch query stats: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)

        if not response.data:
            return QueryStats(total_queries=0, unique_queries=0, total_frequency=0)
        row = response.data[0]
        return QueryStats(
            total_queries=int(row["total_queries"] or 0),
            unique_queries=int(row["unique_queries"] or 0),
            total_frequency=int(row["total_frequency"] or 0)
        )

    @staticmethod
    def _row_to_entry(row: dict) -> QueryLogEntry:
        return QueryLogEntry(
            query=row["query"],
            frequency=row["frequency"],
            last_asked=parse_timestamp(row["last_asked"]),
            created_at=parse_timestamp(row["created_at"])
        )

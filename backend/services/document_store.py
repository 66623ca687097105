"""Knowledge base document stores with ranked and fallback search."""
import logging
import re
import threading
from collections import Counter
from typing import Iterable, List, Optional

from supabase import create_client, Client

from config import SUPABASE_URL, SUPABASE_KEY, RANKED_SEARCH_LIMIT, FALLBACK_SEARCH_LIMIT
from models.document import Document
from services.errors import RetrievalUnavailable
from services.supabase_rows import parse_timestamp

logger = logging.getLogger(__name__)

_TOKEN_PATTERN = re.compile(r"[a-z0-9]+")

# Words a full-text engine ignores when matching
STOP_WORDS = frozenset({
    "a", "an", "and", "are", "as", "at", "be", "but", "by", "can", "do", "does",
    "for", "from", "how", "i", "if", "in", "into", "is", "it", "me", "my", "no",
    "not", "of", "on", "or", "our", "so", "that", "the", "their", "then", "there",
    "these", "this", "to", "was", "we", "what", "when", "where", "which", "who",
    "why", "will", "with", "you", "your",
})


def tokenize(text: str) -> List[str]:
    """Lowercase alphanumeric terms with stop words removed."""
    return [term for term in _TOKEN_PATTERN.findall(text.lower()) if term not in STOP_WORDS]


class DocumentStore:
    """
    Read-only search interface over the knowledge base.

    ``search`` returns at most ``ranked_limit`` documents ordered by relevance;
    ``search_fallback`` returns at most ``fallback_limit`` documents whose title
    or body contains the raw query, case-insensitively, in storage order.
    Implementations raise ``RetrievalUnavailable`` when storage cannot be reached.
    """

    def __init__(self, ranked_limit: int = RANKED_SEARCH_LIMIT, fallback_limit: int = FALLBACK_SEARCH_LIMIT):
        if ranked_limit <= 0 or fallback_limit <= 0:
            raise ValueError("Search limits must be positive")
        if fallback_limit >= ranked_limit:
            raise ValueError("fallback_limit must be smaller than ranked_limit")
        self.ranked_limit = ranked_limit
        self.fallback_limit = fallback_limit

    def search(self, query: str) -> List[Document]:
        raise NotImplementedError

    def search_fallback(self, query: str) -> List[Document]:
        raise NotImplementedError


class InMemoryDocumentStore(DocumentStore):
    """Document store kept in process memory with term-frequency ranking."""

    TITLE_WEIGHT = 2

    def __init__(
        self,
        documents: Optional[Iterable[Document]] = None,
        ranked_limit: int = RANKED_SEARCH_LIMIT,
        fallback_limit: int = FALLBACK_SEARCH_LIMIT
    ):
        super().__init__(ranked_limit, fallback_limit)
        self._documents: List[Document] = []
        self._lock = threading.Lock()
        if documents:
            self.add_documents(documents)
        logger.info(f"Initialized InMemoryDocumentStore with {len(self._documents)} documents")

    def add_documents(self, documents: Iterable[Document]) -> None:
        with self._lock:
            self._documents.extend(documents)

    def count(self) -> int:
        with self._lock:
            return len(self._documents)

    def clear(self) -> None:
        with self._lock:
            self._documents = []

    def score(self, query_terms: Iterable[str], document: Document) -> int:
        """Weighted number of query term occurrences in title and body."""
        title_counts = Counter(tokenize(document.title))
        body_counts = Counter(tokenize(document.body))
        return sum(
            self.TITLE_WEIGHT * title_counts[term] + body_counts[term]
            for term in set(query_terms)
        )

    def search(self, query: str) -> List[Document]:
        query_terms = tokenize(query)
        if not query_terms:
            return []

        with self._lock:
            documents = list(self._documents)

        scored = []
        for position, document in enumerate(documents):
            score = self.score(query_terms, document)
            if score > 0:
                scored.append((score, document.created_at.timestamp(), position, document))

        # Highest score first, then newest, then insertion order
        scored.sort(key=lambda item: (-item[0], -item[1], item[2]))
        results = [item[3] for item in scored[:self.ranked_limit]]
        logger.debug(f"Ranked search matched {len(scored)} documents, returning {len(results)}")
        return results

    def search_fallback(self, query: str) -> List[Document]:
        needle = query.lower()
        if not needle:
            return []

        with self._lock:
            documents = list(self._documents)

        results = []
        for document in documents:
            if needle in document.title.lower() or needle in document.body.lower():
                results.append(document)
                if len(results) >= self.fallback_limit:
                    break
        logger.debug(f"Fallback search returning {len(results)} documents")
        return results


class SupabaseDocumentStore(DocumentStore):
    """Document store backed by a Supabase (PostgreSQL) ``articles`` table."""

    def __init__(
        self,
        supabase_url: str = SUPABASE_URL,
        supabase_key: str = SUPABASE_KEY,
        table_name: str = "articles",
        ranked_limit: int = RANKED_SEARCH_LIMIT,
        fallback_limit: int = FALLBACK_SEARCH_LIMIT
    ):
        """
        Initialize the document store with a Supabase client.

        Args:
            supabase_url: Supabase project URL
            supabase_key: Supabase API key
            table_name: Name of the articles table
            ranked_limit: Maximum results of ranked search
            fallback_limit: Maximum results of fallback search

        Raises:
            ValueError: If Supabase credentials are missing
        """
        if not supabase_url or not supabase_key:
            raise ValueError("SUPABASE_URL and SUPABASE_KEY environment variables are required")

        super().__init__(ranked_limit, fallback_limit)
        self.table_name = table_name
        self.client: Client = create_client(supabase_url, supabase_key)

        logger.info(f"Initialized SupabaseDocumentStore with table: {table_name}")

    def search(self, query: str) -> List[Document]:
        """
        Full-text search ranked by Postgres ``ts_rank``.

        The RPC function should be created in Supabase with:
        CREATE OR REPLACE FUNCTION search_articles(search_query text, match_count int)
        RETURNS SETOF articles
        LANGUAGE sql STABLE
        AS $$
          SELECT * FROM articles
          WHERE to_tsvector('english', title || ' ' || body)
                @@ plainto_tsquery('english', search_query)
          ORDER BY ts_rank(to_tsvector('english', title || ' ' || body),
                           plainto_tsquery('english', search_query)) DESC,
                   created_at DESC,
                   id
          LIMIT match_count;
        $$;
        """
        try:
            response = self.client.rpc(
                "search_articles",
                {"search_query": query, "match_count": self.ranked_limit}
            ).execute()
        except Exception as e:
            error_msg = f"Failed to search articles: {str(e)}"
            logger.error(error_msg)
            raise RetrievalUnavailable(error_msg, {"operation": "search"})

        documents = [self._row_to_document(row) for row in (response.data or [])]
        logger.debug(f"Ranked search returned {len(documents)} articles")
        return documents[:self.ranked_limit]

    def search_fallback(self, query: str) -> List[Document]:
        """
        Case-insensitive substring match on title or body, in storage order.

        The query is matched literally, so characters that are wildcards in
        LIKE patterns (``%``, ``_``, ``*``) carry no special meaning. The RPC
        function should be created in Supabase with:
        CREATE OR REPLACE FUNCTION search_articles_substring(search_query text, match_count int)
        RETURNS SETOF articles
        LANGUAGE sql STABLE
        AS $$
          SELECT * FROM articles
          WHERE strpos(lower(title), lower(search_query)) > 0
             OR strpos(lower(body), lower(search_query)) > 0
          ORDER BY id
          LIMIT match_count;
        $$;
        """
        if not query:
            return []

        try:
            response = self.client.rpc(
                "search_articles_substring",
                {"search_query": query, "match_count": self.fallback_limit}
            ).execute()
        except Exception as e:
            error_msg = f"Failed to run fallback article search: {str(e)}"
            logger.error(error_msg)
            raise RetrievalUnavailable(error_msg, {"operation": "search_fallback"})

        documents = [self._row_to_document(row) for row in (response.data or [])]
        logger.debug(f"Fallback search returned {len(documents)} articles")
        return documents[:self.fallback_limit]

    def add_documents(self, documents: Iterable[Document]) -> None:
        """
        Insert documents into the articles table.

        Raises:
            ValueError: If the documents list is empty
            RuntimeError: If database operation fails
        """
        records = [
            {
                "title": document.title,
                "body": document.body,
                "tags": sorted(document.tags),
                "created_at": document.created_at.isoformat()
            }
            for document in documents
        ]
        if not records:
            raise ValueError("Documents list cannot be empty")

        try:
            self.client.table(self.table_name).insert(records).execute()
            logger.info(f"Added {len(records)} articles")
        except Exception as e:
            error_msg = f"Failed to add articles: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)

    def clear(self) -> None:
        """Delete every article. Used by the seeding script."""
        try:
            self.client.table(self.table_name).delete().gte("id", 0).execute()
            logger.info("Cleared all articles")
        except Exception as e:
            error_msg = f"Failed to clear articles: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)

    def count(self) -> int:
        try:
            response = self.client.table(self.table_name).select("id", count="exact").execute()
            return response.count if response.count is not None else 0
        except Exception as e:
            error_msg = f"Failed to count articles: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)

    @staticmethod
    def _row_to_document(row: dict) -> Document:
        return Document(
            document_id=str(row["id"]),
            title=row["title"],
            body=row["body"],
            tags=row.get("tags") or [],
            created_at=parse_timestamp(row["created_at"])
        )

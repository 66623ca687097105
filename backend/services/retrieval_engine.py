"""Retrieval engine applying the ranked-then-fallback search strategy."""
import logging
from typing import List
from models.document import Document
from services.document_store import DocumentStore

logger = logging.getLogger(__name__)


class RetrievalEngine:
    """Query the document store, falling back to substring search on zero ranked hits."""

    def __init__(self, document_store: DocumentStore):
        """
        Initialize the retrieval engine.

        Args:
            document_store: DocumentStore providing ranked and fallback search
        """
        self.document_store = document_store
        logger.info("Initialized RetrievalEngine")

    def retrieve(self, query: str) -> List[Document]:
        """
        Retrieve candidate documents for a query.

        Implements the following strategy:
        1. Run ranked full-text search
        2. If it returns nothing, run the substring fallback search
        3. Return whichever list is non-empty, or an empty list

        The fallback triggers only on zero ranked results, never on weak ones.
        No retries are attempted.

        Args:
            query: User question

        Returns:
            Ordered list of documents, empty if nothing matched or empty query

        Raises:
            RetrievalUnavailable: If the document store cannot be reached
        """
        if not query or not query.strip():
            logger.warning("Empty query string provided, returning empty results")
            return []

        documents = self.document_store.search(query)
        if documents:
            logger.info(f"Ranked search retrieved {len(documents)} documents")
            return documents

        logger.debug("Ranked search found nothing, trying fallback search")
        documents = self.document_store.search_fallback(query)
        logger.info(f"Fallback search retrieved {len(documents)} documents")
        return documents

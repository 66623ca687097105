"""Builds the bounded knowledge base context inserted into prompts."""
import logging
from typing import List

from config import CONTEXT_BODY_MAX_CHARS, TRUNCATION_MARKER, NO_CONTEXT_SENTINEL
from models.document import Document

logger = logging.getLogger(__name__)


class ContextAssembler:
    """
    Turn retrieved documents into a single text block.

    Each document becomes a labeled block::

        [Article 1]
        Title: <title>
        Content: <body, truncated to max_body_chars + marker>

    Blocks are joined by a blank line. Truncation is per document so that one
    long article cannot crowd out the others.
    """

    def __init__(
        self,
        max_body_chars: int = CONTEXT_BODY_MAX_CHARS,
        truncation_marker: str = TRUNCATION_MARKER,
        empty_sentinel: str = NO_CONTEXT_SENTINEL
    ):
        if max_body_chars <= 0:
            raise ValueError("max_body_chars must be positive")
        self.max_body_chars = max_body_chars
        self.truncation_marker = truncation_marker
        self.empty_sentinel = empty_sentinel

    def truncate(self, body: str) -> str:
        if len(body) <= self.max_body_chars:
            return body
        return body[:self.max_body_chars] + self.truncation_marker

    def assemble(self, documents: List[Document]) -> str:
        """Return the context text, or the sentinel when nothing was retrieved."""
        if not documents:
            return self.empty_sentinel

        blocks = [
            f"[Article {index}]\nTitle: {document.title}\nContent: {self.truncate(document.body)}"
            for index, document in enumerate(documents, start=1)
        ]
        context = "\n\n".join(blocks)
        logger.debug(f"Assembled context from {len(documents)} documents ({len(context)} chars)")
        return context

"""Knowledge base document model."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet

from models.conversation import utc_now


@dataclass(frozen=True)
class Document:
    """Represents one knowledge base article."""
    document_id: str
    title: str
    body: str
    tags: FrozenSet[str] = field(default_factory=frozenset)
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        if not self.title or not self.title.strip():
            raise ValueError("Document title cannot be empty")
        if not self.body or not self.body.strip():
            raise ValueError("Document body cannot be empty")
        # Accept any iterable of tags but always store an immutable set
        object.__setattr__(self, "tags", frozenset(self.tags))

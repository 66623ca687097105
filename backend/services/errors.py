"""Error taxonomy for the retrieval-augmented session engine."""
from typing import Any, Dict, Optional


class AssistantError(Exception):
    """Base exception carrying a stable category code and an HTTP status."""

    code = "ASSISTANT_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code, "details": self.details}


class InvalidInput(AssistantError):
    """A required field is missing or empty; raised before any side effect."""

    code = "INVALID_INPUT"
    status_code = 400


class RetrievalUnavailable(AssistantError):
    """The document source could not be reached."""

    code = "RETRIEVAL_UNAVAILABLE"
    status_code = 503


class GenerationFailed(AssistantError):
    """The generation collaborator errored or timed out."""

    code = "GENERATION_FAILED"
    status_code = 503


class AnalyticsRecordFailed(AssistantError):
    """A query could not be written to the analytics ledger."""

    code = "ANALYTICS_RECORD_FAILED"
    status_code = 500

"""JSON Lines sink for best-effort failure and chat telemetry."""
import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

from config import TELEMETRY_LOG_PATH

logger = logging.getLogger(__name__)


class TelemetryLogger:
    """
    Append-only telemetry log, one JSON object per line.

    Writes never raise into callers: a telemetry failure is logged and dropped
    so that it cannot abort a chat request.
    """

    def __init__(self, log_file_path: str = TELEMETRY_LOG_PATH):
        self.log_file_path = Path(log_file_path)
        self.log_file_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._file = open(self.log_file_path, "a", encoding="utf-8")
        logger.info(f"TelemetryLogger writing to {self.log_file_path}")

    def log_event(self, event: str, **fields: Any) -> None:
        """Append one record with a UTC timestamp and event name."""
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "event": event,
            **fields,
        }
        try:
            line = json.dumps(record, default=str)
            with self._lock:
                if self._file.closed:
                    logger.warning(f"Telemetry log closed, dropping event {event}")
                    return
                self._file.write(line + "\n")
                self._file.flush()
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to write telemetry event {event}: {e}")

    def log_failure(self, category: str, message: str, **details: Any) -> None:
        """Report an absorbed failure (analytics, retrieval) or a surfaced one."""
        self.log_event("failure", category=category, message=message, details=details)

    def log_turn(
        self,
        session_id: str,
        cited_document_ids: List[str],
        history_turns: int,
        latency_ms: int,
        prompt_tokens: Optional[int] = None,
        tokens_input: int = 0,
        tokens_output: int = 0,
        retrieval_degraded: bool = False
    ) -> None:
        """Record one completed chat turn."""
        self.log_event(
            "chat_turn",
            session_id=session_id,
            cited_document_ids=cited_document_ids,
            history_turns=history_turns,
            latency_ms=latency_ms,
            prompt_tokens=prompt_tokens,
            tokens_input=tokens_input,
            tokens_output=tokens_output,
            retrieval_degraded=retrieval_degraded
        )

    def close(self) -> None:
        with self._lock:
            if not self._file.closed:
                self._file.close()

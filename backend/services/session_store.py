"""In-memory per-session conversation storage with pluggable eviction."""
import logging
import threading
from collections import OrderedDict
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional

from models.conversation import ConversationTurn
from services.keyed_lock import KeyedLock

logger = logging.getLogger(__name__)


class EvictionPolicy:
    """Decides which sessions to drop when the store grows. Retains everything."""

    def touched(self, session_id: str) -> None:
        """Called whenever a session is created, read or appended to."""

    def removed(self, session_id: str) -> None:
        """Called when a session leaves the store."""

    def select_victims(self, session_count: int, in_use: Callable[[str], bool]) -> List[str]:
        """Return session ids to evict, never one for which ``in_use`` is true."""
        return []


class NoEvictionPolicy(EvictionPolicy):
    """Keep full history for every session until it is cleared."""


class LRUEvictionPolicy(EvictionPolicy):
    """Evict least recently used sessions once ``max_sessions`` is exceeded."""

    def __init__(self, max_sessions: int):
        if max_sessions <= 0:
            raise ValueError("max_sessions must be positive")
        self.max_sessions = max_sessions
        self._order: "OrderedDict[str, None]" = OrderedDict()

    def touched(self, session_id: str) -> None:
        self._order[session_id] = None
        self._order.move_to_end(session_id)

    def removed(self, session_id: str) -> None:
        self._order.pop(session_id, None)

    def select_victims(self, session_count: int, in_use: Callable[[str], bool]) -> List[str]:
        excess = session_count - self.max_sessions
        victims = []
        for session_id in self._order:
            if excess <= 0:
                break
            if in_use(session_id):
                continue
            victims.append(session_id)
            excess -= 1
        return victims


class SessionStore:
    """
    Holds ordered conversation turns per session id.

    Every public operation is atomic with respect to the others. Multi-step
    workflows on a single session (read history, call the model, append the
    answer) must additionally run inside ``session_lock`` so that concurrent
    requests for the same session are serialized; requests for different
    sessions proceed independently.
    """

    def __init__(self, eviction_policy: Optional[EvictionPolicy] = None):
        self.eviction_policy = eviction_policy or NoEvictionPolicy()
        self._sessions: Dict[str, List[ConversationTurn]] = {}
        self._guard = threading.Lock()
        self._session_locks = KeyedLock()
        self._active: Dict[str, int] = {}
        logger.info(f"Initialized SessionStore with {type(self.eviction_policy).__name__}")

    @contextmanager
    def session_lock(self, session_id: str) -> Iterator[None]:
        """Serialize a multi-step workflow on one session. Active sessions are never evicted."""
        with self._session_locks.hold(session_id):
            with self._guard:
                self._active[session_id] = self._active.get(session_id, 0) + 1
            try:
                yield
            finally:
                with self._guard:
                    self._active[session_id] -= 1
                    if self._active[session_id] == 0:
                        del self._active[session_id]

    def append(self, session_id: str, turn: ConversationTurn) -> None:
        """Add a turn to the session, creating the session if absent."""
        with self._guard:
            turns = self._sessions.get(session_id)
            if turns is None:
                turns = []
                self._sessions[session_id] = turns
                logger.debug(f"Created session {session_id}")
            turns.append(turn)
            self.eviction_policy.touched(session_id)
            self._evict_locked()

    def windowed(self, session_id: str, max_turns: int) -> List[ConversationTurn]:
        """Return the most recent ``max_turns`` turns in chronological order."""
        if max_turns <= 0:
            return []
        with self._guard:
            turns = self._sessions.get(session_id)
            if not turns:
                return []
            self.eviction_policy.touched(session_id)
            return list(turns[-max_turns:])

    def read_all(self, session_id: str) -> List[ConversationTurn]:
        """Return a copy of the full stored history; empty for unknown sessions."""
        with self._guard:
            turns = self._sessions.get(session_id)
            if turns is None:
                return []
            self.eviction_policy.touched(session_id)
            return list(turns)

    def clear(self, session_id: str) -> None:
        """Remove the session entirely. Clearing an unknown session is a no-op."""
        with self._guard:
            if self._sessions.pop(session_id, None) is not None:
                self.eviction_policy.removed(session_id)
                logger.info(f"Cleared session {session_id}")

    def session_count(self) -> int:
        with self._guard:
            return len(self._sessions)

    def _evict_locked(self) -> None:
        victims = self.eviction_policy.select_victims(
            len(self._sessions), lambda session_id: session_id in self._active
        )
        for session_id in victims:
            self._sessions.pop(session_id, None)
            self.eviction_policy.removed(session_id)
            logger.info(f"Evicted session {session_id}")

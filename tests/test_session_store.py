"""Unit tests for SessionStore and eviction policies."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import threading
import pytest
from models.conversation import ConversationTurn, Role
from services.session_store import SessionStore, LRUEvictionPolicy, NoEvictionPolicy


def user(content):
    return ConversationTurn(role=Role.USER, content=content)


def assistant(content):
    return ConversationTurn(role=Role.ASSISTANT, content=content)


class TestSessionStore:
    """Test suite for SessionStore."""

    @pytest.fixture
    def store(self):
        return SessionStore()

    def test_append_creates_session(self, store):
        """Test that the first append creates the session lazily."""
        assert store.session_count() == 0
        store.append("s1", user("hello"))

        assert store.session_count() == 1
        assert [turn.content for turn in store.read_all("s1")] == ["hello"]

    def test_read_all_unknown_session_is_empty(self, store):
        """Test that reading an unknown session returns an empty list."""
        assert store.read_all("missing") == []

    def test_windowed_returns_most_recent_in_order(self, store):
        """Test that windowed returns the last N turns chronologically."""
        for i in range(6):
            store.append("s1", user(f"q{i}") if i % 2 == 0 else assistant(f"a{i}"))

        window = store.windowed("s1", 3)

        assert [turn.content for turn in window] == ["a3", "q4", "a5"]

    def test_windowed_with_fewer_turns_than_window(self, store):
        """Test that windowed returns everything when the session is short."""
        store.append("s1", user("only"))

        assert [turn.content for turn in store.windowed("s1", 10)] == ["only"]

    def test_windowed_zero_and_unknown(self, store):
        """Test that a zero window or unknown session yields nothing."""
        store.append("s1", user("hello"))

        assert store.windowed("s1", 0) == []
        assert store.windowed("missing", 5) == []

    def test_windowed_does_not_mutate_history(self, store):
        """Test that windowed reads leave stored history untouched."""
        for i in range(5):
            store.append("s1", user(f"q{i}"))
        before = store.read_all("s1")

        window = store.windowed("s1", 2)
        window.clear()

        assert store.read_all("s1") == before
        assert len(store.read_all("s1")) == 5

    def test_read_all_returns_copy(self, store):
        """Test that callers cannot mutate stored history through read_all."""
        store.append("s1", user("hello"))
        turns = store.read_all("s1")
        turns.append(user("injected"))

        assert len(store.read_all("s1")) == 1

    def test_clear_populated_session(self, store):
        """Test that clear removes the whole session."""
        store.append("s1", user("hello"))
        store.clear("s1")

        assert store.read_all("s1") == []
        assert store.session_count() == 0

    def test_clear_unknown_session_is_idempotent(self, store):
        """Test that clearing an absent session is not an error."""
        store.clear("never-seen")
        store.clear("never-seen")

        assert store.read_all("never-seen") == []

    def test_append_after_clear_starts_fresh(self, store):
        """Test that a cleared session behaves as if it never existed."""
        store.append("s1", user("old"))
        store.clear("s1")
        store.append("s1", user("new"))

        assert [turn.content for turn in store.read_all("s1")] == ["new"]

    def test_concurrent_appends_to_one_session(self, store):
        """Test that concurrent appends never lose turns."""
        def worker(worker_id):
            for i in range(50):
                store.append("shared", user(f"{worker_id}-{i}"))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        turns = store.read_all("shared")
        assert len(turns) == 400
        # Each worker's own turns keep their relative order
        for worker_id in range(8):
            own = [turn.content for turn in turns if turn.content.startswith(f"{worker_id}-")]
            assert own == [f"{worker_id}-{i}" for i in range(50)]


class TestLRUEviction:
    """Test suite for LRU eviction."""

    def test_rejects_non_positive_capacity(self):
        with pytest.raises(ValueError, match="max_sessions must be positive"):
            LRUEvictionPolicy(0)

    def test_evicts_least_recently_used(self):
        """Test that the oldest untouched session is evicted at capacity."""
        store = SessionStore(LRUEvictionPolicy(2))
        store.append("a", user("1"))
        store.append("b", user("2"))
        store.read_all("a")  # a is now more recent than b
        store.append("c", user("3"))

        assert store.session_count() == 2
        assert store.read_all("b") == []
        assert len(store.read_all("a")) == 1
        assert len(store.read_all("c")) == 1

    def test_active_session_is_not_evicted(self):
        """Test that a session held by session_lock survives eviction."""
        store = SessionStore(LRUEvictionPolicy(1))
        store.append("busy", user("1"))

        with store.session_lock("busy"):
            store.append("other", user("2"))
            assert len(store.read_all("busy")) == 1

        assert store.read_all("busy")

    def test_cleared_session_leaves_policy(self):
        """Test that clearing a session frees its slot."""
        store = SessionStore(LRUEvictionPolicy(2))
        store.append("a", user("1"))
        store.append("b", user("2"))
        store.clear("a")
        store.append("c", user("3"))

        assert len(store.read_all("b")) == 1
        assert len(store.read_all("c")) == 1

    def test_no_eviction_policy_keeps_everything(self):
        store = SessionStore(NoEvictionPolicy())
        for i in range(100):
            store.append(f"s{i}", user("hello"))

        assert store.session_count() == 100

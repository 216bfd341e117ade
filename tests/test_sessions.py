"""
tests/test_sessions.py -- Unit tests for the TTL'd session store.

Coverage:
  - record -> peek returns the token; revoke leaves nothing behind
  - revoke on a missing entry is a no-op
  - a second login overwrites the first (last write wins)
  - expired entries read as None and are purged
"""

from __future__ import annotations

from auth.sessions import SessionStore


def test_record_then_peek(sessions: SessionStore) -> None:
    sessions.record_session(1, "tok")
    assert sessions.peek_session(1) == "tok"


def test_revoke_clears_entry(sessions: SessionStore) -> None:
    sessions.record_session(1, "tok")
    sessions.revoke_session(1)
    assert sessions.peek_session(1) is None


def test_revoke_twice_is_noop(sessions: SessionStore) -> None:
    sessions.record_session(1, "tok")
    sessions.revoke_session(1)
    sessions.revoke_session(1)
    assert sessions.peek_session(1) is None


def test_revoke_never_recorded_is_noop(sessions: SessionStore) -> None:
    sessions.revoke_session(404)
    assert sessions.peek_session(404) is None


def test_last_write_wins(sessions: SessionStore) -> None:
    sessions.record_session(1, "first")
    sessions.record_session(1, "second")
    assert sessions.peek_session(1) == "second"


def test_entries_are_per_user(sessions: SessionStore) -> None:
    sessions.record_session(1, "tok-1")
    sessions.record_session(2, "tok-2")
    sessions.revoke_session(1)
    assert sessions.peek_session(1) is None
    assert sessions.peek_session(2) == "tok-2"


def test_expired_entry_reads_as_none() -> None:
    store = SessionStore(":memory:", ttl=0)
    store.record_session(1, "tok")
    assert store.peek_session(1) is None
    store.close()


class _ReleaseHookLock:
    """Wraps the store lock and runs a callback the first time it is released."""

    def __init__(self, inner, on_release) -> None:
        self._inner = inner
        self._on_release = on_release

    def __enter__(self):
        return self._inner.__enter__()

    def __exit__(self, *exc):
        result = self._inner.__exit__(*exc)
        callback, self._on_release = self._on_release, None
        if callback is not None:
            callback()
        return result


def test_expired_read_does_not_delete_newer_login() -> None:
    store = SessionStore(":memory:", ttl=0)
    store.record_session(1, "stale")
    store.ttl = 3600

    # A fresh login lands as soon as the reader lets go of the lock.
    store._lock = _ReleaseHookLock(store._lock, lambda: store.record_session(1, "fresh"))
    assert store.peek_session(1) is None
    assert store.peek_session(1) == "fresh"
    store.close()


def test_purge_expired() -> None:
    store = SessionStore(":memory:", ttl=0)
    store.record_session(1, "a")
    store.record_session(2, "b")
    assert store.purge_expired() == 2
    assert store.purge_expired() == 0
    store.close()


def test_purge_keeps_live_entries(sessions: SessionStore) -> None:
    sessions.record_session(1, "tok")
    assert sessions.purge_expired() == 0
    assert sessions.peek_session(1) == "tok"


def test_file_backed_store_persists(tmp_path) -> None:
    path = str(tmp_path / "sessions.db")
    first = SessionStore(path, ttl=3600)
    first.record_session(9, "tok")
    first.close()

    second = SessionStore(path, ttl=3600)
    assert second.peek_session(9) == "tok"
    second.close()

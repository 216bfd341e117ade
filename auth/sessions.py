"""
auth/sessions.py -- SQLite-backed session store for server-side revocation.

A signed JWT is valid until it expires; nothing about the token itself can be
withdrawn. This store keeps one row per user holding the most recently issued
token, with the same TTL as the token, so logout has something to delete and
a strict verification path has something to compare against.

Keys are "session:<user_id>". Concurrent logins by the same user race to
last-write-wins; only the newest token is nominally revocable.

Usage:
    sessions = SessionStore(":memory:", ttl=3600)
    sessions.record_session(42, token)
    sessions.peek_session(42)        # token, or None once revoked / expired
    sessions.revoke_session(42)      # idempotent
    sessions.purge_expired()         # call periodically to trim old rows
"""

import sqlite3
import threading
import time
from typing import Optional

_DEFAULT_TTL = 60 * 60  # 1 hour, same as the token

_DDL = """
CREATE TABLE IF NOT EXISTS sessions (
    session_key TEXT PRIMARY KEY,
    token       TEXT NOT NULL,
    expires_at  REAL NOT NULL
);
"""


def _key(user_id: int) -> str:
    return f"session:{user_id}"


class SessionStore:
    def __init__(self, db_path: str = ":memory:", ttl: int = _DEFAULT_TTL) -> None:
        self.ttl = ttl
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        if db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(_DDL)
        self._conn.commit()

    def record_session(self, user_id: int, token: str) -> None:
        """Store token as the user's current session, replacing any existing entry."""
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO sessions (session_key, token, expires_at) VALUES (?, ?, ?)",
                (_key(user_id), token, time.time() + self.ttl),
            )
            self._conn.commit()

    def peek_session(self, user_id: int) -> Optional[str]:
        """Return the user's current token if it exists and hasn't expired."""
        now = time.time()
        with self._lock:
            row = self._conn.execute(
                "SELECT token, expires_at FROM sessions WHERE session_key = ?",
                (_key(user_id),),
            ).fetchone()
            if row is None:
                return None
            token, expires_at = row
            if expires_at <= now:
                # Only the expired row goes; a newer login may have replaced it.
                self._conn.execute(
                    "DELETE FROM sessions WHERE session_key = ? AND expires_at <= ?",
                    (_key(user_id), now),
                )
                self._conn.commit()
                return None
        return token

    def revoke_session(self, user_id: int) -> None:
        """Delete the user's session. A missing entry is not an error."""
        with self._lock:
            self._conn.execute("DELETE FROM sessions WHERE session_key = ?", (_key(user_id),))
            self._conn.commit()

    def purge_expired(self) -> int:
        """Delete all expired entries. Returns number of rows removed."""
        with self._lock:
            cursor = self._conn.execute("DELETE FROM sessions WHERE expires_at <= ?", (time.time(),))
            self._conn.commit()
        return cursor.rowcount

    def close(self) -> None:
        self._conn.close()

"""
auth/store.py -- SQLAlchemy Core persistence layer for credential records.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Route and auth code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  The users table stores ha1 only. There is no column for a plaintext or
  reversible password.

DB path: auth/loverse_auth.db by default (AUTH_DB_URL overrides).

Layer rule: no imports from api/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine

from auth.models import User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(20), nullable=False, unique=True),
    Column("ha1_hash", String(32), nullable=False),  # MD5 hex of username:realm:password
    Column("nickname", String(50), nullable=False),
    Column("avatar_key", Text),  # content-addressed blob key, owned by the image store
    Column("created_at", String(32), nullable=False),
)

# Only these columns may be changed through update_user().
_MUTABLE_FIELDS = frozenset({"nickname", "avatar_key", "ha1"})


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User credential records.

    Usage:
        store = UserStore("sqlite:///loverse_auth.db")
        uid = store.create_user(User(username="alice", ha1=derive_credential_hash("alice", pw), nickname="A"))
        user = store.get_by_username("alice")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite") and "mode=memory" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the username already exists.
        Registration catches that as the authoritative duplicate check, since a
        concurrent request can slip past the get_by_username() pre-check.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    username=user.username,
                    ha1_hash=user.ha1,
                    nickname=user.nickname,
                    avatar_key=user.avatar_key,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def update_user(self, user_id: int, **fields) -> bool:
        """Update profile fields on an existing user.

        Accepted fields: nickname, avatar_key, ha1. Passing ha1 is how a
        password change lands: the caller derives the new hash, this method
        only stores it. Unknown fields raise ValueError.

        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        if not fields:
            return False
        if "ha1" in fields:
            fields["ha1_hash"] = fields.pop("ha1")
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        ha1=row.ha1_hash,
        nickname=row.nickname,
        avatar_key=row.avatar_key,
        created_at=row.created_at,
    )

"""
auth/store.py -- SQLAlchemy Core persistence layer for User records.

Pattern: Repository + Data Mapper (same as social/store.py).
UserStore is the repository; _row_to_user is the mapper.
Service and route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  refresh_tokens is a JSON array in a TEXT column. It is only ever replaced
  wholesale by set_refresh_tokens(); callers read the current row right
  before computing the new list. This read-modify-write is not isolated:
  two concurrent writers on the same user race and the last write wins.

  username and email carry UNIQUE constraints. AuthService checks for
  collisions first to produce a precise message; the constraint catches the
  race where two registrations pass that check concurrently.

Layer rule: no imports from api/ or social/.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event, func, or_
from sqlalchemy.engine import Engine

from auth.models import User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("username", String(30), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("first_name", String(50)),
    Column("last_name", String(50)),
    Column("bio", String(500)),
    Column("refresh_tokens", Text, nullable=False, server_default="[]"),  # JSON array, oldest first
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

# Columns update_user() may touch. Everything else has a dedicated method.
_MUTABLE_FIELDS = {"username", "email", "first_name", "last_name", "bio", "hashed_password"}


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Create an engine with the SQLite settings every store needs."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    """Return a fresh opaque record id (32 hex chars)."""
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore("sqlite:///socialnet.db")
        user_id = store.create_user(User(username="alice", email="alice@x.com", hashed_password=...))
        user = store.get_by_email("alice@x.com")
        store.set_refresh_tokens(user_id, [*user.refresh_tokens, new_token])
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> str:
        """Insert a new user and return its id.

        A pre-assigned user.id is kept so tokens naming the user can be issued
        before the row exists; otherwise a fresh id is generated.

        Raises sqlalchemy.exc.IntegrityError if the username or email already
        exists. Callers translate that into a conflict.
        """
        user_id = user.id or new_id()
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    username=user.username,
                    email=user.email,
                    hashed_password=user.hashed_password,
                    first_name=user.first_name,
                    last_name=user.last_name,
                    bio=user.bio,
                    refresh_tokens=json.dumps(user.refresh_tokens),
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return user_id

    def get_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_ids(self, user_ids: set[str]) -> dict[str, User]:
        """Bulk lookup keyed by id. Unknown ids are simply absent from the result."""
        if not user_ids:
            return {}
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().where(_users.c.id.in_(sorted(user_ids)))).fetchall()
        return {row.id: _row_to_user(row) for row in rows}

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact (already lowercased) email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_conflicts(
        self,
        username: str | None = None,
        email: str | None = None,
        exclude_id: str | None = None,
    ) -> list[User]:
        """Return every user whose username or email matches, in one query.

        exclude_id skips the user being updated so saving unchanged values does
        not collide with itself. At most two rows can match (one per UNIQUE column).
        """
        conditions = []
        if username:
            conditions.append(_users.c.username == username)
        if email:
            conditions.append(_users.c.email == email)
        if not conditions:
            return []
        query = _users.select().where(or_(*conditions))
        if exclude_id is not None:
            query = query.where(_users.c.id != exclude_id)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_user(r) for r in rows]

    def list_users(self, username: str | None = None, email: str | None = None) -> list[User]:
        """Return users newest first, optionally filtered by case-insensitive substring."""
        query = _users.select()
        if username:
            query = query.where(func.lower(_users.c.username).contains(username.lower(), autoescape=True))
        if email:
            query = query.where(func.lower(_users.c.email).contains(email.lower(), autoescape=True))
        query = query.order_by(_users.c.created_at.desc())
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_user(r) for r in rows]

    def update_user(self, user_id: str, **fields) -> bool:
        """Update profile fields on an existing user and bump updated_at.

        Accepted fields: username, email, first_name, last_name, bio,
        hashed_password. Unknown fields raise ValueError.

        Returns True if a row was updated, False if user_id was not found.
        Raises sqlalchemy.exc.IntegrityError on a username/email collision.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)!r}")
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == user_id).values(updated_at=_now_iso(), **fields)
            )
            conn.commit()
        return result.rowcount > 0

    def set_refresh_tokens(self, user_id: str, tokens: list[str]) -> bool:
        """Replace the user's stored refresh-token list.

        Returns True if a row was updated, False if user_id was not found.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(refresh_tokens=json.dumps(tokens), updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def delete_user(self, user_id: str) -> bool:
        """Permanently delete a user record. Returns True if deleted, False if not found.

        Posts and comments authored by the user are left in place.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        hashed_password=row.hashed_password,
        first_name=row.first_name,
        last_name=row.last_name,
        bio=row.bio,
        refresh_tokens=json.loads(row.refresh_tokens or "[]"),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )

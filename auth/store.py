"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper.
UserStore and SessionStore are the repositories; _row_to_user / _row_to_session
are the mappers. Service and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Concurrency:
  Every write is a single statement keyed by its predicate (token, user_id,
  expiry). Nothing here does read-modify-write in Python, so the store's own
  per-statement atomicity is all callers rely on.

Timestamps:
  Stored as ISO-8601 UTC strings with fixed microsecond precision. Every value
  goes through _to_iso(), so string comparison in SQL matches chronological
  order (used by delete_expired).

Layer rule: no imports from api/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    select,
)
from sqlalchemy.engine import Engine

from auth.models import Session, User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)

_sessions = Table(
    "sessions",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("token", String(64), nullable=False, unique=True),
    Column("expires_at", String(32), nullable=False),
    Column("user_agent", Text),
    Column("ip_address", String(45)),  # fits an IPv6 literal
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Index("ix_sessions_user_id", "user_id"),
    Index("ix_sessions_expires_at", "expires_at"),
)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _configure_sqlite(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. foreign_keys=ON makes the sessions -> users
    cascade actually fire.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


def build_engine(db_url: str) -> Engine:
    """Create an Engine for db_url and make sure the auth tables exist.

    UserStore and SessionStore share one engine so the session -> user join
    sees the same database (required for plain sqlite :memory: URLs).
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _configure_sqlite)
    _metadata.create_all(engine)
    return engine


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_iso(value: str) -> datetime:
    return datetime.fromisoformat(value)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        engine = build_engine("sqlite:///auth.db")
        users = UserStore(engine)
        users.create_user(User(username="alice", hashed_password=hash_password("s3cret")))
        user = users.get_by_username("alice")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create_user(self, user: User) -> str:
        """Insert a new user and return its id.

        Raises sqlalchemy.exc.IntegrityError if the username already exists.
        """
        user_id = user.id or str(uuid.uuid4())
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    username=user.username,
                    hashed_password=user.hashed_password,
                    created_at=_to_iso(utcnow()),
                )
            )
            conn.commit()
        return user_id

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        """Return all users ordered by username."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.username)).fetchall()
        return [_row_to_user(r) for r in rows]


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class SessionStore:
    """Repository for Session entities.

    Lookups that feed authentication (find_active_by_token) join the owning
    user so the caller gets session.user without a second round-trip.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def _select_with_user(self):
        return select(
            _sessions,
            _users.c.username.label("user_username"),
            _users.c.hashed_password.label("user_hashed_password"),
            _users.c.created_at.label("user_created_at"),
        ).select_from(_sessions.join(_users, _sessions.c.user_id == _users.c.id))

    def insert(self, session: Session) -> Session:
        """Persist a new session record and return it with id and timestamps set.

        Raises sqlalchemy.exc.IntegrityError on a token collision or an
        unknown user_id (foreign key).
        """
        now = utcnow()
        session_id = session.id or str(uuid.uuid4())
        with self.engine.connect() as conn:
            conn.execute(
                _sessions.insert().values(
                    id=session_id,
                    user_id=session.user_id,
                    token=session.token,
                    expires_at=_to_iso(session.expires_at),
                    user_agent=session.user_agent,
                    ip_address=session.ip_address,
                    is_active=1 if session.is_active else 0,
                    created_at=_to_iso(now),
                    updated_at=_to_iso(now),
                )
            )
            conn.commit()
        return Session(
            id=session_id,
            user_id=session.user_id,
            token=session.token,
            expires_at=session.expires_at,
            user_agent=session.user_agent,
            ip_address=session.ip_address,
            is_active=session.is_active,
            created_at=now,
            updated_at=now,
        )

    def find_active_by_token(self, token: str) -> Session | None:
        """Return the active session for token with its user, or None.

        Expiry is NOT checked here -- an expired but still active record is
        returned so the caller can decide what to do with it.
        """
        stmt = self._select_with_user().where((_sessions.c.token == token) & (_sessions.c.is_active == 1))
        with self.engine.connect() as conn:
            row = conn.execute(stmt).fetchone()
        return _row_to_session(row) if row is not None else None

    def get_by_token(self, token: str) -> Session | None:
        """Return the session for token in any state, without the user."""
        with self.engine.connect() as conn:
            row = conn.execute(_sessions.select().where(_sessions.c.token == token)).fetchone()
        return _row_to_session(row) if row is not None else None

    def update_expiry(self, session_id: str, expires_at: datetime) -> datetime | None:
        """Set a new expires_at on an active session.

        Returns the updated_at stamp, or None if no active row matched.
        """
        now = utcnow()
        with self.engine.connect() as conn:
            result = conn.execute(
                _sessions.update()
                .where((_sessions.c.id == session_id) & (_sessions.c.is_active == 1))
                .values(expires_at=_to_iso(expires_at), updated_at=_to_iso(now))
            )
            conn.commit()
        return now if result.rowcount > 0 else None

    def deactivate_by_token(self, token: str) -> bool:
        """Mark the session inactive. Returns True only if it was active.

        The is_active = 1 guard makes repeat calls a no-op: an already
        inactive record is not touched again (updated_at stays put).
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _sessions.update()
                .where((_sessions.c.token == token) & (_sessions.c.is_active == 1))
                .values(is_active=0, updated_at=_to_iso(utcnow()))
            )
            conn.commit()
        return result.rowcount > 0

    def deactivate_by_user(self, user_id: str) -> int:
        """Mark every active session of user_id inactive. Returns the number changed."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _sessions.update()
                .where((_sessions.c.user_id == user_id) & (_sessions.c.is_active == 1))
                .values(is_active=0, updated_at=_to_iso(utcnow()))
            )
            conn.commit()
        return result.rowcount

    def delete_by_token(self, token: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.token == token))
            conn.commit()
        return result.rowcount > 0

    def delete_expired(self, now: datetime) -> int:
        """Delete every session with expires_at strictly before now, active or not."""
        with self.engine.connect() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.expires_at < _to_iso(now)))
            conn.commit()
        return result.rowcount


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        hashed_password=row.hashed_password,
        created_at=_from_iso(row.created_at),
    )


def _row_to_session(row) -> Session:
    # user_* columns are present only on rows from _select_with_user().
    mapping = row._mapping
    user = None
    if "user_username" in mapping:
        user = User(
            id=row.user_id,
            username=row.user_username,
            hashed_password=row.user_hashed_password,
            created_at=_from_iso(row.user_created_at),
        )
    return Session(
        id=row.id,
        user_id=row.user_id,
        token=row.token,
        expires_at=_from_iso(row.expires_at),
        user_agent=row.user_agent,
        ip_address=row.ip_address,
        is_active=bool(row.is_active),
        created_at=_from_iso(row.created_at),
        updated_at=_from_iso(row.updated_at),
        user=user,
    )

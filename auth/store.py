"""
auth/store.py -- SQLAlchemy Core persistence layer for user credentials.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Service and route code never touches SQL directly.

Uniqueness:
  email, phone, aadhaar and med_track_id each carry a UNIQUE constraint. The
  store does not pre-check before inserting: the constraint is the single
  arbiter, so two concurrent signups on the same email produce exactly one
  row. When the insert fails, the store re-queries the three user-supplied
  fields (email, then phone, then aadhaar) to name the offender in
  DuplicateField. If none of them matches, the collision was on the
  generated med_track_id and the insert is retried with a fresh id.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or pharmacy/.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.exc import IntegrityError

from auth.models import User
from core.errors import DuplicateField

logger = logging.getLogger("medtrack.auth")

_UNIQUE_FIELDS = ("email", "phone", "aadhaar")
_MED_TRACK_ID_ATTEMPTS = 5

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("phone", String(32), nullable=False, unique=True),
    Column("aadhaar", String(32), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(30), nullable=False, server_default="patient"),
    Column("med_track_id", String(16), nullable=False, unique=True),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked by a signup write.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _is_sqlite_memory(db_url: str) -> bool:
    return db_url.startswith("sqlite") and (":memory:" in db_url or "mode=memory" in db_url)


def generate_med_track_id() -> str:
    """Return a new MedTrack ID: "MT" followed by 8 uppercase hex characters."""
    return f"MT{secrets.token_hex(4).upper()}"


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore("sqlite:///medtrack.db")
        user = store.create_user(User(name=..., email=..., phone=..., aadhaar=...,
                                      hashed_password=hash_password("secret")))
        found = store.find_by_email_or_phone("a@x.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # FastAPI runs sync handlers in a threadpool; the same pooled
            # connection may be used from more than one thread.
            connect_args["check_same_thread"] = False
        engine_kwargs: dict = {"connect_args": connect_args}
        if _is_sqlite_memory(db_url):
            # One shared connection per engine; the in-memory database lives
            # as long as it does.
            engine_kwargs["poolclass"] = StaticPool
        self.engine: Engine = create_engine(db_url, **engine_kwargs)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, candidate: User) -> User:
        """Insert a new user and return the stored record.

        Assigns med_track_id (unless the candidate already carries one) and
        created_at. Raises DuplicateField naming email, phone or aadhaar when
        one of them is already registered.
        """
        if not candidate.hashed_password:
            raise ValueError("create_user() requires a hashed password.")

        med_track_id = candidate.med_track_id or generate_med_track_id()
        for _ in range(_MED_TRACK_ID_ATTEMPTS):
            try:
                with self.engine.connect() as conn:
                    result = conn.execute(
                        _users.insert().values(
                            name=candidate.name,
                            email=candidate.email,
                            phone=candidate.phone,
                            aadhaar=candidate.aadhaar,
                            hashed_password=candidate.hashed_password,
                            role=candidate.role,
                            med_track_id=med_track_id,
                            created_at=_now_iso(),
                        )
                    )
                    conn.commit()
                    user_id = result.inserted_primary_key[0]
            except IntegrityError as exc:
                field = self._conflicting_field(candidate)
                if field is not None:
                    raise DuplicateField(field) from exc
                if candidate.med_track_id:
                    # Caller pinned the id; nothing to regenerate.
                    raise DuplicateField("medTrackId") from exc
                logger.warning("MedTrack ID collision on %s, regenerating", med_track_id)
                med_track_id = generate_med_track_id()
                continue

            return self.get_by_id(user_id)

        raise RuntimeError("Could not allocate a unique MedTrack ID.")

    def _conflicting_field(self, candidate: User) -> str | None:
        """Return the first of email/phone/aadhaar already taken by another row."""
        with self.engine.connect() as conn:
            for field in _UNIQUE_FIELDS:
                column = _users.c[field]
                row = conn.execute(select(_users.c.id).where(column == getattr(candidate, field))).fetchone()
                if row is not None:
                    return field
        return None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_by_email_or_phone(self, identifier: str) -> User | None:
        """Look up a user for login. Includes the password hash.

        Identifiers containing "@" are matched against email, anything else
        against phone. Matching is exact.
        """
        column = _users.c.email if "@" in identifier else _users.c.phone
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(column == identifier)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_med_track_id(self, med_track_id: str) -> User | None:
        """Look up a user by MedTrack ID (case-insensitive input, stored uppercase)."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.med_track_id == med_track_id.upper())).fetchone()
        return _row_to_user(row) if row is not None else None

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        phone=row.phone,
        aadhaar=row.aadhaar,
        hashed_password=row.hashed_password,
        role=row.role,
        med_track_id=row.med_track_id,
        created_at=row.created_at,
    )

"""
auth/store.py -- SQLAlchemy Core persistence layer for user records.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Flow and route code never touches SQL directly, and the store
holds no business logic.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Only bcrypt-shaped strings are accepted as password or reset-token hashes.

Atomicity:
  create() relies on UNIQUE(email): of two concurrent registrations for the
  same address exactly one INSERT succeeds, the other gets ConflictError.

  The reset-token fields (hash, expiry, lookup key) are always written and
  cleared by one UPDATE statement, so a row never holds a hash without an
  expiry or the reverse.

  update_password(..., reset_lookup=...) is a compare-and-set: the password
  changes and the reset fields clear only if the row still carries that
  lookup key. A reset token can therefore be consumed at most once.

Reset-token lookup:
  reset_token_lookup holds SHA-256(reset_token) under a UNIQUE index, so
  reset-complete finds its row with one indexed query instead of scanning and
  bcrypt-checking every user. bcrypt is salted and cannot be indexed; the
  bcrypt hash is still stored and verified after the lookup.

Errors:
  Every SQLAlchemyError is translated to StoreError at this boundary. The
  one exception is an IntegrityError on insert, which means the email is
  taken and becomes ConflictError.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Column, Index, MetaData, String, Table, Text, create_engine, event, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import ConflictError, StoreError
from auth.models import UserRecord
from auth.passwords import is_bcrypt_hash
from core.config import get_settings

logger = logging.getLogger("authcore.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("user_id", String(36), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),  # case-sensitive as stored
    Column("hashed_password", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("reset_token_hash", Text),
    Column("reset_token_expiry", String(32)),  # ISO 8601, UTC
    Column("reset_token_lookup", String(64)),  # SHA-256 hex of the reset token
    Column("profile", Text),  # JSON blob of user-editable fields
)

Index("ix_users_reset_token_lookup", _users.c.reset_token_lookup, unique=True)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Translate driver failures into StoreError, keeping the cause chained."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("User store %s failed: %s", operation, exc.__class__.__name__)
        raise StoreError(f"user store {operation} failed: {exc}") from exc


def _require_bcrypt(value: str, what: str) -> None:
    # Fail fast: persisting a plaintext secret by mistake must be impossible.
    if not is_bcrypt_hash(value):
        raise ValueError(f"{what} must be a bcrypt hash")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for UserRecord entities.

    Usage:
        store = UserStore("sqlite:///:memory:")
        store.create("4f1c...", "alice@example.com", passwords.hash("Passw0rd"))
        user = store.get_by_email("alice@example.com")
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        # hide_parameters keeps emails and hashes out of driver error messages.
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, hide_parameters=True)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        with _store_errors("schema setup"):
            _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Create / read
    # ------------------------------------------------------------------

    def create(self, user_id: str, email: str, hashed_password: str) -> UserRecord:
        """Insert a new user. Raises ConflictError if the email already exists.

        The UNIQUE(email) constraint is the arbiter, not a prior SELECT, so
        concurrent registrations for one address resolve to one winner.
        """
        _require_bcrypt(hashed_password, "hashed_password")
        created_at = _now_iso()
        with _store_errors("create"):
            try:
                with self.engine.connect() as conn:
                    conn.execute(
                        _users.insert().values(
                            user_id=user_id,
                            email=email,
                            hashed_password=hashed_password,
                            created_at=created_at,
                            profile=json.dumps({}),
                        )
                    )
                    conn.commit()
            except IntegrityError as exc:
                raise ConflictError() from exc
        return UserRecord(user_id=user_id, email=email, hashed_password=hashed_password, created_at=created_at)

    def get_by_id(self, user_id: str) -> UserRecord | None:
        """Look up a user by primary key. Returns None if not found."""
        with _store_errors("get_by_id"), self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.user_id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> UserRecord | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with _store_errors("get_by_email"), self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_reset_lookup(self, lookup_key: str) -> UserRecord | None:
        """Find the user holding a reset token by its SHA-256 lookup key. O(1) via UNIQUE index."""
        with _store_errors("get_by_reset_lookup"), self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.reset_token_lookup == lookup_key)).fetchone()
        return _row_to_user(row) if row is not None else None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def update_password(self, user_id: str, hashed_password: str, reset_lookup: str | None = None) -> bool:
        """Replace the password hash. Returns True if a row was updated.

        With reset_lookup, the update also clears the reset-token fields and
        only applies if the row still holds that lookup key (single use).
        """
        _require_bcrypt(hashed_password, "hashed_password")
        stmt = _users.update().where(_users.c.user_id == user_id)
        values: dict[str, Any] = {"hashed_password": hashed_password}
        if reset_lookup is not None:
            stmt = stmt.where(_users.c.reset_token_lookup == reset_lookup)
            values.update(reset_token_hash=None, reset_token_expiry=None, reset_token_lookup=None)
        with _store_errors("update_password"), self.engine.connect() as conn:
            result = conn.execute(stmt.values(**values))
            conn.commit()
        return result.rowcount > 0

    def set_reset_token(self, user_id: str, token_hash: str, expiry: datetime, lookup_key: str) -> bool:
        """Store a reset token's bcrypt hash, expiry and lookup key in one statement.

        Overwrites any earlier reset token, which stops working immediately.
        """
        _require_bcrypt(token_hash, "token_hash")
        with _store_errors("set_reset_token"), self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.user_id == user_id)
                .values(
                    reset_token_hash=token_hash,
                    reset_token_expiry=expiry.astimezone(timezone.utc).isoformat(),
                    reset_token_lookup=lookup_key,
                )
            )
            conn.commit()
        return result.rowcount > 0

    def clear_reset_token(self, user_id: str, reset_lookup: str | None = None) -> bool:
        """Remove all reset-token fields from a user.

        With reset_lookup, only clears if the row still holds that token, so a
        newer reset token issued in the meantime survives.
        """
        stmt = _users.update().where(_users.c.user_id == user_id)
        if reset_lookup is not None:
            stmt = stmt.where(_users.c.reset_token_lookup == reset_lookup)
        with _store_errors("clear_reset_token"), self.engine.connect() as conn:
            result = conn.execute(
                stmt.values(reset_token_hash=None, reset_token_expiry=None, reset_token_lookup=None)
            )
            conn.commit()
        return result.rowcount > 0

    def update_profile(self, user_id: str, fields: dict[str, Any]) -> UserRecord | None:
        """Merge fields into the user's profile blob. Returns the updated record, None if not found.

        Read-merge-write runs inside one transaction so a concurrent update to
        another field is not lost on databases with row locking.
        """
        with _store_errors("update_profile"), self.engine.begin() as conn:
            row = conn.execute(select(_users.c.profile).where(_users.c.user_id == user_id)).fetchone()
            if row is None:
                return None
            profile = _load_profile(row.profile)
            profile.update(fields)
            conn.execute(_users.update().where(_users.c.user_id == user_id).values(profile=json.dumps(profile)))
        return self.get_by_id(user_id)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            logger.exception("User store ping failed")
            return False

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _load_profile(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except ValueError:
        logger.warning("Discarding unparsable profile blob")
        return {}
    return value if isinstance(value, dict) else {}


def _row_to_user(row) -> UserRecord:
    return UserRecord(
        user_id=row.user_id,
        email=row.email,
        hashed_password=row.hashed_password,
        created_at=row.created_at,
        reset_token_hash=row.reset_token_hash,
        reset_token_expiry=row.reset_token_expiry,
        reset_token_lookup=row.reset_token_lookup,
        profile=_load_profile(row.profile),
    )

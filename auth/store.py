"""
auth/store.py -- SQLAlchemy Core persistence layer for identities (credential store).

Pattern: Repository + Data Mapper (same as library/store.py).
UserStore is the repository; _row_to_identity is the mapper.
Route and dependency code never touches SQL directly, and nothing outside this
store reads a stored password hash -- password checks go through
UserStore.verify_password().

Uniqueness:
  username_key (case-folded username) and email (stripped, lower-cased) both
  carry UNIQUE constraints. register() does a pre-read for a friendly early
  exit, but the constraint is what makes check-then-insert atomic: two
  concurrent registrations for the same name cannot both commit, and the
  loser's IntegrityError is mapped to DuplicateCredential.

Security:
  All queries use bound parameters. No f-strings in SQL.
  The plaintext password only lives for the duration of register() /
  verify_password() and is never logged.

Failures:
  OperationalError (database unreachable, locked, missing schema) is raised as
  StoreUnavailable so the API layer can answer with a generic 500.

DB path: auth/songvault_auth.db by default (see core/config.py).

Layer rule: no imports from api/ or library/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, or_, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, OperationalError

from auth.models import Identity
from auth.tokens import dummy_hash, hash_password, verify_password
from core.errors import DuplicateCredential, StoreUnavailable

logger = logging.getLogger("songvault.auth.store")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'songvault_auth.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(50), nullable=False),  # display form
    Column("username_key", String(50), nullable=False, unique=True),  # casefold(username)
    Column("email", String(255), nullable=False, unique=True),  # normalized
    Column("hashed_password", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)


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


def normalize_username(username: str) -> str:
    """Case-folded comparison key for a username."""
    return username.strip().casefold()


def normalize_email(email: str) -> str:
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for Identity records.

    Usage:
        store = UserStore("sqlite:///:memory:", bcrypt_rounds=12)
        alice = store.register("alice", "alice@x.com", "pw123")
        found = store.find_by_username_or_email("ALICE")
        store.verify_password(found, "pw123")   # True
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL, bcrypt_rounds: int = 12) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        self.bcrypt_rounds = bcrypt_rounds
        with self._connect() as conn:
            _metadata.create_all(conn)
            conn.commit()

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        """Yield a connection; surface OperationalError as StoreUnavailable."""
        try:
            with self.engine.connect() as conn:
                yield conn
        except OperationalError as exc:
            logger.error("Credential store unavailable: %s", exc)
            raise StoreUnavailable() from exc

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def register(self, username: str, email: str, raw_password: str) -> Identity:
        """Create a new identity with a bcrypt-hashed password.

        Raises DuplicateCredential if the username (case-insensitively) or the
        normalized email is already taken -- whether the pre-read spots it or
        the UNIQUE constraint rejects a concurrent insert.
        """
        display = username.strip()
        username_key = normalize_username(username)
        email_norm = normalize_email(email)

        if self._is_taken(username_key, email_norm):
            raise DuplicateCredential()

        hashed = hash_password(raw_password, self.bcrypt_rounds)
        created_at = _now_iso()
        try:
            with self._connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        username=display,
                        username_key=username_key,
                        email=email_norm,
                        hashed_password=hashed,
                        created_at=created_at,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateCredential() from exc

        identity_id = result.inserted_primary_key[0]
        logger.info("Registered identity id=%s", identity_id)
        return Identity(
            id=identity_id,
            username=display,
            email=email_norm,
            hashed_password=hashed,
            created_at=created_at,
        )

    def _is_taken(self, username_key: str, email_norm: str) -> bool:
        """Early duplicate check. Not authoritative -- the UNIQUE constraints are."""
        with self._connect() as conn:
            row = conn.execute(
                select(_users.c.id).where(or_(_users.c.username_key == username_key, _users.c.email == email_norm))
            ).fetchone()
        return row is not None

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_by_username_or_email(self, identifier: str) -> Identity | None:
        """Single lookup matching either the username or the email, case-insensitively."""
        username_key = normalize_username(identifier)
        email_norm = normalize_email(identifier)
        with self._connect() as conn:
            row = conn.execute(
                _users.select().where(or_(_users.c.username_key == username_key, _users.c.email == email_norm))
            ).fetchone()
        return _row_to_identity(row) if row is not None else None

    def get_by_id(self, identity_id: int) -> Identity | None:
        """Look up an identity by primary key. Returns None if not found."""
        with self._connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == identity_id)).fetchone()
        return _row_to_identity(row) if row is not None else None

    # ------------------------------------------------------------------
    # Password checks
    # ------------------------------------------------------------------

    def verify_password(self, identity: Identity, raw_password: str) -> bool:
        """Return True if raw_password matches the identity's stored hash."""
        if not identity.hashed_password:
            self.burn_password_check(raw_password)
            return False
        return verify_password(raw_password, identity.hashed_password)

    def burn_password_check(self, raw_password: str) -> None:
        """Run one bcrypt verification against a dummy hash at the store's cost.

        Called when there is no identity to check against, so that branch costs
        the same as a real wrong-password check.
        """
        verify_password(raw_password, dummy_hash(self.bcrypt_rounds))

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_identity(row) -> Identity:
    return Identity(
        id=row.id,
        username=row.username,
        email=row.email,
        hashed_password=row.hashed_password,
        created_at=row.created_at,
    )

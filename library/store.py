"""
library/store.py -- SQLAlchemy-backed, owner-scoped persistence for songs.

Uses SQLAlchemy Core (not ORM) so the dataclass in library/models.py remains
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change, not a rewrite.

Pattern: Repository + Data Mapper. SongStore is the repository; _row_to_song
is the mapper. Route handlers never touch SQL directly.

Ownership rule:
  Every statement that reads or deletes a song binds owner_id in its WHERE
  clause alongside any song id. There is no locate-by-id-then-compare-owner
  path, so "belongs to someone else" and "does not exist" are the same
  outcome (NotFound) with the same cost. No method accepts a song id without
  an owner id.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = SongStore()                                # SQLite default
    store = SongStore("postgresql://user:pw@host/db")  # PostgreSQL
    song = store.create_song(owner_id, title="X", artist="Y")
    songs = store.list_songs(owner_id)                 # newest first
    store.delete_song(owner_id, song.id)
    store.close()
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, create_engine, event
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import OperationalError

from core.errors import InvalidFields, NotFound, StoreUnavailable
from library.models import Song

logger = logging.getLogger("songvault.library")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'songvault_library.db'}"

TITLE_MAX_LENGTH = 200
ARTIST_MAX_LENGTH = 200
DURATION_MAX_SECONDS = 2**31 - 1

# SQLite INTEGER is signed 64-bit; larger ids cannot name a row.
_MAX_ROW_ID = 2**63 - 1

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_songs = Table(
    "songs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("owner_id", Integer, nullable=False),  # auth users.id, separate DB
    Column("title", String(TITLE_MAX_LENGTH), nullable=False),
    Column("artist", String(ARTIST_MAX_LENGTH), nullable=False),
    Column("duration", Integer),  # seconds
    Column("created_at", String(32), nullable=False),
    Index("ix_songs_owner_created", "owner_id", "created_at"),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _is_row_id(song_id: int) -> bool:
    return 0 < song_id <= _MAX_ROW_ID


def _clean_fields(title: Optional[str], artist: Optional[str], duration: Optional[int]) -> tuple[str, str, Optional[int]]:
    """Trim and check song fields. Raises InvalidFields on any problem."""
    title = (title or "").strip()
    artist = (artist or "").strip()
    if not title or not artist:
        raise InvalidFields("Title and artist are required.")
    if len(title) > TITLE_MAX_LENGTH or len(artist) > ARTIST_MAX_LENGTH:
        raise InvalidFields(f"Title and artist must be at most {TITLE_MAX_LENGTH} characters.")
    if duration is not None and (isinstance(duration, bool) or not 0 <= duration <= DURATION_MAX_SECONDS):
        raise InvalidFields(f"Duration must be between 0 and {DURATION_MAX_SECONDS} seconds.")
    return title, artist, duration


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class SongStore:
    """Repository for Song records, scoped by owner on every operation."""

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        with self._connect() as conn:
            metadata.create_all(conn)
            conn.commit()

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        """Yield a connection; surface OperationalError as StoreUnavailable."""
        try:
            with self.engine.connect() as conn:
                yield conn
        except OperationalError as exc:
            logger.error("Song store unavailable: %s", exc)
            raise StoreUnavailable() from exc

    def list_songs(self, owner_id: int) -> list[Song]:
        """Return every song owned by owner_id, newest first."""
        with self._connect() as conn:
            rows = conn.execute(
                _songs.select()
                .where(_songs.c.owner_id == owner_id)
                .order_by(_songs.c.created_at.desc(), _songs.c.id.desc())
            ).fetchall()
        return [_row_to_song(r) for r in rows]

    def create_song(
        self,
        owner_id: int,
        title: Optional[str],
        artist: Optional[str],
        duration: Optional[int] = None,
    ) -> Song:
        """Insert a song owned by owner_id and return it with id and created_at.

        Raises InvalidFields if title or artist is absent or blank (after
        trimming), too long, or if duration is out of range.
        """
        title, artist, duration = _clean_fields(title, artist, duration)
        song = Song(owner_id=owner_id, title=title, artist=artist, duration=duration, created_at=_now_iso())
        with self._connect() as conn:
            result = conn.execute(
                _songs.insert().values(
                    owner_id=song.owner_id,
                    title=song.title,
                    artist=song.artist,
                    duration=song.duration,
                    created_at=song.created_at,
                )
            )
            conn.commit()
        song.id = result.inserted_primary_key[0]
        return song

    def get_song(self, owner_id: int, song_id: int) -> Song:
        """Return one song. Raises NotFound unless it exists AND belongs to owner_id."""
        if not _is_row_id(song_id):
            raise NotFound()
        with self._connect() as conn:
            row = conn.execute(
                _songs.select().where((_songs.c.id == song_id) & (_songs.c.owner_id == owner_id))
            ).fetchone()
        if row is None:
            raise NotFound()
        return _row_to_song(row)

    def delete_song(self, owner_id: int, song_id: int) -> None:
        """Delete one song in a single owner-scoped statement.

        Raises NotFound when no row matches both ids -- wrong id and wrong
        owner are indistinguishable to the caller.
        """
        if not _is_row_id(song_id):
            raise NotFound()
        with self._connect() as conn:
            result = conn.execute(
                _songs.delete().where((_songs.c.id == song_id) & (_songs.c.owner_id == owner_id))
            )
            conn.commit()
        if result.rowcount == 0:
            raise NotFound()

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_song(row) -> Song:
    return Song(
        id=row.id,
        owner_id=row.owner_id,
        title=row.title,
        artist=row.artist,
        duration=row.duration,
        created_at=row.created_at,
    )

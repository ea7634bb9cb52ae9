"""
library/models.py -- Domain dataclasses for a user's song library.

Pure data containers with zero logic. Validation and ownership scoping live in
library/store.py.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Song:
    """A song owned by exactly one identity.

    owner_id is a non-owning reference to auth's Identity.id. It is set once
    at creation and never changes -- the store has no update or transfer
    operation.

    duration is in seconds; None when the user did not give one.
    id is None before the record is written to the database.
    """

    owner_id: int
    title: str
    artist: str
    duration: Optional[int] = None
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert

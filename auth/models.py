"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in library/models.py -- dataclasses own domain shape; stores and routes do
the work.

Layer rule: no imports from api/ or library/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Identity:
    """A registered SongVault account.

    username keeps the display form the user registered with; uniqueness is
    checked on its case-folded form (see auth/store.py). email is stored
    normalized (stripped, lower-cased).

    hashed_password is the bcrypt hash with its embedded salt and cost. It is
    excluded from repr() so an Identity can be logged safely, and it is never
    copied into an API response model.
    """

    username: str
    email: str
    id: int | None = None
    hashed_password: str | None = field(default=None, repr=False)
    created_at: str | None = None


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a successful register or login: a fresh token and its owner."""

    token: str
    identity: Identity
    expires_in: int

"""
API request and response models for SongVault REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
library/models.py, which own the internal domain representation. Route
handlers map between the two.

Request models stay permissive about presence (fields default to None): the
domain layer decides what "missing" means and raises InvalidFields, so an
absent title and a blank title produce the same 400.

No response model has a password or hash field. UserResponse is the only
shape an Identity ever leaves the server in.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Identity
from library.models import Song
from library.store import DURATION_MAX_SECONDS

# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    username: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    Accepts the browser client's camelCase key ("usernameOrEmail") as well as
    the snake_case field name.
    """

    model_config = ConfigDict(populate_by_name=True)

    username_or_email: Optional[str] = Field(default=None, alias="usernameOrEmail", max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)


# ---------------------------------------------------------------------------
# Auth -- response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of an identity."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str
    created_at: str

    @classmethod
    def from_identity(cls, identity: Identity) -> "UserResponse":
        return cls(
            id=identity.id,
            username=identity.username,
            email=identity.email,
            created_at=identity.created_at or "",
        )


class AuthResponse(BaseModel):
    """Response for register and login."""

    model_config = ConfigDict(frozen=True)

    message: str
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


# ---------------------------------------------------------------------------
# Songs
# ---------------------------------------------------------------------------


class SongCreate(BaseModel):
    """Request body for POST /api/v1/songs."""

    title: Optional[str] = Field(default=None, max_length=1000)
    artist: Optional[str] = Field(default=None, max_length=1000)
    duration: Optional[int] = Field(default=None, ge=0, le=DURATION_MAX_SECONDS, description="Length in seconds.")


class SongResponse(BaseModel):
    """One song as returned to its owner."""

    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    artist: str
    duration: Optional[int]
    owner_id: int
    created_at: str

    @classmethod
    def from_song(cls, song: Song) -> "SongResponse":
        return cls(
            id=song.id,
            title=song.title,
            artist=song.artist,
            duration=song.duration,
            owner_id=song.owner_id,
            created_at=song.created_at,
        )


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str

"""
core/errors.py -- The closed set of failures SongVault operations raise.

Every operation in auth/ and library/ signals failure by raising exactly one of
these classes; nothing else is inspected by name. api/main.py maps the whole
hierarchy onto the shared error envelope with a single exception handler:

    {"error": {"code": <code>, "message": <message>}}

Client-visible messages are deliberately generic where detail would leak
information:
  - InvalidCredentials never says whether the identifier or the password was
    wrong.
  - Every AuthenticationError variant renders as the same 401 "unauthorized"
    response. The variant survives only in `log_code`, for server-side logs.
  - NotFound never says whether the song is missing or belongs to someone else.
  - StoreUnavailable is the one infrastructure failure. Its detail goes to the
    server log; the client gets a generic 500.

Layer rule: core/ is the kernel and imports nothing from the other layers.
"""

from __future__ import annotations


class SongVaultError(Exception):
    """Base class. Subclasses fix code, status_code and the default message."""

    code: str = "error"
    status_code: int = 400
    message: str = "Request failed."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)

    @property
    def log_code(self) -> str:
        return self.code


# ---------------------------------------------------------------------------
# Input and credential failures
# ---------------------------------------------------------------------------


class DuplicateCredential(SongVaultError):
    code = "duplicate_credential"
    status_code = 400
    message = "A user with that username or email already exists."


class InvalidFields(SongVaultError):
    """A required field is absent or empty, or a field is out of range."""

    code = "invalid_fields"
    status_code = 400
    message = "Invalid or missing fields."


class InvalidCredentials(SongVaultError):
    code = "invalid_credentials"
    status_code = 401
    message = "Invalid credentials."


# ---------------------------------------------------------------------------
# Auth gate failures -- identical to the client, distinct in logs
# ---------------------------------------------------------------------------


class AuthenticationError(SongVaultError):
    code = "unauthorized"
    status_code = 401
    message = "Authentication required."
    _log_code = "unauthorized"

    def __init__(self, reason: str | None = None) -> None:
        # reason is log-only; the client message never changes.
        super().__init__()
        self.reason = reason

    @property
    def log_code(self) -> str:
        return self._log_code


class MissingToken(AuthenticationError):
    _log_code = "missing_token"


class MalformedToken(AuthenticationError):
    _log_code = "malformed_token"


class InvalidToken(AuthenticationError):
    _log_code = "invalid_token"


class ExpiredToken(AuthenticationError):
    _log_code = "expired_token"


class UnknownSubject(AuthenticationError):
    _log_code = "unknown_subject"


# ---------------------------------------------------------------------------
# Resource and infrastructure failures
# ---------------------------------------------------------------------------


class NotFound(SongVaultError):
    code = "not_found"
    status_code = 404
    message = "Song not found."


class StoreUnavailable(SongVaultError):
    code = "store_unavailable"
    status_code = 500
    message = "An unexpected error occurred."

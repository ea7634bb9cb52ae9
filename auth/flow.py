"""
auth/flow.py -- Registration and login: the two public entry points.

Both functions orchestrate the credential store and the token codec and return
an AuthResult (token + identity). Neither is behind the auth gate -- callers
have no token yet.

register() validates the submitted fields, delegates to UserStore.register()
and issues a token straight away (auto-login after registration).

login() is timing-equalized. It always runs exactly one bcrypt verification:
  - Unknown identifier: bcrypt runs against a dummy hash at the same cost.
  - Wrong password:     bcrypt runs against the real hash.
Both branches then raise the same InvalidCredentials, so neither the message
nor the latency reveals whether the identifier exists. Do NOT inline
find_by_username_or_email() + verify_password() in a route -- that re-opens
the enumeration hole.

Layer rule: no imports from api/ or library/.
"""

from __future__ import annotations

import logging
import re

from auth.models import AuthResult, Identity
from auth.store import UserStore
from auth.tokens import MAX_PASSWORD_BYTES, TokenCodec
from core.errors import InvalidCredentials, InvalidFields

logger = logging.getLogger("songvault.auth")

USERNAME_MAX_LENGTH = 50
EMAIL_MAX_LENGTH = 255

_USERNAME_RE = re.compile(r"^[^\s@]+$")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _validate_registration(username: str | None, email: str | None, password: str | None) -> None:
    missing = [
        name
        for name, value in (("username", username), ("email", email), ("password", password))
        if value is None or not value.strip()
    ]
    if missing:
        raise InvalidFields(f"Missing required fields: {', '.join(missing)}.")

    username = username.strip()
    if len(username) > USERNAME_MAX_LENGTH or not _USERNAME_RE.match(username):
        raise InvalidFields(
            f"Username must be 1-{USERNAME_MAX_LENGTH} characters with no spaces or '@'."
        )
    email = email.strip()
    if len(email) > EMAIL_MAX_LENGTH or not _EMAIL_RE.match(email):
        raise InvalidFields("Email address is not valid.")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise InvalidFields(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def register(store: UserStore, codec: TokenCodec, username: str, email: str, password: str) -> AuthResult:
    """Create an identity and return it with a freshly issued token.

    Raises InvalidFields for absent/empty/out-of-range fields and
    DuplicateCredential if the username or email is already registered.
    """
    _validate_registration(username, email, password)
    identity = store.register(username, email, password)
    return _issue(codec, identity)


def login(store: UserStore, codec: TokenCodec, username_or_email: str, password: str) -> AuthResult:
    """Authenticate by username or email and return a fresh token.

    Raises InvalidFields if either field is empty, otherwise InvalidCredentials
    for every failure -- unknown identifier and wrong password alike.
    """
    if not username_or_email or not username_or_email.strip() or not password:
        raise InvalidFields("Username/email and password are required.")

    identity = authenticate(store, username_or_email, password)
    if identity is None:
        logger.info("Login failed")
        raise InvalidCredentials()
    return _issue(codec, identity)


def authenticate(store: UserStore, username_or_email: str, password: str) -> Identity | None:
    """Return the matching identity if the password is correct, else None.

    Always runs bcrypt once, whether or not the identifier exists.
    """
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        # Cannot match any stored hash; still pay the bcrypt cost.
        store.burn_password_check(password.encode("utf-8")[:MAX_PASSWORD_BYTES].decode("utf-8", "ignore"))
        return None

    identity = store.find_by_username_or_email(username_or_email)
    if identity is None:
        # Equalize timing -- do NOT return early before running bcrypt.
        store.burn_password_check(password)
        return None
    if not store.verify_password(identity, password):
        return None
    return identity


def _issue(codec: TokenCodec, identity: Identity) -> AuthResult:
    token = codec.issue(identity.id)
    return AuthResult(token=token, identity=identity, expires_in=codec.expire_seconds)

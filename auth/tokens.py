"""
auth/tokens.py -- Session token codec and password hashing utilities.

Security design decisions:
  Tokens: python-jose with HS256. A token carries the identity id ("sub"),
       the issue time ("iat") and the expiry ("exp"). Nothing is stored
       server-side: a token is valid iff its signature verifies against the
       current secret AND the codec's clock is before "exp". Rotating the
       secret therefore invalidates every token at once.

       TokenCodec.verify() raises one of three distinct failures so logs can
       tell them apart, although the auth gate rejects all three identically:
         MalformedToken -- not a decodable JWT, or required claims missing
         InvalidToken   -- signature (or algorithm) does not verify
         ExpiredToken   -- signature verifies but the window has elapsed
       The signature is always checked before the expiry, so a forged token
       is reported as invalid even when its claimed expiry is in the past.

  Passwords: bcrypt directly (no passlib wrapper). bcrypt embeds the salt and
       cost in the hash string, and checkpw() compares digests in constant
       time. dummy_hash() enables timing equalization in the login flow so
       response time does not reveal whether an identifier exists.

  SECRET_KEY: never read here. The codec receives the secret, the validity
       window and a clock through its constructor (api/main.py lifespan builds
       it from core.config.get_settings()). Tests inject a fixed secret and a
       frozen clock.

Layer rule: no imports from api/ or library/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from functools import lru_cache

import bcrypt
from jose import JWTError, jwt

from core.errors import ExpiredToken, InvalidToken, MalformedToken

logger = logging.getLogger("songvault.auth")

_ALGORITHM = "HS256"

# bcrypt only looks at the first 72 bytes of its input. bcrypt 5.x refuses
# longer inputs outright, so the flow rejects them before hashing.
MAX_PASSWORD_BYTES = 72

# Identity ids are SQLite INTEGER primary keys (signed 64-bit).
MAX_IDENTITY_ID = 2**63 - 1

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int = 12) -> str:
    """Return a salted bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    bcrypt.checkpw() re-derives the digest with the salt and cost embedded in
    `hashed` and compares in constant time.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Over-long input or a corrupt stored hash.
        return False


@lru_cache(maxsize=8)
def dummy_hash(rounds: int) -> str:
    """Return a throwaway hash at the given cost for timing equalization.

    Cached per cost factor so only the first unknown-identifier login pays for
    generating it. Always verify against this when the identifier does not
    exist -- bcrypt's constant work factor makes both branches cost the same.
    """
    return hash_password("songvault_timing_dummy", rounds)


# ---------------------------------------------------------------------------
# Token codec
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenCodec:
    """Issue and verify signed, time-limited bearer tokens.

    Usage:
        codec = TokenCodec(secret_key, expire_seconds=7 * 24 * 3600)
        token = codec.issue(identity.id)
        identity_id = codec.verify(token)   # raises on any failure
    """

    def __init__(
        self,
        secret_key: str,
        expire_seconds: int = 7 * 24 * 3600,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret_key:
            raise ValueError("TokenCodec requires a non-empty secret key.")
        if expire_seconds <= 0:
            raise ValueError("expire_seconds must be positive.")
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds
        self._clock = clock

    def issue(self, identity_id: int) -> str:
        """Encode {sub, iat, exp} for identity_id and sign it with the secret."""
        now = self._clock()
        payload = {
            "sub": str(identity_id),
            "iat": now,
            "exp": now + timedelta(seconds=self.expire_seconds),
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str) -> int:
        """Return the identity id the token was issued for.

        Raises MalformedToken, InvalidToken or ExpiredToken. Pure function of
        (token, secret, clock) -- no I/O, no shared state.
        """
        try:
            claims = jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise MalformedToken(str(exc)) from exc

        identity_id = _parse_subject(claims.get("sub"))
        expires_at = claims.get("exp")
        if identity_id is None or not isinstance(expires_at, int) or isinstance(expires_at, bool):
            raise MalformedToken("missing or mistyped sub/exp claim")

        try:
            # Expiry is checked below against the injected clock, not jose's.
            jwt.decode(
                token,
                self._secret_key,
                algorithms=[_ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise InvalidToken(str(exc)) from exc

        if self._clock().timestamp() >= expires_at:
            raise ExpiredToken(f"expired at {expires_at}")
        return identity_id


def _parse_subject(sub) -> int | None:
    # Length is bounded before int() so an oversized claim cannot hit the
    # interpreter's digit limit.
    if not isinstance(sub, str) or len(sub) > 19 or not (sub.isascii() and sub.isdigit()):
        return None
    identity_id = int(sub)
    return identity_id if identity_id <= MAX_IDENTITY_ID else None

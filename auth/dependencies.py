"""
auth/dependencies.py -- The auth gate: FastAPI Depends() helper for protected routes.

get_current_user() runs before any protected handler:

  NoToken --extract--> TokenPresent --verify--> Authenticated | Rejected

  1. Extract the token from "Authorization: Bearer <token>".
     Absent header, another scheme or an empty token -> MissingToken.
  2. TokenCodec.verify() -> MalformedToken | InvalidToken | ExpiredToken.
  3. Resolve the identity through the credential store. A cryptographically
     valid token for an identity that no longer exists -> UnknownSubject.
  4. Attach the identity to request.state.identity and return it.

Every rejection is an AuthenticationError subclass. The variant is logged here;
the API exception handler renders all of them as the same 401 response, and
the handler never runs.

Apply it router-wide with APIRouter(dependencies=[Depends(get_current_user)])
and also declare it as a handler parameter where the handler needs the
identity -- FastAPI caches the dependency per request, so it runs once.

Layer rule: no imports from api/ or library/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging

from fastapi import Request

from auth.models import Identity
from auth.store import UserStore
from auth.tokens import TokenCodec
from core.errors import AuthenticationError, MissingToken, UnknownSubject

logger = logging.getLogger("songvault.auth")

_BEARER_PREFIX = "bearer "


def extract_bearer_token(authorization: str | None) -> str:
    """Return the token from an Authorization header value.

    The scheme name is matched case-insensitively (RFC 7235); the token itself
    is returned verbatim. Raises MissingToken if there is nothing usable.
    """
    if not authorization or not authorization.lower().startswith(_BEARER_PREFIX):
        raise MissingToken()
    token = authorization[len(_BEARER_PREFIX) :].strip()
    if not token:
        raise MissingToken()
    return token


def get_current_user(request: Request) -> Identity:
    """Require a valid bearer token. Raises an AuthenticationError subclass otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: Identity = Depends(get_current_user)): ...
    """
    user_store: UserStore = request.app.state.user_store
    codec: TokenCodec = request.app.state.token_codec

    try:
        token = extract_bearer_token(request.headers.get("Authorization"))
        identity_id = codec.verify(token)
        identity = user_store.get_by_id(identity_id)
        if identity is None:
            raise UnknownSubject(f"identity {identity_id} no longer exists")
    except AuthenticationError as exc:
        logger.info(
            "Auth rejected (%s) on %s %s%s",
            exc.log_code,
            request.method,
            request.url.path,
            f": {exc.reason}" if exc.reason else "",
        )
        raise

    request.state.identity = identity
    return identity

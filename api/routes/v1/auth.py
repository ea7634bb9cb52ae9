"""
api/routes/v1/auth.py -- Registration, login and identity endpoints.

Routes:
  POST /api/v1/auth/register   -- create account; 201 with token (auto-login)
  POST /api/v1/auth/login      -- username-or-email + password; 200 with token
  GET  /api/v1/auth/me         -- current identity (requires auth)

Security:
  login() in auth/flow.py provides timing equalization -- use it, never inline
  the store lookup and password check here.
  Login failures return one generic 401 "invalid_credentials" whether the
  identifier is unknown or the password is wrong.
  Cache-Control: no-store on every response that carries a token.

Failures are raised as core.errors exceptions and rendered by the handler in
api/main.py; these handlers contain no error-shaping code of their own.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import AuthResponse, LoginRequest, RegisterRequest, UserResponse
from auth import flow
from auth.dependencies import get_current_user
from auth.models import AuthResult, Identity

# Auth policy:
# - POST /api/v1/auth/register: public -- no token exists yet
# - POST /api/v1/auth/login:    public -- no token exists yet
# - GET  /api/v1/auth/me:       requires auth (get_current_user)
router = APIRouter()


def _auth_response(response: Response, result: AuthResult, message: str) -> AuthResponse:
    response.headers["Cache-Control"] = "no-store"
    return AuthResponse(
        message=message,
        token=result.token,
        expires_in=result.expires_in,
        user=UserResponse.from_identity(result.identity),
    )


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(request: Request, response: Response, body: RegisterRequest) -> AuthResponse:
    """Register a new account and return a token for it.

    Username and email must both be unused (compared case-insensitively);
    otherwise 400 duplicate_credential.
    """
    result = flow.register(
        request.app.state.user_store,
        request.app.state.token_codec,
        body.username,
        body.email,
        body.password,
    )
    return _auth_response(response, result, "User registered successfully.")


@router.post("/auth/login", response_model=AuthResponse)
def login(request: Request, response: Response, body: LoginRequest) -> AuthResponse:
    """Authenticate with username or email plus password."""
    result = flow.login(
        request.app.state.user_store,
        request.app.state.token_codec,
        body.username_or_email,
        body.password,
    )
    return _auth_response(response, result, "Login successful.")


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=UserResponse)
def me(current_user: Identity = Depends(get_current_user)) -> UserResponse:
    """Return the public identity of the caller."""
    return UserResponse.from_identity(current_user)

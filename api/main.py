"""
api/main.py -- FastAPI application entry point for SongVault.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware      -- adds CORS headers for the configured browser origins
  2. log_requests        -- one log line per request with status and latency

Lifespan handles startup (settings, token codec, stores) and shutdown (close
DB connections) symmetrically. Configuration is read exactly once, here; the
token codec and the stores get their secret, validity window, cost factor and
database URLs through their constructors.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import ErrorDetail, ErrorResponse, HealthResponse, MessageResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.songs import router as songs_router
from auth.store import UserStore
from auth.tokens import TokenCodec
from core.config import get_settings
from core.errors import SongVaultError, StoreUnavailable
from library.store import SongStore

VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

_settings = get_settings()

logging.basicConfig(
    level=_settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("songvault.api")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the token codec and stores on startup, close the stores on shutdown.

    Everything before yield runs on startup; everything after yield runs on
    shutdown.
    """
    settings = get_settings()
    logger.info("SongVault API starting up")
    app.state.token_codec = TokenCodec(settings.secret_key, expire_seconds=settings.token_expire_seconds)
    app.state.user_store = UserStore(settings.auth_db_url, bcrypt_rounds=settings.bcrypt_rounds)
    logger.info("Credential store initialized (bcrypt rounds=%d)", settings.bcrypt_rounds)
    app.state.song_store = SongStore(settings.library_db_url)
    logger.info("Song store initialized")

    yield

    app.state.song_store.close()
    app.state.user_store.close()
    logger.info("SongVault API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="SongVault API",
    description="Personal song library with per-user access control.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(songs_router, prefix="/api/v1", tags=["Songs"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(
            exclude_none=True
        ),
    )


@app.exception_handler(SongVaultError)
async def songvault_error_handler(request: Request, exc: SongVaultError) -> JSONResponse:
    """Render any domain failure as its fixed code, status and client message.

    StoreUnavailable is the one infrastructure failure: its cause is logged with
    a traceback and the client gets the class's generic message only.
    """
    if isinstance(exc, StoreUnavailable):
        logger.error(
            "Store unavailable on %s %s",
            request.method,
            request.url.path,
            exc_info=exc.__cause__ or exc,
        )
        return _error(exc.status_code, exc.code, StoreUnavailable.message)
    return _error(exc.status_code, exc.code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 invalid_fields when the request body, path or query fails validation."""
    return _error(400, "invalid_fields", "Request validation failed.", detail=str(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Structured error for framework-raised HTTP errors (unknown route, bad method)."""
    if exc.status_code == 404:
        return _error(404, "not_found", "Route not found.")
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health and root endpoints
#
# Defined directly in main.py (not in a router) so they are always reachable
# regardless of router registration state. No auth.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=VERSION)


@app.get("/", include_in_schema=False)
async def root() -> MessageResponse:
    return MessageResponse(message="SongVault API is running.")

"""
api/main.py -- FastAPI application entry point for Loverse.

Run with:  uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. log_requests          -- one log line per request with latency

Lifespan wires every collaborator the routes need onto app.state (settings,
user store, session store, token service, optional nonce registry) and starts
the periodic purge task. Routes read from app.state only; nothing reaches for
ambient configuration at request time.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.profile import router as profile_router
from auth.digest import NonceRegistry
from auth.sessions import SessionStore
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import Settings, get_settings
from core.errors import AppError, ErrorCode, message_for

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("loverse.api")

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI, interval: int) -> None:
    """Drop expired session rows (and stale nonces) every `interval` seconds.

    Expired rows already read as absent; this only keeps the table small.
    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and unwinds the coroutine cleanly.
    """
    while True:
        await asyncio.sleep(interval)
        removed = app.state.sessions.purge_expired()
        if app.state.nonces is not None:
            app.state.nonces.purge_expired()
        if removed:
            logger.info("Purged %d expired sessions", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


def wire_state(app: FastAPI, settings: Settings, user_store: UserStore, sessions: SessionStore) -> None:
    """Attach the auth collaborators to app.state.

    Shared by the real lifespan and the test lifespan so both wire the same
    graph; only the stores differ.
    """
    app.state.settings = settings
    app.state.user_store = user_store
    app.state.sessions = sessions
    app.state.tokens = TokenService(lambda: settings.secret_key, ttl=settings.token_expire_seconds)
    app.state.nonces = NonceRegistry(ttl=settings.digest_nonce_ttl_seconds) if settings.digest_nonce_tracking else None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create stores on startup, close them on shutdown."""
    settings = get_settings()
    logger.info("Loverse API starting up")
    wire_state(
        app,
        settings,
        UserStore(settings.auth_db_url),
        SessionStore(settings.session_db_path, ttl=settings.token_expire_seconds),
    )
    logger.info(
        "Auth initialized (realm=%s, nonce_tracking=%s, strict_sessions=%s)",
        settings.digest_realm,
        settings.digest_nonce_tracking,
        settings.strict_sessions,
    )
    app.state.purge_task = asyncio.create_task(_purge_loop(app, settings.session_purge_interval_seconds))

    yield

    app.state.purge_task.cancel()
    app.state.sessions.close()
    app.state.user_store.close()
    logger.info("Loverse API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Loverse API",
    description="Confession wall backend: Digest login, session tokens, profiles.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=["localhost", "127.0.0.1", "*.localhost", "testserver"],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://localhost:3000", "http://127.0.0.1"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["Content-Type", "Authorization"],
    expose_headers=["WWW-Authenticate"],
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

app.include_router(auth_router, tags=["Auth"])
app.include_router(profile_router, tags=["Profile"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same {code, message} envelope so clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: ErrorCode, message: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(code=int(code), message=message or message_for(code)).model_dump(),
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 when the request body or query params fail schema validation."""
    return _error(400, ErrorCode.VALIDATION_FAILED)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap framework-raised HTTP errors (404, 405, ...) in the error envelope."""
    code = ErrorCode.AUTH_REQUIRED if exc.status_code == 401 else ErrorCode.INVALID_INPUT
    if exc.status_code >= 500:
        code = ErrorCode.INTERNAL_ERROR
    return _error(exc.status_code, code, message=str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, ErrorCode.INTERNAL_ERROR)


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=__version__)

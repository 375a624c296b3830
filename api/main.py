"""
api/main.py -- FastAPI application entry point for socialnet.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware -- adds CORS headers for allowed browser origins
  2. log_requests   -- one access-log line per request

Lifespan builds every long-lived collaborator from Settings and parks it on
app.state:
  user_store    -- UserStore (credential store)
  social_store  -- SocialStore (posts, comments)
  token_service -- TokenService, constructed with both signing secrets
  auth_service  -- AuthService over user_store + token_service
Shutdown closes both stores.
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

from api.models import ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.comments import router as comments_router
from api.routes.posts import router as posts_router
from api.routes.users import router as users_router
from auth.exceptions import InternalError, SocialnetError, describe_failure
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings
from social.store import SocialStore

VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("socialnet.api")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown. Secrets are read from Settings exactly once, here, and handed
    to TokenService explicitly.
    """
    settings = get_settings()
    logger.info("socialnet API starting up")
    app.state.user_store = UserStore(settings.database_url)
    app.state.social_store = SocialStore(settings.database_url)
    app.state.token_service = TokenService(
        access_secret=settings.jwt_secret,
        refresh_secret=settings.jwt_refresh_secret,
        access_expire_seconds=settings.access_token_expire_seconds,
        refresh_expire_seconds=settings.refresh_token_expire_seconds,
    )
    app.state.auth_service = AuthService(
        app.state.user_store,
        app.state.token_service,
        max_refresh_tokens=settings.max_refresh_tokens,
    )
    logger.info("Stores initialized")

    yield

    app.state.social_store.close()
    app.state.user_store.close()
    logger.info("socialnet API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="socialnet API",
    description="Users, posts and comments with access/refresh token authentication.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
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

app.include_router(auth_router, tags=["Auth"])
app.include_router(users_router, tags=["Users"])
app.include_router(posts_router, tags=["Posts"])
app.include_router(comments_router, tags=["Comments"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same {"error", "message"} envelope so API clients
# can parse errors uniformly without inspecting status codes.
# ---------------------------------------------------------------------------


@app.exception_handler(SocialnetError)
async def socialnet_error_handler(request: Request, exc: SocialnetError) -> JSONResponse:
    """Render domain errors raised by services, dependencies and routes."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def _describe_schema_errors(exc: RequestValidationError) -> str:
    """Summarize schema failures as "location: message" pairs.

    pydantic also reports the offending input; it is left out so a rejected
    password is never echoed back.
    """
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 when a body or query parameter fails schema validation."""
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error="Validation failed",
            message="Request validation failed.",
            detail=_describe_schema_errors(exc),
        ).model_dump(exclude_none=True),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Structured errors for routing-level failures (unknown path, wrong method)."""
    if exc.status_code == 404:
        error = "Route not found"
    else:
        error = f"HTTP {exc.status_code}"
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=error, message=str(exc.detail)).model_dump(exclude_none=True),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for failures outside the auth service boundary.

    Renders the same InternalError envelope AuthService produces.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    error = InternalError(describe_failure(exc))
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=VERSION)

"""
api/main.py -- FastAPI application entry point for the admin console.

The console is a thin web surface over the backend REST API. This module owns
the application object, its lifespan, logging, and the error envelope. The
console pages themselves live in web/routes.py and are mounted by asgi.py.

Run with:  uvicorn asgi:app --reload

Lifespan handles startup (session rehydration, request pipeline, services) and
shutdown (close HTTP session, dispose storage engine) symmetrically.

app.state after startup:
  settings      Settings
  storage       SessionStorage (SQL or in-memory)
  credentials   CredentialStore -- the one session for this process
  pipeline      AuthorizedRequestPipeline
  guard         RouteGuard
  articles / categories / users   REST collaborators
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from auth.guard import RouteGuard
from auth.http import AuthorizedRequestPipeline
from auth.session import CredentialStore
from auth.store import build_session_storage
from core.config import get_settings
from services import ArticleService, CategoryService, UserService

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("cmsadmin.api")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


def init_state(app: FastAPI, credentials: CredentialStore, pipeline: AuthorizedRequestPipeline) -> None:
    """Wire the session, guard, and services onto app.state.

    Split out of lifespan so tests can install their own store and pipeline
    without touching the real storage backend.
    """
    settings = get_settings()
    app.state.settings = settings
    app.state.credentials = credentials
    app.state.pipeline = pipeline
    app.state.guard = RouteGuard(credentials)
    app.state.articles = ArticleService(pipeline, scripts=settings.slug_scripts)
    app.state.categories = CategoryService(pipeline, scripts=settings.slug_scripts)
    app.state.users = UserService(pipeline)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage the process-wide session across the server lifetime.

    Startup order matters:
      1. Storage first -- rehydrate() reads from it.
      2. CredentialStore + rehydrate() -- the only way a session survives a
         restart; must finish before any guarded request is served.
      3. Pipeline and services last -- they read the store on every call.
    """
    settings = get_settings()
    logger.info("Admin console starting up (backend %s)", settings.api_base_url)
    storage = build_session_storage(settings)
    app.state.storage = storage
    credentials = CredentialStore(storage)
    credentials.rehydrate()
    logger.info("Session initialized (authenticated=%s)", credentials.is_authenticated())
    pipeline = AuthorizedRequestPipeline(credentials, settings.api_base_url, timeout=settings.request_timeout)
    init_state(app, credentials, pipeline)

    yield

    pipeline.close()
    close = getattr(storage, "close", None)
    if close is not None:
        close()
    logger.info("Admin console shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="CMS Admin Console",
    description="Session-gated admin console over the CMS REST backend.",
    version=VERSION,
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Every request passes through this coroutine before reaching a route
# handler; latency is reported on every response.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms",
        request.method,
        request.url.path,
        response.status_code,
        ms,
    )
    return response


# ---------------------------------------------------------------------------
# Exception handlers
#
# One envelope for every failure: {"error": {"code", "message", "detail"}}.
# Web routes that talk to the backend raise HTTPException with a dict detail
# already in that shape (see web/routes.py:_call_backend).
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, detail: Optional[str] = None) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail))
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """422 when a form, JSON body, or query param fails validation."""
    return _error(422, "validation_error", "Request validation failed.", detail=str(exc.errors()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Wrap HTTPException in the envelope; a dict detail is passed through as-is."""
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything unexpected. The exception itself goes to the log only."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Public; reports whether the console holds a session, never the token.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Return liveness, version, and whether the console holds a session."""
    return HealthResponse(version=VERSION, authenticated=request.app.state.credentials.is_authenticated())

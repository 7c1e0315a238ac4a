"""
tests/conftest.py -- Shared test fixtures for the admin console tests.

This module provides:
  - FakeBackend: stands in for requests.Session inside the pipeline, so no
    test touches the network
  - _patch_lifespan(): wires a test session and pipeline into app.state,
    bypassing real startup (no SQLite file, no real HTTP session)
  - web_client: TestClient with follow_redirects=False for web route tests

The session record lives in MemorySessionStorage for every test; the SQL
storage has its own tests in test_session.py against a tmp_path database.
"""

from __future__ import annotations

import json
from collections.abc import Generator
from contextlib import asynccontextmanager
from typing import Any, Callable, Optional, Union

import pytest
import requests
from fastapi.testclient import TestClient

from api.main import init_state
from asgi import app
from auth.http import AuthorizedRequestPipeline
from auth.session import CredentialStore
from auth.store import MemorySessionStorage

BASE_URL = "http://backend.test/api"

# ---------------------------------------------------------------------------
# Fake backend
# ---------------------------------------------------------------------------


def make_response(status: int = 200, body: Any = None, raw: Optional[bytes] = None, url: str = "") -> requests.Response:
    """Build a real requests.Response carrying a JSON (or raw) body."""
    resp = requests.Response()
    resp.status_code = status
    if raw is not None:
        resp._content = raw
    elif body is not None:
        resp._content = json.dumps(body).encode("utf-8")
    else:
        resp._content = b""
    resp.headers["Content-Type"] = "application/json"
    resp.encoding = "utf-8"
    resp.url = url
    return resp


Outcome = Union[requests.Response, Exception, Callable[..., requests.Response]]


class FakeBackend:
    """Minimal requests.Session stand-in keyed by (method, path).

    Unrouted calls answer 404. Every call is recorded in .calls with the
    headers the pipeline actually sent.
    """

    def __init__(self, base_url: str = BASE_URL) -> None:
        self.base_url = base_url
        self.routes: dict[tuple[str, str], Outcome] = {}
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def reply(self, method: str, path: str, status: int = 200, body: Any = None, raw: Optional[bytes] = None) -> None:
        self.routes[(method.upper(), path)] = make_response(status, body, raw, url=self.base_url + path)

    def fail(self, method: str, path: str, exc: Exception) -> None:
        self.routes[(method.upper(), path)] = exc

    def on(self, method: str, path: str, handler: Callable[..., requests.Response]) -> None:
        """Route to a callable(method, path, **kwargs) for behavior mid-request."""
        self.routes[(method.upper(), path)] = handler

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        path = url[len(self.base_url) :] if url.startswith(self.base_url) else url
        self.calls.append(
            {
                "method": method,
                "path": path,
                "headers": dict(kwargs.get("headers") or {}),
                "json": kwargs.get("json"),
                "params": kwargs.get("params"),
            }
        )
        outcome = self.routes.get((method, path))
        if outcome is None:
            return make_response(404, {"error": "Not found"}, url=url)
        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            return outcome(method, path, **kwargs)
        return outcome

    def close(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Session and pipeline fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def storage() -> MemorySessionStorage:
    return MemorySessionStorage()


@pytest.fixture
def credentials(storage: MemorySessionStorage) -> CredentialStore:
    return CredentialStore(storage)


@pytest.fixture
def pipeline(credentials: CredentialStore, backend: FakeBackend) -> AuthorizedRequestPipeline:
    return AuthorizedRequestPipeline(credentials, BASE_URL, timeout=5.0, session=backend)


# ---------------------------------------------------------------------------
# Web client
# ---------------------------------------------------------------------------


def _patch_lifespan(credentials: CredentialStore, pipeline: AuthorizedRequestPipeline):
    """Return an async context manager that replaces the real lifespan.

    Installs the test CredentialStore and pipeline through init_state(), the
    same wiring the real lifespan uses, minus storage and HTTP setup.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.storage = credentials._storage
        init_state(app, credentials, pipeline)
        yield

    return test_lifespan


@pytest.fixture
def web_client(
    credentials: CredentialStore, pipeline: AuthorizedRequestPipeline
) -> Generator[TestClient, None, None]:
    """Yield a TestClient over the full ASGI app.

    follow_redirects=False is essential for web route tests: we assert on
    redirect *locations* (e.g. 302 to /login), which are invisible once
    the client follows the redirect and returns the final 200 response.
    """
    app.router.lifespan_context = _patch_lifespan(credentials, pipeline)
    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client

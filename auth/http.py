"""
auth/http.py -- AuthorizedRequestPipeline: every call to the protected backend.

Request phase:
  Snapshot the CredentialStore. Authenticated -> attach
  "Authorization: Bearer <token>". Unauthenticated -> send without credentials
  and let the backend decide.

Response phase:
  2xx/3xx   returned unchanged.
  401       CredentialStore.invalidate(), whatever the session held when the
            request went out, then AuthenticationRejected is raised. The failure is never retried
            or suppressed.
  other 4xx RequestRejected.
  5xx       TransportError.
  network / timeout -> TransportError, no session change.

Stale flows:
  Callers may pass a FlowContext. If the flow was cancelled (view torn down,
  user navigated away) by the time the response settles, the pipeline raises
  RequestCancelled and neither mutates the session nor hands back the response.

Layer rule: no imports from api/, web/, or services/.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

import requests

from auth.session import CredentialStore
from core.errors import AuthenticationRejected, RequestCancelled, RequestRejected, TransportError

logger = logging.getLogger("cmsadmin.http")

_UNAUTHORIZED = 401


class FlowContext:
    """Cancellable handle for one logical flow (a page load, a form submit).

    Usage:
        with FlowContext("articles") as flow:
            pipeline.get("/articles", context=flow)
        # leaving the block cancels the flow; late responses are discarded
    """

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def __enter__(self) -> "FlowContext":
        return self

    def __exit__(self, *exc_info) -> None:
        self.cancel()


class AuthorizedRequestPipeline:
    """requests.Session wrapper that owns credential attachment and 401 recovery.

    Usage:
        pipeline = AuthorizedRequestPipeline(store, "http://localhost:8000/api")
        resp = pipeline.get("/articles")
        pipeline.close()
    """

    def __init__(
        self,
        credentials: CredentialStore,
        base_url: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.credentials = credentials
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        if session is None:
            session = requests.Session()
            # The backend is a known host; a long redirect chain is a misconfiguration.
            session.max_redirects = 3
        self._session = session

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
        headers: Optional[dict[str, str]] = None,
        context: Optional[FlowContext] = None,
    ) -> requests.Response:
        """Send one request. Single attempt: raises on any non-success outcome.

        Raises:
            AuthenticationRejected: 401; the session was invalidated first.
            RequestRejected:        other 4xx.
            TransportError:         5xx, network failure, or timeout.
            RequestCancelled:       context was cancelled before the response settled.
        """
        method = method.upper()
        session = self.credentials.snapshot()

        send_headers = {"Content-Type": "application/json"}
        if headers:
            send_headers.update(headers)
        if session.is_authenticated:
            send_headers["Authorization"] = f"Bearer {session.token}"

        try:
            resp = self._session.request(
                method,
                self._url(path),
                params=params,
                json=json,
                headers=send_headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            if context is not None and context.cancelled:
                raise RequestCancelled(f"{method} {path} failed after its flow was cancelled") from e
            logger.warning("%s %s failed: %s", method, path, e)
            raise TransportError(f"{method} {path} failed: {e}") from e

        if context is not None and context.cancelled:
            logger.info("%s %s settled after flow %r was cancelled -- discarding", method, path, context.name)
            raise RequestCancelled(f"{method} {path} settled after its flow was cancelled")

        status = resp.status_code
        if status == _UNAUTHORIZED:
            self.credentials.invalidate()
            logger.warning("%s %s rejected credentials (401)", method, path)
            raise AuthenticationRejected(f"{method} {path} returned 401", response=resp)
        if 400 <= status < 500:
            logger.warning("%s %s returned %d", method, path, status)
            raise RequestRejected(f"{method} {path} returned {status}", response=resp)
        if status >= 500:
            logger.warning("%s %s returned %d", method, path, status)
            raise TransportError(f"{method} {path} returned {status}", response=resp)
        return resp

    def get(self, path: str, **kwargs: Any) -> requests.Response:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> requests.Response:
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs: Any) -> requests.Response:
        return self.request("PUT", path, **kwargs)

    def patch(self, path: str, **kwargs: Any) -> requests.Response:
        return self.request("PATCH", path, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> requests.Response:
        return self.request("DELETE", path, **kwargs)

    def close(self) -> None:
        self._session.close()


def response_json(resp: requests.Response) -> Any:
    """Decode a success body. A 2xx that is not JSON is a backend fault -> TransportError."""
    try:
        return resp.json()
    except ValueError as e:
        raise TransportError(f"{resp.url} returned invalid JSON", response=resp) from e

"""
core/errors.py -- Error taxonomy for the admin console.

Every failure in the console either changes observable state (401 -> session
invalidated) or is raised to the caller for presentation. Nothing here
retries, and nothing is swallowed.

  ValidationError         bad input: empty slug, missing token, bad form data
  RequestFailed           an HTTP call did not succeed
    AuthenticationRejected  401 -- the session was invalidated before raising
    RequestRejected         any other 4xx
    TransportError          network failure, timeout, or 5xx
  RequestCancelled        a response arrived for a flow that was torn down
  LoginFailed             login flow failure with a user-facing message

Layer rule: core/ is the kernel. No imports from api/, web/, auth/, services/.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    import requests

_DEFAULT_MESSAGE = "Something went wrong"


class ConsoleError(Exception):
    """Base class for every error raised by the console core."""


class ValidationError(ConsoleError, ValueError):
    """Malformed or empty input. Surfaced immediately, never retried."""


class RequestFailed(ConsoleError):
    """An outbound request did not succeed.

    response is the untouched requests.Response when the server answered,
    None when the failure happened below HTTP (DNS, refused, timeout).
    """

    def __init__(self, message: str, response: Optional["requests.Response"] = None) -> None:
        super().__init__(message)
        self.response = response

    @property
    def status_code(self) -> Optional[int]:
        return self.response.status_code if self.response is not None else None

    @property
    def server_message(self) -> Optional[str]:
        """The backend's "error" field, when the body is a JSON object carrying one."""
        if self.response is None:
            return None
        try:
            body = self.response.json()
        except ValueError:
            return None
        if isinstance(body, dict) and isinstance(body.get("error"), str):
            return body["error"]
        return None


class AuthenticationRejected(RequestFailed):
    """The backend answered 401. The session has already been invalidated."""


class RequestRejected(RequestFailed):
    """The backend answered with a 4xx other than 401."""


class TransportError(RequestFailed):
    """Network failure, timeout, or 5xx. No session state was changed."""


class RequestCancelled(ConsoleError):
    """A response settled after its flow was cancelled and was discarded."""


class LoginFailed(ConsoleError):
    """The login flow failed. str(exc) is the message shown to the user."""

    def __init__(self, message: str, cause_status: Optional[int] = None) -> None:
        super().__init__(message)
        self.cause_status = cause_status


def describe_error(exc: Optional[BaseException], message: Optional[str] = None) -> str:
    """Return the user-facing message for exc, first letter capitalized.

    Precedence: explicit message, the backend's "error" field, the exception
    text, then a generic fallback.
    """
    text = message
    if not text and isinstance(exc, RequestFailed):
        text = exc.server_message
    if not text and exc is not None:
        text = str(exc)
    if not text:
        text = _DEFAULT_MESSAGE
    return text[0].upper() + text[1:]

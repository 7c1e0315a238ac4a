"""
auth/login.py -- Password login against the backend's /auth/login endpoint.

The backend answers either
    200 {"status": "success", "access_token": "<token>", ...}
or an error status. Only a success body carrying a non-empty token starts a
session; everything else becomes LoginFailed with the message the user sees.

Invalid credentials (401) and malformed input (422) get distinct messages, but
both are terminal -- the flow never retries.

Layer rule: no imports from api/, web/, or services/.
"""

from __future__ import annotations

import logging
from typing import Optional

from auth.http import AuthorizedRequestPipeline, FlowContext
from auth.session import Session
from core.errors import AuthenticationRejected, LoginFailed, RequestRejected, TransportError, ValidationError

logger = logging.getLogger("cmsadmin.auth.login")

LOGIN_PATH = "/auth/login"

MSG_BAD_CREDENTIALS = "Invalid email or password"
MSG_BAD_FORMAT = "Please check your email and password format"
MSG_BAD_RESPONSE = "Login failed: Invalid response from server"
MSG_GENERIC = "Login failed. Please try again."


def login(
    pipeline: AuthorizedRequestPipeline,
    email: str,
    password: str,
    context: Optional[FlowContext] = None,
) -> Session:
    """Authenticate with email + password and store the returned token.

    Returns the new Session. Raises LoginFailed on any failure; RequestCancelled
    propagates untouched when the flow was torn down mid-request.
    """
    if not email or not password:
        raise LoginFailed(MSG_BAD_FORMAT)

    try:
        resp = pipeline.post(LOGIN_PATH, json={"email": email, "password": password}, context=context)
    except AuthenticationRejected as e:
        raise LoginFailed(MSG_BAD_CREDENTIALS, cause_status=401) from e
    except RequestRejected as e:
        if e.status_code == 422:
            raise LoginFailed(MSG_BAD_FORMAT, cause_status=422) from e
        raise LoginFailed(MSG_GENERIC, cause_status=e.status_code) from e
    except TransportError as e:
        raise LoginFailed(MSG_GENERIC, cause_status=e.status_code) from e

    try:
        body = resp.json()
    except ValueError:
        body = None

    if not isinstance(body, dict) or body.get("status") != "success":
        logger.warning("Login response from backend was not a success envelope")
        raise LoginFailed(MSG_BAD_RESPONSE, cause_status=resp.status_code)

    try:
        return pipeline.credentials.login(body.get("access_token"))
    except ValidationError as e:
        logger.warning("Login response from backend carried no access token")
        raise LoginFailed(MSG_BAD_RESPONSE, cause_status=resp.status_code) from e

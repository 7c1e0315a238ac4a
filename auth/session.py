"""
auth/session.py -- CredentialStore: the single owner of the console session.

States:
  Unauthenticated         Session(token=None)
  Authenticated(token)    Session(token="<non-empty>")

There is no third state. A Session value is immutable; every transition builds
a new one and swaps it in under a lock, so readers observe either the old or
the new value and never a token without its state or vice versa.

Transitions:
  login(token)      -> Authenticated(token), persisted. Empty token is a
                       protocol error (ValidationError), state unchanged.
  rehydrate()       -> restores Authenticated(token) from storage if a token
                       was saved, else stays Unauthenticated. The only way a
                       session survives a process restart.
  logout()          -> Unauthenticated, persisted record cleared. Idempotent.
  invalidate()      -> same as logout(), used as the recovery action for 401.

The store is an explicit object handed to the request pipeline and the route
guard. There is no module-level instance.

Layer rule: no imports from api/, web/, or services/.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from auth.store import MemorySessionStorage, SessionStorage
from core.errors import ValidationError

logger = logging.getLogger("cmsadmin.auth.session")

_TOKEN_FIELD = "token"


@dataclass(frozen=True)
class Session:
    """Immutable snapshot of the session. token is None when unauthenticated."""

    token: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None


_UNAUTHENTICATED = Session()


class CredentialStore:
    """Holds the current session and mirrors it into the injected storage.

    Usage:
        store = CredentialStore(SqlSessionStorage(url))
        store.rehydrate()
        store.login(token)
        store.is_authenticated()   # True
        store.invalidate()
    """

    def __init__(self, storage: Optional[SessionStorage] = None) -> None:
        self._storage: SessionStorage = storage if storage is not None else MemorySessionStorage()
        self._session: Session = _UNAUTHENTICATED
        # Serializes transitions. The web layer runs sync handlers on a thread
        # pool, so writes can race without it.
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    def snapshot(self) -> Session:
        """Return the current Session value. Safe to hold across a request."""
        return self._session

    def is_authenticated(self) -> bool:
        return self._session.is_authenticated

    @property
    def token(self) -> Optional[str]:
        return self._session.token

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def login(self, token: Optional[str]) -> Session:
        """Enter Authenticated(token) and persist it.

        The backend never returns an empty token on success, so one here is a
        protocol error: raise ValidationError and leave the state untouched.
        """
        if not isinstance(token, str) or not token.strip():
            raise ValidationError("Login succeeded without an access token.")
        session = Session(token=token)
        with self._lock:
            self._storage.save({_TOKEN_FIELD: token})
            self._session = session
        logger.info("Session started")
        return session

    def rehydrate(self) -> Session:
        """Restore the session persisted by a previous process, if any."""
        record = self._storage.load()
        token = record.get(_TOKEN_FIELD) if record else None
        with self._lock:
            if isinstance(token, str) and token.strip():
                self._session = Session(token=token)
                logger.info("Session restored from storage")
            else:
                self._session = _UNAUTHENTICATED
                if record:
                    logger.warning("Persisted session has no usable token -- starting unauthenticated")
            return self._session

    def logout(self) -> None:
        """End the session. Calling it while unauthenticated is a no-op.

        The persisted record is cleared either way, so a leftover blob that
        rehydrate() could not use does not linger.
        """
        if not self.invalidate():
            with self._lock:
                self._storage.clear()

    def invalidate(self) -> bool:
        """Drop to Unauthenticated and clear the persisted record.

        Returns True if an authenticated session was ended.
        """
        with self._lock:
            current = self._session
            if not current.is_authenticated:
                return False
            self._session = _UNAUTHENTICATED
            self._storage.clear()
        logger.info("Session ended")
        return True

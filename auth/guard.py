"""
auth/guard.py -- RouteGuard: which console destinations need a session.

    allow = credentials.is_authenticated() or destination is public

The login path is always public. That is a named rule, not an accident of
path comparison: without it an unauthenticated visit to /login would redirect
to /login forever.

A denied navigation is redirected to the login path with the intended
destination carried as ?next=, so a successful login can forward the user to
where they were headed. next is only ever a server-local path [open-redirect].

Layer rule: no imports from api/, web/, or services/.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode, urlsplit

from auth.session import CredentialStore

# ---------------------------------------------------------------------------
# Console routes
# ---------------------------------------------------------------------------


class WebRoutes:
    home = "/"
    login = "/login"
    logout = "/logout"
    dashboard = "/dashboard"
    users = "/users"
    about = "/about"
    category = "/category"
    article = "/articles"
    article_create = "/articles/create"
    article_edit = "/articles/edit/{slug}"
    article_preview = "/articles/preview/{slug}"


def safe_next(next_url: Optional[str], fallback: str = WebRoutes.dashboard) -> str:
    """Validate a post-login redirect target. Only accept relative paths.

    /login?next=https://attacker.com and /login?next=//attacker.com would both
    send the user off-site after login. Accept only paths that start with "/"
    and not "//"; anything else becomes fallback.
    """
    if next_url and next_url.startswith("/") and not next_url.startswith("//") and "\\" not in next_url:
        return next_url
    return fallback


@dataclass(frozen=True)
class GuardDecision:
    """Outcome of one guard check.

    allowed        True -> render the destination.
    redirect_to    login path when denied, else None.
    next_path      the original destination carried as redirect-back state.
    """

    allowed: bool
    redirect_to: Optional[str] = None
    next_path: Optional[str] = None

    def location(self, **extra: str) -> Optional[str]:
        """Redirect URL with the redirect-back state encoded, or None if allowed."""
        if self.allowed or self.redirect_to is None:
            return None
        query = {"next": self.next_path} if self.next_path else {}
        query.update(extra)
        if not query:
            return self.redirect_to
        return f"{self.redirect_to}?{urlencode(query, safe='/')}"


class RouteGuard:
    """Navigation-time check against the CredentialStore.

    Usage:
        guard = RouteGuard(store)
        decision = guard.check("/articles")
        if not decision.allowed:
            redirect(decision.location())
    """

    def __init__(
        self,
        credentials: CredentialStore,
        login_path: str = WebRoutes.login,
        dashboard_path: str = WebRoutes.dashboard,
        public_paths: Iterable[str] = (),
    ) -> None:
        self.credentials = credentials
        self.login_path = login_path
        self.dashboard_path = dashboard_path
        self.public_paths = frozenset(public_paths)

    def is_login_page(self, destination: str) -> bool:
        return urlsplit(destination).path == self.login_path

    def is_public(self, destination: str) -> bool:
        return self.is_login_page(destination) or urlsplit(destination).path in self.public_paths

    def check(self, destination: str) -> GuardDecision:
        """Decide whether destination may render now."""
        if self.is_public(destination) or self.credentials.is_authenticated():
            return GuardDecision(allowed=True)
        return GuardDecision(allowed=False, redirect_to=self.login_path, next_path=safe_next(destination, "/"))

    def home_target(self) -> str:
        """Where "/" sends the user: the dashboard with a session, login without."""
        return self.dashboard_path if self.credentials.is_authenticated() else self.login_path

    def after_login_target(self, next_url: Optional[str]) -> str:
        """Where a successful login forwards to: next if safe, else the dashboard.

        A next that points back at the login page itself also falls back, so a
        logged-in user is never bounced onto the login page.
        """
        target = safe_next(next_url, self.dashboard_path)
        if self.is_login_page(target):
            return self.dashboard_path
        return target

"""
web/routes.py -- Console routes, gated by the RouteGuard.

Page rendering is not done here: every page route returns the JSON its view
needs, or a redirect. They share app.state with api/main.py (same
CredentialStore, pipeline, services).

Route registration order matters. FastAPI resolves same-level paths in order:
  - GET /articles/create and POST /articles/slug must be registered before
    GET /articles/edit/{slug} and GET /articles/preview/{slug}.

Routes:
  GET  /                            -- dashboard if logged in, else login
  GET  /login                       -- login page state (public)
  POST /login                       -- handle password login, redirect to next
  POST /logout                      -- end session, redirect /login
  GET  /dashboard                   -- collection counts (auth required)
  GET  /users                       -- user list (auth required)
  GET  /category                    -- category list (auth required)
  POST /category/slug               -- slug suggestion for the category form
  GET  /articles                    -- article list with search (auth required)
  GET  /articles/create             -- empty article form (auth required)
  POST /articles/slug               -- slug suggestion for the article form
  GET  /articles/edit/{slug}        -- article form for an existing article
  GET  /articles/preview/{slug}     -- article preview
  GET  /about                       -- static about page (auth required)

Session loss:
  A protected route that gets a 401 from the backend has already had its
  session invalidated by the pipeline. It answers with
  302 /login?next=<path>&expired=1 so the login page can say why.
"""

import logging
from dataclasses import asdict
from typing import Any, Callable, Optional, TypeVar, Union
from urllib.parse import urlencode

from fastapi import APIRouter, Form, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, ConfigDict, Field

from auth.guard import RouteGuard, WebRoutes, safe_next
from auth.http import FlowContext
from auth.login import MSG_BAD_CREDENTIALS, MSG_BAD_FORMAT, MSG_BAD_RESPONSE, MSG_GENERIC, login
from core.errors import (
    AuthenticationRejected,
    LoginFailed,
    RequestCancelled,
    RequestRejected,
    TransportError,
    describe_error,
)
from services import filter_articles

logger = logging.getLogger("cmsadmin.web")

router = APIRouter()

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Request / response models for the editing flows
# ---------------------------------------------------------------------------


class SlugSuggestRequest(BaseModel):
    """Body for POST /articles/slug and POST /category/slug.

    exclude_id is the id of the entity under edit, so its current slug does
    not count as a collision.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(max_length=255)
    exclude_id: Optional[str] = None


class SlugSuggestResponse(BaseModel):
    slug: str
    # False when the title produced no slug -- the form must reject it.
    valid: bool


# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------

# Whitelist mapping for ?error= on /login. The raw query param is never echoed
# back -- only the message from this dict is.
_ERROR_MESSAGES: dict[str, str] = {
    "bad_credentials": MSG_BAD_CREDENTIALS,
    "invalid_format": MSG_BAD_FORMAT,
    "bad_response": MSG_BAD_RESPONSE,
    "login_failed": MSG_GENERIC,
}

_LOGIN_ERROR_CODES: dict[str, str] = {v: k for k, v in _ERROR_MESSAGES.items()}

_EXPIRED_MESSAGE = "Your session has expired. Please log in again."


def _guard(request: Request) -> RouteGuard:
    return request.app.state.guard


def _destination(request: Request) -> str:
    """Path plus query string -- the redirect-back state for ?next=."""
    query = request.url.query
    return f"{request.url.path}?{query}" if query else request.url.path


def _require_auth(request: Request) -> Optional[RedirectResponse]:
    """Check the current navigation against the RouteGuard.

    Returns a RedirectResponse to /login?next=<path> if not allowed, None if OK.
    Call at the top of protected route handlers:
        if redirect := _require_auth(request):
            return redirect
    """
    decision = _guard(request).check(_destination(request))
    if not decision.allowed:
        return RedirectResponse(decision.location(), status_code=302)
    return None


def _expired_redirect(request: Request) -> RedirectResponse:
    guard = _guard(request)
    location = guard.check(_destination(request)).location(expired="1")
    # Another request may have logged in since the 401; then send the user back where they were.
    return RedirectResponse(location or _destination(request), status_code=302)


def _call_backend(request: Request, fn: Callable[[FlowContext], T]) -> Union[T, RedirectResponse]:
    """Run one backend flow for this request and map failures onto HTTP.

    AuthenticationRejected -> expired-session redirect (session already gone).
    RequestRejected        -> same status, structured error body.
    TransportError         -> 502, structured error body.
    """
    with FlowContext(request.url.path) as flow:
        try:
            return fn(flow)
        except AuthenticationRejected:
            return _expired_redirect(request)
        except RequestRejected as e:
            raise HTTPException(
                status_code=e.status_code or 400,
                detail={"code": "backend_rejected", "message": describe_error(e)},
            ) from e
        except TransportError as e:
            raise HTTPException(
                status_code=502,
                detail={"code": "backend_unavailable", "message": describe_error(e)},
            ) from e
        except RequestCancelled as e:
            # Only reachable if the flow is cancelled from another thread.
            raise HTTPException(
                status_code=409,
                detail={"code": "flow_cancelled", "message": describe_error(e)},
            ) from e


def _page(page: str, data: Any = None) -> JSONResponse:
    return JSONResponse({"page": page, "data": data})


# ---------------------------------------------------------------------------
# GET / -- home redirect
# ---------------------------------------------------------------------------


@router.get("/")
def home(request: Request) -> RedirectResponse:
    return RedirectResponse(_guard(request).home_target(), status_code=302)


# ---------------------------------------------------------------------------
# Login / logout
# ---------------------------------------------------------------------------


@router.get(WebRoutes.login)
def login_page(request: Request) -> Any:
    """Login page state. Already-authenticated users are forwarded to next."""
    guard = _guard(request)
    next_param = request.query_params.get("next")
    if guard.credentials.is_authenticated():
        return RedirectResponse(guard.after_login_target(next_param), status_code=302)

    error_msg = _ERROR_MESSAGES.get(request.query_params.get("error", ""))
    if error_msg is None and request.query_params.get("expired") == "1":
        error_msg = _EXPIRED_MESSAGE
    return JSONResponse(
        {
            "page": "login",
            "next": safe_next(next_param, guard.dashboard_path),
            "error_msg": error_msg,
        }
    )


@router.post(WebRoutes.login)
def login_post(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
) -> RedirectResponse:
    """Handle the login form. Success forwards to next; failure back to /login."""
    guard = _guard(request)
    next_param = request.query_params.get("next")
    try:
        login(request.app.state.pipeline, email, password)
    except LoginFailed as e:
        code = _LOGIN_ERROR_CODES.get(str(e), "login_failed")
        logger.info("Login rejected (%s)", code)
        query = {"error": code}
        if next_param:
            query["next"] = safe_next(next_param, guard.dashboard_path)
        return RedirectResponse(f"{guard.login_path}?{urlencode(query, safe='/')}", status_code=302)

    resp = RedirectResponse(guard.after_login_target(next_param), status_code=302)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post(WebRoutes.logout)
def logout(request: Request) -> RedirectResponse:
    """End the session and redirect to the login page."""
    request.app.state.credentials.logout()
    return RedirectResponse(_guard(request).login_path, status_code=302)


# ---------------------------------------------------------------------------
# Protected pages
# ---------------------------------------------------------------------------


@router.get(WebRoutes.dashboard)
def dashboard(request: Request) -> Any:
    if redirect := _require_auth(request):
        return redirect
    state = request.app.state

    def load(flow: FlowContext) -> dict:
        articles = state.articles.list(context=flow)
        categories = state.categories.list(context=flow)
        return {
            "articles": len(articles),
            "published": sum(1 for a in articles if a.published),
            "categories": len(categories),
        }

    result = _call_backend(request, load)
    if isinstance(result, RedirectResponse):
        return result
    return _page("dashboard", result)


@router.get(WebRoutes.users)
def users_page(request: Request, page: int = 1, limit: int = 10) -> Any:
    if redirect := _require_auth(request):
        return redirect
    result = _call_backend(request, lambda flow: request.app.state.users.list(page, limit, context=flow))
    if isinstance(result, RedirectResponse):
        return result
    return _page("users", asdict(result))


@router.get(WebRoutes.category)
def category_page(request: Request) -> Any:
    if redirect := _require_auth(request):
        return redirect
    result = _call_backend(request, lambda flow: request.app.state.categories.list(context=flow))
    if isinstance(result, RedirectResponse):
        return result
    return _page("category", [asdict(c) for c in result])


@router.post("/category/slug")
def category_slug(request: Request, body: SlugSuggestRequest) -> Any:
    """Slug for the category form, unique among categories except the one under edit."""
    if redirect := _require_auth(request):
        return redirect
    exclude_id = int(body.exclude_id) if body.exclude_id and body.exclude_id.isdigit() else body.exclude_id
    result = _call_backend(
        request,
        lambda flow: request.app.state.categories.suggest_slug(body.title, exclude_id=exclude_id, context=flow),
    )
    if isinstance(result, RedirectResponse):
        return result
    return SlugSuggestResponse(slug=result, valid=bool(result))


@router.get(WebRoutes.article)
def articles_page(request: Request, search: str = "", category: Optional[str] = None) -> Any:
    if redirect := _require_auth(request):
        return redirect
    result = _call_backend(request, lambda flow: request.app.state.articles.list(context=flow))
    if isinstance(result, RedirectResponse):
        return result
    return _page("articles", [asdict(a) for a in filter_articles(result, search, category)])


@router.get(WebRoutes.article_create)
def article_create_page(request: Request) -> Any:
    if redirect := _require_auth(request):
        return redirect
    return _page("article_form", {"mode": "create", "article": None})


@router.post("/articles/slug")
def article_slug(request: Request, body: SlugSuggestRequest) -> Any:
    """Slug for the article form, unique among the loaded articles."""
    if redirect := _require_auth(request):
        return redirect
    result = _call_backend(
        request,
        lambda flow: request.app.state.articles.suggest_slug(body.title, exclude_id=body.exclude_id, context=flow),
    )
    if isinstance(result, RedirectResponse):
        return result
    return SlugSuggestResponse(slug=result, valid=bool(result))


def _article_by_slug(request: Request, slug: str) -> Any:
    result = _call_backend(request, lambda flow: request.app.state.articles.find_by_slug(slug, context=flow))
    if result is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": f"Article {slug!r} not found."},
        )
    return result


@router.get("/articles/edit/{slug}")
def article_edit_page(request: Request, slug: str) -> Any:
    if redirect := _require_auth(request):
        return redirect
    result = _article_by_slug(request, slug)
    if isinstance(result, RedirectResponse):
        return result
    return _page("article_form", {"mode": "edit", "article": asdict(result)})


@router.get("/articles/preview/{slug}")
def article_preview_page(request: Request, slug: str) -> Any:
    if redirect := _require_auth(request):
        return redirect
    result = _article_by_slug(request, slug)
    if isinstance(result, RedirectResponse):
        return result
    return _page("article_preview", asdict(result))


@router.get(WebRoutes.about)
def about_page(request: Request) -> Any:
    if redirect := _require_auth(request):
        return redirect
    return _page("about", {"version": "0.1.0"})

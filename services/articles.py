"""
services/articles.py -- Article collection on the backend REST API.

Routes consumed:
  GET    /articles          -- list (JSON array)
  POST   /articles          -- create
  GET    /articles/{id}     -- fetch one
  PUT    /articles/{id}     -- update
  DELETE /articles/{id}     -- delete

All calls go through the AuthorizedRequestPipeline, so credentials and 401
recovery are handled there. Failures are logged and re-raised unchanged.

The slug of a new or edited article is derived from its title with
suggest_slug(), de-duplicated against the articles already loaded, and
validated before it is submitted.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Optional, Union

from auth.http import AuthorizedRequestPipeline, FlowContext, response_json
from core.errors import RequestFailed
from core.models import Article, ArticleCategory, Author, Breadcrumb
from core.slug import DEFAULT_SCRIPTS, suggest_slug, validate_slug
from services.payloads import ArticleCreate, ArticleUpdate

logger = logging.getLogger("cmsadmin.services.articles")


class ArticleService:
    def __init__(self, pipeline: AuthorizedRequestPipeline, scripts: Iterable[str] = DEFAULT_SCRIPTS) -> None:
        self.pipeline = pipeline
        self.scripts = tuple(scripts)

    def list(self, context: Optional[FlowContext] = None) -> list[Article]:
        try:
            body = response_json(self.pipeline.get("/articles", context=context))
        except RequestFailed as e:
            logger.warning("Error fetching articles: %s", e)
            raise
        return [_to_article(item) for item in _unwrap_list(body)]

    def get(self, article_id: str, context: Optional[FlowContext] = None) -> Article:
        try:
            body = response_json(self.pipeline.get(f"/articles/{article_id}", context=context))
        except RequestFailed as e:
            logger.warning("Error fetching article %s: %s", article_id, e)
            raise
        return _to_article(_unwrap_item(body))

    def find_by_slug(self, slug: str, context: Optional[FlowContext] = None) -> Optional[Article]:
        """Look an article up by slug in the backend listing. None if absent."""
        return next((a for a in self.list(context=context) if a.slug == slug), None)

    def suggest_slug(
        self,
        title: str,
        exclude_id: Optional[str] = None,
        articles: Optional[Iterable[Article]] = None,
        context: Optional[FlowContext] = None,
    ) -> str:
        """Slug for title, unique among the loaded articles (fetched if not given)."""
        if articles is None:
            articles = self.list(context=context)
        return suggest_slug(title, articles, exclude_id=exclude_id, scripts=self.scripts)

    def create(self, payload: Union[ArticleCreate, dict], context: Optional[FlowContext] = None) -> Article:
        if isinstance(payload, dict):
            payload = ArticleCreate(**payload)
        validate_slug(payload.slug, self.scripts)
        try:
            resp = self.pipeline.post("/articles", json=payload.model_dump(exclude_none=True), context=context)
        except RequestFailed as e:
            logger.warning("Error creating article: %s", e)
            raise
        article = _to_article(_unwrap_item(response_json(resp)))
        logger.info("Created article %s (%s)", article.id, article.slug)
        return article

    def update(
        self,
        article_id: str,
        payload: Union[ArticleUpdate, dict],
        context: Optional[FlowContext] = None,
    ) -> Article:
        if isinstance(payload, dict):
            payload = ArticleUpdate(**payload)
        if payload.slug is not None:
            validate_slug(payload.slug, self.scripts)
        try:
            resp = self.pipeline.put(
                f"/articles/{article_id}",
                json=payload.model_dump(exclude_unset=True),
                context=context,
            )
        except RequestFailed as e:
            logger.warning("Error updating article %s: %s", article_id, e)
            raise
        return _to_article(_unwrap_item(response_json(resp)))

    def delete(self, article_id: str, context: Optional[FlowContext] = None) -> None:
        try:
            self.pipeline.delete(f"/articles/{article_id}", context=context)
        except RequestFailed as e:
            logger.warning("Error deleting article %s: %s", article_id, e)
            raise
        logger.info("Deleted article %s", article_id)


# ---------------------------------------------------------------------------
# Mappers
# ---------------------------------------------------------------------------


def _unwrap_list(body: Any) -> list[dict]:
    # The backend returns a bare array; tolerate a {"data": [...]} envelope too.
    if isinstance(body, dict):
        body = body.get("data") or []
    return [item for item in body if isinstance(item, dict)] if isinstance(body, list) else []


def _unwrap_item(body: Any) -> dict:
    if isinstance(body, dict) and isinstance(body.get("data"), dict):
        return body["data"]
    return body if isinstance(body, dict) else {}


def _to_category(data: dict) -> ArticleCategory:
    return ArticleCategory(
        id=str(data.get("id", "")),
        name=data.get("name") or "",
        slug=data.get("slug") or "",
        description=data.get("description") or "",
        image=data.get("image") or "",
        parent_id=data.get("parent_id"),
        created_at=data.get("created_at") or "",
        updated_at=data.get("updated_at") or "",
    )


def _to_article(data: dict) -> Article:
    author = data.get("author")
    return Article(
        id=str(data.get("id", "")),
        title=data.get("title") or "",
        slug=data.get("slug") or "",
        content=data.get("content") or "",
        thumbnail=data.get("thumbnail") or "",
        image=data.get("image") or "",
        short_description=data.get("short_description") or "",
        meta_description=data.get("meta_description") or "",
        keywords=list(data.get("keywords") or []),
        # tags may be null on the wire
        tags=list(data.get("tags") or []),
        categories=[_to_category(c) for c in data.get("categories") or [] if isinstance(c, dict)],
        author=(
            Author(
                id=str(author.get("id", "")),
                name=author.get("name") or "",
                created_at=author.get("created_at") or "",
                updated_at=author.get("updated_at") or "",
            )
            if isinstance(author, dict)
            else None
        ),
        reading_time_minutes=int(data.get("reading_time_minutes") or 0),
        views=int(data.get("views") or 0),
        likes=int(data.get("likes") or 0),
        comments=int(data.get("comments") or 0),
        published=bool(data.get("published", False)),
        created_at=data.get("created_at") or "",
        updated_at=data.get("updated_at") or "",
        breadcrumb=[
            Breadcrumb(name=b.get("name") or "", link=b.get("link") or "")
            for b in data.get("breadcrumb") or []
            if isinstance(b, dict)
        ],
    )


def filter_articles(articles: Iterable[Article], search: str = "", category_id: Optional[str] = None) -> list[Article]:
    """Case-insensitive search over title, slug, author, category names, and tags.

    category_id, when given, keeps only articles filed under that category.
    """
    needle = search.strip().lower()
    results: list[Article] = []
    for article in articles:
        if needle:
            haystack = [article.title, article.slug, article.author.name if article.author else ""]
            haystack += [c.name for c in article.categories]
            haystack += article.tags
            if not any(needle in value.lower() for value in haystack):
                continue
        if category_id is not None and not any(c.id == category_id for c in article.categories):
            continue
        results.append(article)
    return results

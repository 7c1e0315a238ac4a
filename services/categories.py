"""
services/categories.py -- Category collection on the backend REST API.

Routes consumed: GET/POST /categories, GET/PUT/DELETE /categories/{id}.
Same shape and error policy as services/articles.py.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Optional, Union

from auth.http import AuthorizedRequestPipeline, FlowContext, response_json
from core.errors import RequestFailed
from core.models import Category
from core.slug import DEFAULT_SCRIPTS, suggest_slug, validate_slug
from services.articles import _unwrap_item, _unwrap_list
from services.payloads import CategoryCreate, CategoryUpdate

logger = logging.getLogger("cmsadmin.services.categories")


class CategoryService:
    def __init__(self, pipeline: AuthorizedRequestPipeline, scripts: Iterable[str] = DEFAULT_SCRIPTS) -> None:
        self.pipeline = pipeline
        self.scripts = tuple(scripts)

    def list(self, context: Optional[FlowContext] = None) -> list[Category]:
        try:
            body = response_json(self.pipeline.get("/categories", context=context))
        except RequestFailed as e:
            logger.warning("Error fetching categories: %s", e)
            raise
        return [_to_category(item) for item in _unwrap_list(body)]

    def get(self, category_id: int, context: Optional[FlowContext] = None) -> Category:
        try:
            body = response_json(self.pipeline.get(f"/categories/{category_id}", context=context))
        except RequestFailed as e:
            logger.warning("Error fetching category %s: %s", category_id, e)
            raise
        return _to_category(_unwrap_item(body))

    def suggest_slug(
        self,
        name: str,
        exclude_id: Optional[int] = None,
        categories: Optional[Iterable[Category]] = None,
        context: Optional[FlowContext] = None,
    ) -> str:
        """Slug for name, unique among the loaded categories except the one being edited."""
        if categories is None:
            categories = self.list(context=context)
        return suggest_slug(name, categories, exclude_id=exclude_id, scripts=self.scripts)

    def parent_options(self, categories: Iterable[Category], editing_id: Optional[int] = None) -> list[Category]:
        """Categories that may be chosen as parent. A category cannot parent itself."""
        return [c for c in categories if editing_id is None or c.id != editing_id]

    def create(self, payload: Union[CategoryCreate, dict], context: Optional[FlowContext] = None) -> Category:
        if isinstance(payload, dict):
            payload = CategoryCreate(**payload)
        validate_slug(payload.slug, self.scripts)
        try:
            resp = self.pipeline.post("/categories", json=payload.model_dump(exclude_none=True), context=context)
        except RequestFailed as e:
            logger.warning("Error creating category: %s", e)
            raise
        category = _to_category(_unwrap_item(response_json(resp)))
        logger.info("Created category %s (%s)", category.id, category.slug)
        return category

    def update(
        self,
        category_id: int,
        payload: Union[CategoryUpdate, dict],
        context: Optional[FlowContext] = None,
    ) -> Category:
        if isinstance(payload, dict):
            payload = CategoryUpdate(**payload)
        if payload.slug is not None:
            validate_slug(payload.slug, self.scripts)
        try:
            resp = self.pipeline.put(
                f"/categories/{category_id}",
                json=payload.model_dump(exclude_unset=True),
                context=context,
            )
        except RequestFailed as e:
            logger.warning("Error updating category %s: %s", category_id, e)
            raise
        return _to_category(_unwrap_item(response_json(resp)))

    def delete(self, category_id: int, context: Optional[FlowContext] = None) -> None:
        try:
            self.pipeline.delete(f"/categories/{category_id}", context=context)
        except RequestFailed as e:
            logger.warning("Error deleting category %s: %s", category_id, e)
            raise
        logger.info("Deleted category %s", category_id)


def _to_category(data: dict) -> Category:
    return Category(
        id=data.get("id"),
        name=data.get("name") or "",
        slug=data.get("slug") or "",
        image=data.get("image") or "",
        parent_id=data.get("parent_id"),
        children=[_to_category(c) for c in data.get("children") or [] if isinstance(c, dict)],
        description=data.get("description") or "",
        created_at=data.get("created_at") or "",
        updated_at=data.get("updated_at") or "",
    )

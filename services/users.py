"""
services/users.py -- User collection on the backend REST API.

Unlike articles and categories, user routes wrap their payload:
  GET    /users?page&limit  -> {"data": {"users": [...]}}
  GET    /users/{id}        -> {"data": {...}}
  POST   /users             -> {"data": {...}}
  PATCH  /users/{id}        -> {"data": {...}}
  DELETE /users/{id}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from auth.http import AuthorizedRequestPipeline, FlowContext, response_json
from core.errors import RequestFailed
from core.models import User
from services.payloads import UserWrite

logger = logging.getLogger("cmsadmin.services.users")


@dataclass
class UserPage:
    data: list[User]
    total: int
    page: int
    limit: int


class UserService:
    def __init__(self, pipeline: AuthorizedRequestPipeline) -> None:
        self.pipeline = pipeline

    def list(self, page: int = 1, limit: int = 10, context: Optional[FlowContext] = None) -> UserPage:
        try:
            body = response_json(self.pipeline.get("/users", params={"page": page, "limit": limit}, context=context))
        except RequestFailed as e:
            logger.warning("Error fetching users: %s", e)
            raise
        users = [_to_user(u) for u in (_data(body).get("users") or []) if isinstance(u, dict)]
        # The backend does not report a grand total; the page size stands in for it.
        return UserPage(data=users, total=len(users), page=page, limit=limit)

    def get(self, user_id: str, context: Optional[FlowContext] = None) -> User:
        try:
            body = response_json(self.pipeline.get(f"/users/{user_id}", context=context))
        except RequestFailed as e:
            logger.warning("Error fetching user %s: %s", user_id, e)
            raise
        return _to_user(_data(body))

    def create(self, payload: Union[UserWrite, dict], context: Optional[FlowContext] = None) -> User:
        if isinstance(payload, dict):
            payload = UserWrite(**payload)
        try:
            resp = self.pipeline.post("/users", json=payload.model_dump(exclude_none=True), context=context)
        except RequestFailed as e:
            logger.warning("Error creating user: %s", e)
            raise
        return _to_user(_data(response_json(resp)))

    def update(self, user_id: str, payload: Union[UserWrite, dict], context: Optional[FlowContext] = None) -> User:
        if isinstance(payload, dict):
            payload = UserWrite(**payload)
        try:
            resp = self.pipeline.patch(
                f"/users/{user_id}",
                json=payload.model_dump(exclude_unset=True),
                context=context,
            )
        except RequestFailed as e:
            logger.warning("Error updating user %s: %s", user_id, e)
            raise
        return _to_user(_data(response_json(resp)))

    def delete(self, user_id: str, context: Optional[FlowContext] = None) -> None:
        try:
            self.pipeline.delete(f"/users/{user_id}", context=context)
        except RequestFailed as e:
            logger.warning("Error deleting user %s: %s", user_id, e)
            raise


def _data(body: Any) -> dict:
    if isinstance(body, dict) and isinstance(body.get("data"), dict):
        return body["data"]
    return {}


def _to_user(data: dict) -> User:
    return User(
        id=str(data.get("id", "")),
        name=data.get("name") or "",
        email=data.get("email") or "",
        role=data.get("role") or "",
        provider=data.get("provider") or "",
        created_at=data.get("created_at") or "",
        updated_at=data.get("updated_at") or "",
        avatar=data.get("avatar"),
        first_name=data.get("first_name"),
        last_name=data.get("last_name"),
    )

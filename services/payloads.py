"""
services/payloads.py -- Request bodies sent to the backend REST API.

Pydantic v2 models define the outbound transport contract. They are kept
separate from the dataclasses in core/models.py, which describe what the
backend sends back. Services map between the two.

Slug well-formedness is not checked here: the allowed script set is a service
setting, so the service validates the slug right before it submits.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ArticleCreate(BaseModel):
    """Body for POST /articles."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=255)
    slug: str = Field(max_length=255)
    content: str = Field(min_length=1)
    thumbnail: Optional[str] = None
    image: Optional[str] = None
    short_description: Optional[str] = None
    meta_description: Optional[str] = None
    keywords: Optional[list[str]] = None
    tags: Optional[list[str]] = None
    category_ids: Optional[list[str]] = None
    published: Optional[bool] = None


class ArticleUpdate(BaseModel):
    """Body for PUT /articles/{id}. Only the fields that were set are sent."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    slug: Optional[str] = Field(default=None, max_length=255)
    content: Optional[str] = None
    thumbnail: Optional[str] = None
    image: Optional[str] = None
    short_description: Optional[str] = None
    meta_description: Optional[str] = None
    keywords: Optional[list[str]] = None
    tags: Optional[list[str]] = None
    category_ids: Optional[list[str]] = None
    published: Optional[bool] = None


class CategoryCreate(BaseModel):
    """Body for POST /categories."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    slug: str = Field(max_length=255)
    image: Optional[str] = None
    parent_id: Optional[int] = None
    description: Optional[str] = None


class CategoryUpdate(BaseModel):
    """Body for PUT /categories/{id}. Only the fields that were set are sent."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    slug: Optional[str] = Field(default=None, max_length=255)
    image: Optional[str] = None
    parent_id: Optional[int] = None
    description: Optional[str] = None


class UserWrite(BaseModel):
    """Body for POST /users and PATCH /users/{id}."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[str] = Field(default=None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    role: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=1, max_length=255)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar: Optional[str] = None

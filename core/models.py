from dataclasses import dataclass, field
from typing import Optional

# ---------------------------------------------------------------------------
# Domain records consumed from the backend REST API.
#
# Shapes follow the backend's JSON. services/ maps response bodies onto these;
# nothing in core/ fetches them.
# ---------------------------------------------------------------------------


@dataclass
class Author:
    id: str
    name: str
    created_at: str = ""
    updated_at: str = ""


@dataclass
class ArticleCategory:
    id: str
    name: str
    slug: str
    description: str = ""
    image: str = ""
    parent_id: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Breadcrumb:
    name: str
    link: str


@dataclass
class Article:
    id: str
    title: str
    slug: str
    content: str = ""
    thumbnail: str = ""
    image: str = ""
    short_description: str = ""
    meta_description: str = ""
    keywords: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    categories: list[ArticleCategory] = field(default_factory=list)
    author: Optional[Author] = None
    reading_time_minutes: int = 0
    views: int = 0
    likes: int = 0
    comments: int = 0
    published: bool = False
    created_at: str = ""
    updated_at: str = ""
    breadcrumb: list[Breadcrumb] = field(default_factory=list)


@dataclass
class Category:
    name: str
    slug: str
    image: str = ""
    id: Optional[int] = None
    parent_id: Optional[int] = None
    children: list["Category"] = field(default_factory=list)
    description: str = ""
    created_at: str = ""
    updated_at: str = ""


@dataclass
class User:
    id: str
    name: str
    email: str
    role: str
    provider: str = ""
    created_at: str = ""
    updated_at: str = ""
    avatar: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

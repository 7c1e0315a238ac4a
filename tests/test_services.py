"""
tests/test_services.py -- REST collaborators over the fake backend.

Coverage:
  - wire mapping for articles (nullable tags, nested author/categories),
    categories (recursive children) and users (data.users envelope)
  - slug suggestion against the loaded collection, excluding the entity under edit
  - slugs validated before anything is submitted
  - update sends only the fields that were set
  - search filter over title, slug, author, categories and tags
"""

from __future__ import annotations

import pytest
from auth.http import AuthorizedRequestPipeline
from auth.session import CredentialStore
from core.errors import AuthenticationRejected, RequestRejected, ValidationError
from services import ArticleService, CategoryService, UserService, filter_articles

ARTICLES = [
    {
        "id": "1",
        "title": "Hello World",
        "slug": "hello-world",
        "content": "<p>Hi</p>",
        "tags": None,
        "categories": [{"id": "10", "name": "News", "slug": "news"}],
        "author": {"id": "7", "name": "Linh Tran"},
        "published": True,
        "views": "12",
    },
    {
        "id": "2",
        "title": "Python Tips",
        "slug": "python-tips",
        "content": "...",
        "tags": ["python", "howto"],
        "categories": [],
        "published": False,
    },
]

CATEGORIES = [
    {
        "id": 1,
        "name": "News",
        "slug": "news",
        "children": [{"id": 2, "name": "World", "slug": "world", "parent_id": 1}],
    },
    {"id": 3, "name": "Sport", "slug": "sport"},
]


@pytest.fixture
def articles(pipeline: AuthorizedRequestPipeline) -> ArticleService:
    return ArticleService(pipeline)


@pytest.fixture
def categories(pipeline: AuthorizedRequestPipeline) -> CategoryService:
    return CategoryService(pipeline)


class TestArticleService:
    def test_list_maps_wire_shape(self, articles: ArticleService, backend) -> None:
        """Nullable tags, nested author and categories, and string counters map onto Article."""
        backend.reply("GET", "/articles", 200, ARTICLES)
        result = articles.list()
        assert [a.slug for a in result] == ["hello-world", "python-tips"]
        first = result[0]
        assert first.tags == []
        assert first.author.name == "Linh Tran"
        assert first.categories[0].slug == "news"
        assert first.views == 12
        assert result[1].author is None

    def test_list_accepts_data_envelope(self, articles: ArticleService, backend) -> None:
        """A list wrapped in {"data": [...]} is unwrapped."""
        backend.reply("GET", "/articles", 200, {"data": ARTICLES})
        assert len(articles.list()) == 2

    def test_find_by_slug(self, articles: ArticleService, backend) -> None:
        """Lookup by slug returns the article or None."""
        backend.reply("GET", "/articles", 200, ARTICLES)
        assert articles.find_by_slug("python-tips").id == "2"
        assert articles.find_by_slug("missing") is None

    def test_suggest_slug_avoids_loaded_slugs(self, articles: ArticleService, backend) -> None:
        """Suggestions skip taken slugs except the one of the article under edit."""
        backend.reply("GET", "/articles", 200, ARTICLES)
        assert articles.suggest_slug("Hello World!") == "hello-world-1"
        assert articles.suggest_slug("Hello World!", exclude_id="1") == "hello-world"

    def test_suggest_slug_with_preloaded_articles(self, articles: ArticleService, backend) -> None:
        """An already-loaded collection is used without fetching."""
        assert articles.suggest_slug("Fresh", articles=[]) == "fresh"
        assert backend.calls == []

    def test_create_posts_payload(self, articles: ArticleService, credentials: CredentialStore, backend) -> None:
        """create() strips fields, sends only what was set, and carries the bearer token."""
        credentials.login("abc")
        backend.reply("POST", "/articles", 201, {"id": "3", "title": "New", "slug": "new"})
        article = articles.create({"title": " New ", "slug": "new", "content": "body"})
        assert article.id == "3"
        sent = backend.calls[0]
        assert sent["json"] == {"title": "New", "slug": "new", "content": "body"}
        assert sent["headers"]["Authorization"] == "Bearer abc"

    def test_create_rejects_malformed_slug(self, articles: ArticleService, backend) -> None:
        """A slug that is not in canonical form is refused before any request."""
        with pytest.raises(ValidationError):
            articles.create({"title": "New", "slug": "Not A Slug", "content": "body"})
        assert backend.calls == []

    @pytest.mark.parametrize("slug", ["", "   "])
    def test_create_rejects_empty_slug(self, articles: ArticleService, backend, slug: str) -> None:
        """A blank slug fails slug validation with the console's own error, before any request."""
        with pytest.raises(ValidationError, match="Slug is required"):
            articles.create({"title": "New", "slug": slug, "content": "body"})
        assert backend.calls == []

    def test_update_rejects_empty_slug(self, articles: ArticleService, backend) -> None:
        """Clearing the slug on update is rejected the same way."""
        with pytest.raises(ValidationError, match="Slug is required"):
            articles.update("1", {"slug": ""})
        assert backend.calls == []

    def test_update_sends_only_set_fields(self, articles: ArticleService, backend) -> None:
        """Partial updates send only the fields that were set."""
        backend.reply("PUT", "/articles/1", 200, {"id": "1", "title": "Hello", "slug": "hello", "published": True})
        articles.update("1", {"published": True})
        assert backend.calls[0]["json"] == {"published": True}

    def test_backend_rejection_propagates(self, articles: ArticleService, backend) -> None:
        """A 409 from the backend is re-raised as RequestRejected."""
        backend.reply("POST", "/articles", 409, {"error": "Slug already exists"})
        with pytest.raises(RequestRejected):
            articles.create({"title": "Hello", "slug": "hello", "content": "x"})

    def test_session_loss_propagates(self, articles: ArticleService, credentials: CredentialStore, backend) -> None:
        """A 401 ends the session and reaches the caller as AuthenticationRejected."""
        credentials.login("abc")
        backend.reply("DELETE", "/articles/1", 401)
        with pytest.raises(AuthenticationRejected):
            articles.delete("1")
        assert credentials.is_authenticated() is False


class TestCategoryService:
    def test_list_maps_children(self, categories: CategoryService, backend) -> None:
        """Nested children map recursively with their parent ids."""
        backend.reply("GET", "/categories", 200, CATEGORIES)
        result = categories.list()
        assert [c.slug for c in result] == ["news", "sport"]
        assert result[0].children[0].slug == "world"
        assert result[0].children[0].parent_id == 1

    def test_suggest_slug_excludes_category_under_edit(self, categories: CategoryService, backend) -> None:
        """The category under edit does not block its own slug."""
        backend.reply("GET", "/categories", 200, CATEGORIES)
        assert categories.suggest_slug("News") == "news-1"
        assert categories.suggest_slug("News", exclude_id=1) == "news"

    def test_parent_options_exclude_self(self, categories: CategoryService, backend) -> None:
        """A category cannot be offered as its own parent."""
        backend.reply("GET", "/categories", 200, CATEGORIES)
        loaded = categories.list()
        assert [c.id for c in categories.parent_options(loaded, editing_id=1)] == [3]
        assert len(categories.parent_options(loaded)) == 2

    def test_create(self, categories: CategoryService, backend) -> None:
        """Category payloads keep non-ASCII names and send only set fields."""
        backend.reply("POST", "/categories", 201, {"id": 4, "name": "Tin tức", "slug": "tin-tuc"})
        category = categories.create({"name": "Tin tức", "slug": "tin-tuc", "parent_id": 1})
        assert category.id == 4
        assert backend.calls[0]["json"] == {"name": "Tin tức", "slug": "tin-tuc", "parent_id": 1}

    def test_create_rejects_empty_slug(self, categories: CategoryService, backend) -> None:
        """A category without a slug is refused before anything is sent."""
        with pytest.raises(ValidationError, match="Slug is required"):
            categories.create({"name": "News", "slug": ""})
        assert backend.calls == []


class TestUserService:
    def test_list_reads_envelope(self, pipeline: AuthorizedRequestPipeline, backend) -> None:
        """Users come from data.users; paging params pass through."""
        backend.reply(
            "GET",
            "/users",
            200,
            {"data": {"users": [{"id": 1, "name": "An", "email": "an@example.com", "role": "admin"}]}},
        )
        page = UserService(pipeline).list(page=2, limit=5)
        assert backend.calls[0]["params"] == {"page": 2, "limit": 5}
        assert page.page == 2
        assert page.data[0].id == "1"
        assert page.data[0].email == "an@example.com"

    def test_update_uses_patch(self, pipeline: AuthorizedRequestPipeline, backend) -> None:
        """User updates go out as PATCH and unwrap the data envelope."""
        backend.reply("PATCH", "/users/1", 200, {"data": {"id": 1, "name": "An", "email": "a@b.co", "role": "editor"}})
        user = UserService(pipeline).update("1", {"role": "editor"})
        assert user.role == "editor"
        assert backend.calls[0]["json"] == {"role": "editor"}


class TestFilterArticles:
    @pytest.fixture
    def loaded(self, articles: ArticleService, backend):
        backend.reply("GET", "/articles", 200, ARTICLES)
        return articles.list()

    def test_empty_search_keeps_all(self, loaded) -> None:
        """No search term keeps every article."""
        assert len(filter_articles(loaded)) == 2

    @pytest.mark.parametrize("needle,expected", [("HELLO", "1"), ("linh", "1"), ("news", "1"), ("howto", "2")])
    def test_search_fields(self, loaded, needle: str, expected: str) -> None:
        """Search is case-insensitive over title, author, categories and tags."""
        assert [a.id for a in filter_articles(loaded, needle)] == [expected]

    def test_category_filter(self, loaded) -> None:
        """Category filter keeps only articles in that category."""
        assert [a.id for a in filter_articles(loaded, category_id="10")] == ["1"]
        assert filter_articles(loaded, category_id="99") == []

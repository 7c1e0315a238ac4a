#!/usr/bin/env python3
"""
cms-admin -- Command-line admin console for the CMS REST backend.

Usage:
  python main.py slug "Hello World"
  python main.py slug "Hello World" --existing hello-world hello-world-1
  python main.py slug "Hello World" --collection articles
  python main.py login --email admin@example.com
  python main.py status
  python main.py articles list --search python
  python main.py articles create --title "Hello World" --content "..."
  python main.py categories list
  python main.py categories create --name "Tin tức"
  python main.py users list --page 2
  python main.py logout

Environment variables:
  API_BASE_URL      Backend base URL (default http://localhost:8000/api)
  SESSION_DB_URL    Where the session survives between runs
  SLUG_SCRIPTS      JSON list of non-Latin scripts kept in slugs, e.g. '["cjk"]'
"""

import argparse
import getpass
import sys
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from auth.guard import RouteGuard, WebRoutes
from auth.http import AuthorizedRequestPipeline, FlowContext
from auth.login import login as password_login
from auth.session import CredentialStore
from auth.store import build_session_storage
from core.config import get_settings
from core.errors import AuthenticationRejected, ConsoleError, LoginFailed, describe_error
from core.slug import generate_slug, generate_unique_slug
from services import ArticleService, CategoryService, UserService, filter_articles


class Console:
    """One CLI process worth of session, pipeline, and services.

    The stored session is rehydrated before any command runs, so a login from
    an earlier invocation carries over.
    """

    def __init__(self) -> None:
        self.settings = get_settings()
        self.storage = build_session_storage(self.settings)
        self.credentials = CredentialStore(self.storage)
        self.credentials.rehydrate()
        self.pipeline = AuthorizedRequestPipeline(
            self.credentials, self.settings.api_base_url, timeout=self.settings.request_timeout
        )
        self.guard = RouteGuard(self.credentials)
        self.articles = ArticleService(self.pipeline, scripts=self.settings.slug_scripts)
        self.categories = CategoryService(self.pipeline, scripts=self.settings.slug_scripts)
        self.users = UserService(self.pipeline)

    def require(self, destination: str) -> bool:
        """Guard check for a protected command. Prints a login hint when denied."""
        decision = self.guard.check(destination)
        if not decision.allowed:
            print(f"  [!] Not logged in. Run 'python main.py login' to continue to {decision.next_path}.")
        return decision.allowed

    def close(self) -> None:
        self.pipeline.close()
        close = getattr(self.storage, "close", None)
        if close is not None:
            close()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_slug(console: Console, args: argparse.Namespace) -> int:
    scripts = console.settings.slug_scripts
    if args.collection:
        destination = WebRoutes.article if args.collection == "articles" else WebRoutes.category
        if not console.require(destination):
            return 1
        service = console.articles if args.collection == "articles" else console.categories
        slug = service.suggest_slug(args.title)
    elif args.existing:
        slug = generate_unique_slug(generate_slug(args.title, scripts), args.existing)
    else:
        slug = generate_slug(args.title, scripts)

    if not slug:
        print("  [!] Title produced an empty slug. Enter a slug by hand.")
        return 1
    print(slug)
    return 0


def cmd_login(console: Console, args: argparse.Namespace) -> int:
    if console.credentials.is_authenticated():
        print("  Already logged in. Run 'python main.py logout' first to switch accounts.")
        return 0
    email = args.email or input("Email: ")
    password = args.password or getpass.getpass("Password: ")
    with FlowContext("login") as flow:
        try:
            password_login(console.pipeline, email, password, context=flow)
        except LoginFailed as e:
            print(f"  [!] {describe_error(e)}")
            return 1
    print("  Logged in.")
    return 0


def cmd_logout(console: Console, args: argparse.Namespace) -> int:
    console.credentials.logout()
    print("  Logged out.")
    return 0


def cmd_status(console: Console, args: argparse.Namespace) -> int:
    if console.credentials.is_authenticated():
        print(f"  Logged in to {console.settings.api_base_url}")
    else:
        print(f"  Not logged in ({console.settings.api_base_url})")
    return 0


def cmd_articles_list(console: Console, args: argparse.Namespace) -> int:
    if not console.require(WebRoutes.article):
        return 1
    articles = filter_articles(console.articles.list(), args.search or "", args.category)
    if not articles:
        print("  No articles found.")
        return 0
    for article in articles:
        state = "published" if article.published else "draft"
        print(f"  {article.id:>6}  {article.slug:<40}  {state:<9}  {article.title}")
    print(f"\n  {len(articles)} article(s).")
    return 0


def cmd_articles_create(console: Console, args: argparse.Namespace) -> int:
    if not console.require(WebRoutes.article_create):
        return 1
    slug = args.slug or console.articles.suggest_slug(args.title)
    article = console.articles.create(
        {
            "title": args.title,
            "slug": slug,
            "content": args.content,
            "short_description": args.short_description,
            "category_ids": args.category or None,
            "tags": args.tag or None,
            "published": args.published,
        }
    )
    print(f"  Created article {article.id} ({article.slug}).")
    return 0


def _print_category_tree(categories, depth: int = 0) -> None:
    for category in categories:
        print(f"  {'  ' * depth}{category.id!s:>6}  {category.slug:<32}  {category.name}")
        _print_category_tree(category.children, depth + 1)


def cmd_categories_list(console: Console, args: argparse.Namespace) -> int:
    if not console.require(WebRoutes.category):
        return 1
    categories = console.categories.list()
    if not categories:
        print("  No categories found.")
        return 0
    _print_category_tree(categories)
    return 0


def cmd_categories_create(console: Console, args: argparse.Namespace) -> int:
    if not console.require(WebRoutes.category):
        return 1
    slug = args.slug or console.categories.suggest_slug(args.name)
    category = console.categories.create(
        {
            "name": args.name,
            "slug": slug,
            "parent_id": args.parent,
            "description": args.description,
        }
    )
    print(f"  Created category {category.id} ({category.slug}).")
    return 0


def cmd_users_list(console: Console, args: argparse.Namespace) -> int:
    if not console.require(WebRoutes.users):
        return 1
    page = console.users.list(page=args.page, limit=args.limit)
    for user in page.data:
        print(f"  {user.id:>6}  {user.email:<36}  {user.role:<10}  {user.name}")
    print(f"\n  Page {page.page} -- {len(page.data)} of {page.total} user(s).")
    return 0


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cms-admin",
        description="Session-gated admin console for the CMS REST backend.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py slug "Hello World"
  python main.py login --email admin@example.com
  python main.py articles list --search python
  python main.py categories create --name "Tin tức"
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    p = sub.add_parser("slug", help="Derive a URL slug from a title")
    p.add_argument("title", metavar="TITLE")
    p.add_argument("--existing", nargs="*", metavar="SLUG", default=[], help="Slugs already taken")
    p.add_argument(
        "--collection",
        choices=["articles", "categories"],
        default=None,
        help="Make the slug unique against a backend collection (requires login)",
    )
    p.set_defaults(func=cmd_slug)

    p = sub.add_parser("login", help="Log in with email and password")
    p.add_argument("--email", default=None)
    p.add_argument("--password", default=None, help="Prompted for when omitted")
    p.set_defaults(func=cmd_login)

    sub.add_parser("logout", help="End the stored session").set_defaults(func=cmd_logout)
    sub.add_parser("status", help="Show whether a session is held").set_defaults(func=cmd_status)

    articles = sub.add_parser("articles", help="Article commands")
    articles_sub = articles.add_subparsers(dest="action", metavar="ACTION", required=True)
    p = articles_sub.add_parser("list", help="List articles")
    p.add_argument("--search", default=None, help="Match title, slug, author, category, or tag")
    p.add_argument("--category", default=None, metavar="ID", help="Only articles in this category")
    p.set_defaults(func=cmd_articles_list)
    p = articles_sub.add_parser("create", help="Create an article")
    p.add_argument("--title", required=True)
    p.add_argument("--content", required=True)
    p.add_argument("--slug", default=None, help="Derived from the title when omitted")
    p.add_argument("--short-description", default=None)
    p.add_argument("--category", action="append", metavar="ID", help="Repeatable")
    p.add_argument("--tag", action="append", help="Repeatable")
    p.add_argument("--published", action="store_true")
    p.set_defaults(func=cmd_articles_create)

    categories = sub.add_parser("categories", help="Category commands")
    categories_sub = categories.add_subparsers(dest="action", metavar="ACTION", required=True)
    p = categories_sub.add_parser("list", help="List categories as a tree")
    p.set_defaults(func=cmd_categories_list)
    p = categories_sub.add_parser("create", help="Create a category")
    p.add_argument("--name", required=True)
    p.add_argument("--slug", default=None, help="Derived from the name when omitted")
    p.add_argument("--parent", type=int, default=None, metavar="ID")
    p.add_argument("--description", default=None)
    p.set_defaults(func=cmd_categories_create)

    users = sub.add_parser("users", help="User commands")
    users_sub = users.add_subparsers(dest="action", metavar="ACTION", required=True)
    p = users_sub.add_parser("list", help="List users, one page at a time")
    p.add_argument("--page", type=int, default=1)
    p.add_argument("--limit", type=int, default=10)
    p.set_defaults(func=cmd_users_list)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 0

    console = Console()
    try:
        return args.func(console, args)
    except AuthenticationRejected:
        print("  [!] Your session has expired. Run 'python main.py login' again.")
        return 1
    except ConsoleError as e:
        print(f"  [!] {describe_error(e)}")
        return 1
    except PydanticValidationError as e:
        print(f"  [!] Invalid input: {e.error_count()} field(s) rejected")
        for err in e.errors():
            print(f"      {'.'.join(str(p) for p in err['loc'])}: {err['msg']}")
        return 1
    finally:
        console.close()


if __name__ == "__main__":
    sys.exit(main())

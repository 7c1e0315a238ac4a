"""
core/slug.py -- Slug derivation and uniqueness for console entities.

A slug is the URL-safe identifier an article or category is stored under.
Editing flows call suggest_slug() on every change of the source title and
submit the result with the entity; the backend is the store of record, so the
uniqueness check here is best-effort against the entities already loaded.

Pure functions only. No I/O, no logging, no config reads -- the allowed script
set is passed in by the caller (see Settings.slug_scripts).

Layer rule: core/ is the kernel. No imports from api/, web/, auth/, services/.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable
from functools import lru_cache
from typing import Any, Optional

from core.errors import ValidationError

# ---------------------------------------------------------------------------
# Allowed non-Latin script blocks
#
# Characters from these blocks survive slug derivation verbatim. Everything
# else that is not [a-z0-9] collapses into a hyphen.
# ---------------------------------------------------------------------------

SLUG_SCRIPTS: dict[str, str] = {
    "cjk": "\u4e00-\u9fff",  # CJK unified ideographs
    "kana": "\u3040-\u30ff",  # Hiragana + Katakana
    "arabic": "\u0600-\u06ff",
}

DEFAULT_SCRIPTS: tuple[str, ...] = ("cjk", "kana", "arabic")

# Letters that NFD does not decompose into base + combining mark.
_FOLD_TABLE = str.maketrans({"đ": "d", "Đ": "D"})

_COMBINING_MARKS_RE = re.compile("[\u0300-\u036f]")
_EDGE_HYPHENS_RE = re.compile(r"^-+|-+$")
_HYPHEN_RUN_RE = re.compile(r"-{2,}")


@lru_cache(maxsize=16)
def _disallowed_run_re(scripts: tuple[str, ...]) -> re.Pattern[str]:
    try:
        ranges = "".join(SLUG_SCRIPTS[name] for name in scripts)
    except KeyError as e:
        raise ValidationError(f"Unknown slug script: {e.args[0]!r}") from e
    return re.compile(f"[^a-z0-9{ranges}]+")


def _script_key(scripts: Iterable[str]) -> tuple[str, ...]:
    # Order-insensitive cache key.
    return tuple(sorted(set(scripts)))


def generate_slug(title: Optional[str], scripts: Iterable[str] = DEFAULT_SCRIPTS) -> str:
    """Derive a URL-safe slug from free text.

    Steps run in this order, each on the output of the previous one:
      1. NFD-normalize and drop combining diacritics ("é" -> "e").
      2. Fold letters NFD leaves alone ("đ" -> "d").
      3. Lowercase.
      4. Replace each run of disallowed characters with one "-".
      5. Trim leading/trailing "-".
      6. Collapse "--" runs.

    Empty or whitespace-only input returns "". The caller decides whether an
    empty slug is an error (see validate_slug()); it is never auto-filled.

    >>> generate_slug("Café au Lait!!")
    'cafe-au-lait'
    """
    if not title:
        return ""

    slug = unicodedata.normalize("NFD", str(title))
    slug = _COMBINING_MARKS_RE.sub("", slug)
    slug = slug.translate(_FOLD_TABLE)
    slug = slug.lower()
    slug = _disallowed_run_re(_script_key(scripts)).sub("-", slug)
    slug = _EDGE_HYPHENS_RE.sub("", slug)
    return _HYPHEN_RUN_RE.sub("-", slug)


def generate_unique_slug(base_slug: str, existing_slugs: Iterable[str]) -> str:
    """Return base_slug, or the first of base-1, base-2, ... not already taken.

    existing_slugs is read, never mutated. The search has no upper bound; it
    terminates because the existing set is finite.

    >>> generate_unique_slug("travel-tips", {"travel-tips", "travel-tips-1"})
    'travel-tips-2'
    """
    taken = existing_slugs if isinstance(existing_slugs, (set, frozenset)) else frozenset(existing_slugs)
    if base_slug not in taken:
        return base_slug

    counter = 1
    candidate = f"{base_slug}-{counter}"
    while candidate in taken:
        counter += 1
        candidate = f"{base_slug}-{counter}"
    return candidate


def validate_slug(slug: Optional[str], scripts: Iterable[str] = DEFAULT_SCRIPTS) -> str:
    """Return slug unchanged if it is a well-formed, non-empty slug.

    Raises ValidationError otherwise. Editing flows call this right before an
    entity is submitted, so an empty title surfaces as a form error rather than
    an entity stored under "".
    """
    if not slug:
        raise ValidationError("Slug is required.")
    if generate_slug(slug, scripts) != slug:
        raise ValidationError(f"Slug {slug!r} may only contain lowercase letters, digits, and single hyphens.")
    return slug


def existing_slugs(items: Iterable[Any], exclude_id: Any = None) -> set[str]:
    """Collect the slugs of loaded entities, skipping the one being edited.

    Items may be dataclasses/objects with .id and .slug, or plain dicts. The
    entity under edit is excluded so that re-saving it under its own slug is
    not treated as a collision.
    """
    slugs: set[str] = set()
    for item in items:
        if isinstance(item, dict):
            item_id, slug = item.get("id"), item.get("slug")
        else:
            item_id, slug = getattr(item, "id", None), getattr(item, "slug", None)
        if exclude_id is not None and item_id == exclude_id:
            continue
        if slug:
            slugs.add(slug)
    return slugs


def suggest_slug(
    title: Optional[str],
    items: Iterable[Any] = (),
    exclude_id: Any = None,
    scripts: Iterable[str] = DEFAULT_SCRIPTS,
) -> str:
    """Derive a slug from title that does not collide with the loaded collection.

    An empty derived slug is returned as-is -- there is nothing to de-duplicate.
    """
    base = generate_slug(title, scripts)
    if not base:
        return ""
    return generate_unique_slug(base, existing_slugs(items, exclude_id))

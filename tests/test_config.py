"""
tests/test_config.py -- Settings validation (core/config.py).
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings, get_settings


def _settings(**kwargs) -> Settings:
    return Settings(_env_file=None, **kwargs)


def test_defaults() -> None:
    """Defaults point at a local backend with every script enabled."""
    settings = _settings()
    assert settings.api_base_url == "http://localhost:8000/api"
    assert settings.request_timeout > 0
    assert settings.persist_session is True
    assert settings.slug_scripts == ["cjk", "kana", "arabic"]


def test_trailing_slash_stripped() -> None:
    """A trailing slash on the base URL is dropped."""
    assert _settings(api_base_url="https://cms.example.com/api/").api_base_url == "https://cms.example.com/api"


@pytest.mark.parametrize("url", ["cms.example.com", "ftp://cms.example.com", ""])
def test_non_http_base_url_rejected(url: str) -> None:
    """Only http(s) base URLs are accepted."""
    with pytest.raises(ValidationError, match="API_BASE_URL"):
        _settings(api_base_url=url)


@pytest.mark.parametrize("timeout", [0, -1])
def test_non_positive_timeout_rejected(timeout: float) -> None:
    """The request timeout must be positive."""
    with pytest.raises(ValidationError, match="REQUEST_TIMEOUT"):
        _settings(request_timeout=timeout)


def test_unknown_slug_script_rejected() -> None:
    """Unknown script names fail at load time."""
    with pytest.raises(ValidationError, match="SLUG_SCRIPTS"):
        _settings(slug_scripts=["cjk", "klingon"])


def test_latin_only_slug_scripts() -> None:
    """An empty script list is allowed."""
    assert _settings(slug_scripts=[]).slug_scripts == []


def test_env_vars_read(monkeypatch: pytest.MonkeyPatch) -> None:
    """Environment variables override the defaults."""
    monkeypatch.setenv("API_BASE_URL", "https://cms.example.com/api")
    monkeypatch.setenv("SLUG_SCRIPTS", '["cjk"]')
    monkeypatch.setenv("PERSIST_SESSION", "false")
    settings = _settings()
    assert settings.api_base_url == "https://cms.example.com/api"
    assert settings.slug_scripts == ["cjk"]
    assert settings.persist_session is False


def test_get_settings_is_cached() -> None:
    """get_settings() returns one cached instance."""
    get_settings.cache_clear()
    try:
        assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()

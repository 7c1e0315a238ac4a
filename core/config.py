"""
core/config.py -- Centralized console configuration via pydantic-settings.

All environment variable reads for the admin console happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. api_base_url -> API_BASE_URL). Type coercion is built in.

  @model_validator(mode="after"): Cross-field validation once every field is
      resolved. Normalizes the backend URL and rejects unknown slug scripts.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
auth/, or services/.
"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.slug import SLUG_SCRIPTS

logger = logging.getLogger("cmsadmin.config")

_DEFAULT_SESSION_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'auth' / 'cmsadmin_session.db'}"


class Settings(BaseSettings):
    """Console settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False

    # ------------------------------------------------------------------
    # Backend REST API
    # ------------------------------------------------------------------

    api_base_url: str = "http://localhost:8000/api"
    # Seconds. A transport timeout surfaces as an ordinary TransportError.
    request_timeout: float = 10.0

    # ------------------------------------------------------------------
    # Session persistence
    # ------------------------------------------------------------------

    # false -> the session lives only as long as the process.
    persist_session: bool = True
    session_db_url: str = _DEFAULT_SESSION_DB_URL
    # Name of the single persisted record holding the session blob.
    session_key: str = "admin"

    # ------------------------------------------------------------------
    # Slugs
    # ------------------------------------------------------------------

    # Non-Latin scripts kept verbatim in slugs. [] is the Latin-only variant.
    slug_scripts: list[str] = ["cjk", "kana", "arabic"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_console_settings(self) -> "Settings":
        """Normalize the backend URL and reject settings that cannot work.

        api_base_url: must be http(s); a trailing slash is stripped so path
            joins in the request pipeline never produce "//".
        request_timeout: must be positive -- urllib3 rejects a zero timeout.
        slug_scripts: every name must be a known script block.
        """
        if not self.api_base_url.startswith(("http://", "https://")):
            raise ValueError("API_BASE_URL must start with http:// or https://")
        self.api_base_url = self.api_base_url.rstrip("/")

        if self.request_timeout <= 0:
            raise ValueError("REQUEST_TIMEOUT must be greater than zero.")

        unknown = [name for name in self.slug_scripts if name not in SLUG_SCRIPTS]
        if unknown:
            raise ValueError(f"Unknown SLUG_SCRIPTS entries: {unknown!r}. Known: {sorted(SLUG_SCRIPTS)}")

        if not self.persist_session:
            logger.warning("PERSIST_SESSION is off -- the session will not survive a restart.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the console Settings singleton.

    All modules should call get_settings() rather than constructing Settings()
    directly. In tests: call get_settings.cache_clear() between test cases if
    you need to inject different environment variables.
    """
    return Settings()

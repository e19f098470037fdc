"""Simple configuration management.

This module defines a ``Settings`` class that reads configuration
values from environment variables and provides sensible defaults.
``.env`` support is implemented by loading files from the repository
root in a defined order.  You can override any value via environment
variables.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from dotenv import load_dotenv, find_dotenv

# -----------------------------------------------------------------------------
# .env loading
#
# Prefer a .env in the repository root but allow fallback to whatever
# python-dotenv discovers from the current working directory.  Files are
# loaded in order without overriding already-set variables.

_THIS_FILE = Path(__file__).resolve()
_REPO_ROOT = _THIS_FILE.parents[3]
_ROOT_ENV = _REPO_ROOT / ".env"

_candidate_envs: list[str] = []
if _ROOT_ENV.exists():
    _candidate_envs.append(str(_ROOT_ENV))

_FOUND_ENV = find_dotenv(usecwd=True)
if _FOUND_ENV and _FOUND_ENV not in _candidate_envs:
    _candidate_envs.append(_FOUND_ENV)

for _env_path in _candidate_envs:
    load_dotenv(dotenv_path=_env_path, override=False)


class Settings(BaseSettings):
    """Application settings.

    Values are loaded from the environment with sensible defaults.  Any
    attribute defined here can be overridden by setting the corresponding
    environment variable.
    """

    model_config = SettingsConfigDict(
        env_file=tuple(_candidate_envs) if _candidate_envs else (".env",),
        case_sensitive=True,
        extra="allow",
    )

    # API Settings
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Expense Tracker Service"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = Field(default="development")
    LOG_LEVEL: str = Field(default="INFO")

    # Database.  Plain ``sqlite://`` URLs are upgraded to aiosqlite.
    DATABASE_URL: str = Field(default="sqlite+aiosqlite:///./expenses.db")

    # Redis (optional).  History pages are cached only when a URL is set.
    REDIS_URL: Optional[str] = Field(default=None)
    HISTORY_CACHE_TTL: int = Field(default=30)

    # File Upload
    UPLOAD_DIRECTORY: str = Field(default="./uploads")
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024  # 10MB
    RECEIPT_ALLOWED_CONTENT_TYPES: list[str] = Field(
        default=["image/jpeg", "image/png", "image/jpg", "application/pdf"],
    )
    # Age after which an unreferenced temp upload counts as orphaned
    UPLOAD_ORPHAN_MAX_AGE_HOURS: int = Field(default=24)

    # Extraction tool.  The stored file path is appended as the only
    # positional argument.
    EXTRACTION_COMMAND: str = Field(default="python -m receipt_ocr")
    EXTRACTION_TIMEOUT_SECONDS: float = Field(default=60.0)

    # CORS
    BACKEND_CORS_ORIGINS: list[str] = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"],
    )

    # Sentry
    SENTRY_DSN: Optional[str] = Field(default=None)
    SENTRY_TRACES_SAMPLE_RATE: float = Field(default=0.0)
    # Optional Sentry release name to tag events consistently across deploys
    SENTRY_RELEASE: Optional[str] = Field(default=None)


# Instantiate global settings
settings = Settings()


def resolve_upload_directory(value: str | None = None) -> Path:
    """Return the absolute upload root.

    Relative values are resolved against the repository root so the
    storage location does not depend on the working directory.
    """
    base_path = Path(value or settings.UPLOAD_DIRECTORY)
    if not base_path.is_absolute():
        base_path = (_REPO_ROOT / base_path).resolve()
    return base_path

"""Client configuration — env-driven via pydantic-settings.

Settings are read from ``PERCY_*`` environment variables or a ``.env``
file. The same ``PERCY_*`` namespace carries the build overrides read by
``percy_sync.core.environment`` (``PERCY_BRANCH``, ``PERCY_COMMIT``, ...);
those are not settings and are ignored here.

Examples
--------
Override via environment::

    export PERCY_TOKEN=abc123
    export PERCY_API_URL=https://percy.example.test/api/v1
    export PERCY_LOG_LEVEL=DEBUG
"""

from __future__ import annotations

import logging
import os
from collections.abc import MutableMapping
from pathlib import Path

from dotenv import dotenv_values
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://percy.io/api/v1"


class ClientSettings(BaseSettings):
    """Connection and runtime settings for ``PercyClient``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PERCY_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    token: str = ""
    api_url: str = DEFAULT_API_URL
    log_level: str = "INFO"

    # Metadata calls use the base timeout; uploads carry larger payloads.
    request_timeout_seconds: float = Field(default=50.0, gt=0)
    upload_timeout_multiplier: float = Field(default=3.0, ge=1.0)

    @property
    def upload_timeout_seconds(self) -> float:
        return self.request_timeout_seconds * self.upload_timeout_multiplier


def dotenv_paths(env_name: str | None, root: Path | None = None) -> list[Path]:
    """Candidate dotenv files, highest precedence first.

    Mirrors the dotenv-rails hierarchy; ``.env.local`` is skipped for the
    ``test`` environment.
    """
    names = [
        f".env.{env_name}.local" if env_name else None,
        None if env_name == "test" else ".env.local",
        f".env.{env_name}" if env_name else None,
        ".env",
    ]
    base = root or Path.cwd()
    return [base / name for name in names if name]


def load_env_files(
    root: Path | None = None,
    environ: MutableMapping[str, str] | None = None,
) -> list[Path]:
    """Load dotenv files into *environ* (default: the process environment).

    Variables already set are never overridden, so earlier files in
    ``dotenv_paths`` win over later ones. Returns the files that were read.
    """
    target = os.environ if environ is None else environ
    loaded: list[Path] = []
    for path in dotenv_paths(target.get("PERCY_ENV"), root):
        if not path.is_file():
            continue
        for key, value in dotenv_values(path).items():
            if value is not None and key not in target:
                target[key] = value
        loaded.append(path)
        logger.debug("Loaded environment from %s", path)
    return loaded

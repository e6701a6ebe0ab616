"""Content-addressed resource model (HTML, CSS, JS, images, ...).

A resource is identified by the SHA-256 of its bytes. It is built once per
asset while preparing a build and never changes afterwards.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from percy_sync.core.hasher import sha256_hex

_SHA256_HEX = re.compile(r"^[0-9a-fA-F]{64}$")
_WHITESPACE = re.compile(r"\s")


class Resource(BaseModel):
    """One static asset referenced by a build or snapshot.

    Exactly one of ``sha`` or ``content`` is required. When only
    ``content`` is given, ``sha`` is derived from it at construction.
    ``content`` and ``local_path`` are never serialized; ``local_path`` lets
    the upload read the bytes lazily instead of holding them in memory.
    """

    model_config = ConfigDict(frozen=True)

    resource_url: str
    sha: str
    content: bytes | str | None = Field(default=None, exclude=True, repr=False)
    mimetype: str | None = None
    is_root: bool | None = None
    local_path: Path | None = Field(default=None, exclude=True)

    @model_validator(mode="before")
    @classmethod
    def _derive_sha(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if not data.get("sha") and not data.get("content"):
            raise ValueError('Either "sha" or "content" is required to create a Resource.')
        if not data.get("sha"):
            data = {**data, "sha": sha256_hex(data["content"])}
        return data

    @field_validator("resource_url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        if not value:
            raise ValueError('"resource_url" is required to create a Resource.')
        if _WHITESPACE.search(value):
            raise ValueError('"resource_url" includes whitespace. It needs to be encoded.')
        return value

    @field_validator("sha")
    @classmethod
    def _check_sha(cls, value: str) -> str:
        if not _SHA256_HEX.match(value):
            raise ValueError(f'"sha" must be a 64 character hex SHA-256 digest, got {value!r}')
        return value.lower()

    def read_content(self) -> bytes | str:
        """Return inline content, or read it from ``local_path``."""
        if self.content is not None:
            return self.content
        if self.local_path is not None:
            return self.local_path.read_bytes()
        raise ValueError(f"Resource {self.resource_url} has no content or local_path to upload.")

    def serialize(self) -> dict[str, Any]:
        """Return the JSON-API ``resources`` record for this asset."""
        return {
            "type": "resources",
            "id": self.sha,
            "attributes": {
                "resource-url": self.resource_url,
                "mimetype": self.mimetype or None,
                "is-root": self.is_root or None,
            },
        }

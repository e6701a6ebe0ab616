"""Content hashing and payload encoding for resource uploads.

Resources are addressed by the SHA-256 hex digest of their raw bytes.
Text content is hashed and encoded as UTF-8, so ``"foo"`` and ``b"foo"``
share one address.
"""

from __future__ import annotations

import base64
import hashlib


def to_bytes(content: bytes | str) -> bytes:
    """Return *content* as raw bytes (UTF-8 for text)."""
    if isinstance(content, str):
        return content.encode("utf-8")
    return bytes(content)


def sha256_hex(content: bytes | str) -> str:
    """Return the lowercase SHA-256 hex digest of *content*."""
    return hashlib.sha256(to_bytes(content)).hexdigest()


def base64_encode(content: bytes | str) -> str:
    """Base64-encode *content* for the ``base64-content`` attribute."""
    return base64.b64encode(to_bytes(content)).decode("ascii")

"""Collect build resources from a directory of compiled assets."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterable
from pathlib import Path
from urllib.parse import quote

from percy_sync.core.hasher import sha256_hex
from percy_sync.models.resource import Resource

logger = logging.getLogger(__name__)

MAX_FILE_SIZE_BYTES = 15 * 1024 * 1024


def _raw_url(root_dir: Path, path: Path, base_url_path: str) -> str:
    relative = path.relative_to(root_dir).as_posix()
    base = (base_url_path or "/").rstrip("/")
    return f"{base}/{relative}"


def gather_build_resources(
    root_dir: Path,
    base_url_path: str = "",
    skipped_path_regexes: Iterable[str | re.Pattern[str]] = (),
    follow_links: bool = True,
) -> list[Resource]:
    """Walk *root_dir* and return one ``Resource`` per file.

    URLs are the file's path relative to *root_dir*, prefixed with
    *base_url_path* (e.g. ``/assets``) and percent-encoded. Skip patterns
    are matched against the URL before encoding. Files whose URL matches a
    skip pattern, and files larger than ``MAX_FILE_SIZE_BYTES``,
    are left out. Contents are hashed now but read again at upload time.
    """
    root = Path(root_dir).resolve()
    skipped = [re.compile(pattern) for pattern in skipped_path_regexes]
    resources: list[Resource] = []

    for dirpath, dirnames, filenames in os.walk(root, followlinks=follow_links):
        dirnames.sort()
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            raw_url = _raw_url(root, path, base_url_path)
            if any(pattern.search(raw_url) for pattern in skipped):
                continue
            url = quote(raw_url, safe="/")
            if path.stat().st_size > MAX_FILE_SIZE_BYTES:
                logger.warning("Skipping large build resource: %s", url)
                continue
            resources.append(
                Resource(
                    resource_url=url,
                    sha=sha256_hex(path.read_bytes()),
                    local_path=path,
                )
            )

    logger.debug("Gathered %d resource(s) from %s", len(resources), root)
    return resources

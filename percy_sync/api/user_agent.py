"""User-Agent header for requests to the comparison service.

Shape::

    Percy/v1 [sdk client] [client info] percy-sync/<version> ([sdk env]; [env info]; python/<version>[; <ci version>])

Elements that are ``None`` are left out.
"""

from __future__ import annotations

import platform
import re

from percy_sync import __version__

LIBRARY_NAME = "percy-sync"


def api_version(api_url: str) -> str | None:
    """Trailing word of the API URL, e.g. ``v1`` for ``.../api/v1``."""
    match = re.search(r"\w+$", api_url)
    return match.group(0) if match else None


def build_user_agent(
    api_url: str,
    ci_version: str | None = None,
    client_info: str | None = None,
    environment_info: str | None = None,
    sdk_client_info: str | None = None,
    sdk_environment_info: str | None = None,
    python_version: str | None = None,
) -> str:
    client = [
        f"Percy/{api_version(api_url)}",
        sdk_client_info,
        client_info,
        f"{LIBRARY_NAME}/{__version__}",
    ]
    environment = [
        sdk_environment_info,
        environment_info,
        f"python/{python_version or platform.python_version()}",
        ci_version,
    ]
    client_part = " ".join(part for part in client if part is not None)
    environment_part = "; ".join(part for part in environment if part is not None)
    return f"{client_part} ({environment_part})"

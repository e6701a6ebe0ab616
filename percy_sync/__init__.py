"""percy-sync: client for a snapshot-comparison service.

Two halves:
  - ``Environment`` resolves branch, commit, pull request and parallel-build
    metadata from CI provider variables, falling back to git.
  - ``PercyClient`` creates builds and uploads only the content-addressed
    resources the service reports missing, two at a time, with retries.
"""

__version__ = "0.1.0"

from percy_sync.api.errors import ApiError
from percy_sync.client import PercyClient
from percy_sync.core.environment import Environment
from percy_sync.models.resource import Resource

__all__ = ["ApiError", "Environment", "PercyClient", "Resource", "__version__"]

"""percy-sync data models — Pydantic v2."""

from percy_sync.models.build import BuildSession
from percy_sync.models.commit import CommitContext, CommitData
from percy_sync.models.resource import Resource

__all__ = [
    "BuildSession",
    "CommitContext",
    "CommitData",
    "Resource",
]

"""Commit and CI context models produced by the environment resolver."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class CommitData(BaseModel):
    """Git-level metadata for the commit under test."""

    model_config = ConfigDict(frozen=True)

    branch: str | None = None
    sha: str | None = None
    message: str | None = None
    committed_at: str | None = None
    author_name: str | None = None
    author_email: str | None = None
    committer_name: str | None = None
    committer_email: str | None = None


class CommitContext(BaseModel):
    """Everything the service needs to scope a build.

    A snapshot of one resolution pass; build it again to pick up changes
    in the environment.
    """

    model_config = ConfigDict(frozen=True)

    branch: str | None = None
    sha: str | None = None
    target_branch: str | None = None
    target_sha: str | None = None
    pull_request_number: str | None = None
    author_name: str | None = None
    author_email: str | None = None
    committer_name: str | None = None
    committer_email: str | None = None
    committed_at: str | None = None
    message: str | None = None
    parallel_nonce: str | None = None
    parallel_total_shards: int | None = None
    partial_build: bool = False
    ci_identifier: str | None = None
    ci_version: str | None = None

    @property
    def is_parallel(self) -> bool:
        """Whether both halves of the parallel-shard identity are known."""
        return bool(self.parallel_nonce) and bool(self.parallel_total_shards)

"""PercyClient — create builds, sync resources, register snapshots.

Protocol, per build::

    create_build ──> upload_missing_resources ──> create_snapshot ──>
    upload_missing_resources ──> finalize_snapshot ──> finalize_build

The service answers ``create_build`` and ``create_snapshot`` with the
hashes it has not seen yet ("missing resources"). Only those are uploaded,
through a worker pool of ``UPLOAD_CONCURRENCY`` threads. Calls for one
build must be made in order by the caller; the client does not enforce it.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import requests

from percy_sync.api.http import ApiResponse, HttpClient
from percy_sync.api.retry import RetryPolicy
from percy_sync.api.user_agent import build_user_agent
from percy_sync.config import ClientSettings
from percy_sync.core.environment import Environment
from percy_sync.core.hasher import base64_encode, sha256_hex
from percy_sync.models.commit import CommitData
from percy_sync.models.resource import Resource

logger = logging.getLogger(__name__)

# Upper bound on in-flight uploads; the service ingests with similar limits.
UPLOAD_CONCURRENCY = 2


class PercyClient:
    """Client for the snapshot-comparison service.

    Parameters
    ----------
    token:
        Project token. Falls back to ``PERCY_TOKEN`` via ``ClientSettings``;
        a client without a token cannot be constructed.
    api_url:
        Base API URL, e.g. ``https://percy.io/api/v1``.
    environment:
        Resolver for CI and commit context. Defaults to one reading
        ``os.environ``.
    client_info, environment_info:
        Optional descriptors of the calling integration, added to the
        User-Agent.
    settings:
        Explicit settings; read from the environment when omitted.
    session:
        ``requests.Session`` to use instead of a fresh pooled one.
    """

    def __init__(
        self,
        token: str | None = None,
        api_url: str | None = None,
        environment: Environment | None = None,
        client_info: str | None = None,
        environment_info: str | None = None,
        *,
        settings: ClientSettings | None = None,
        session: requests.Session | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = settings or ClientSettings()
        self.token = token or self._settings.token
        if not self.token:
            raise ValueError('"token" is required to create a PercyClient (or set PERCY_TOKEN).')
        self.api_url = (api_url or self._settings.api_url).rstrip("/")
        self.environment = environment if environment is not None else Environment()
        self.client_info = client_info
        self.environment_info = environment_info
        # Set by SDKs that wrap a higher-level integration.
        self.sdk_client_info: str | None = None
        self.sdk_environment_info: str | None = None

        self._http = HttpClient(
            self.token,
            self.user_agent,
            session=session,
            timeout_seconds=self._settings.request_timeout_seconds,
            retry_policy=retry_policy,
            sleep=sleep,
        )

    def __enter__(self) -> "PercyClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def user_agent(self) -> str:
        return build_user_agent(
            self.api_url,
            ci_version=self.environment.ci_version,
            client_info=self.client_info,
            environment_info=self.environment_info,
            sdk_client_info=self.sdk_client_info,
            sdk_environment_info=self.sdk_environment_info,
        )

    # ------------------------------------------------------------------
    # Builds
    # ------------------------------------------------------------------

    def create_build(
        self,
        resources: Iterable[Resource] | None = None,
        commit_data: CommitData | None = None,
    ) -> ApiResponse:
        """Create a build for the current commit.

        Parallel metadata is all-or-nothing: when either the nonce or the
        shard count is missing, both are sent as null.
        """
        context = self.environment.commit_context(commit_data)
        parallel_nonce = context.parallel_nonce
        parallel_total_shards = context.parallel_total_shards
        if not context.is_parallel:
            parallel_nonce = None
            parallel_total_shards = None

        data: dict[str, Any] = {
            "data": {
                "type": "builds",
                "attributes": {
                    "branch": context.branch,
                    "target-branch": context.target_branch,
                    "target-commit-sha": context.target_sha,
                    "commit-sha": context.sha,
                    "commit-committed-at": context.committed_at,
                    "commit-author-name": context.author_name,
                    "commit-author-email": context.author_email,
                    "commit-committer-name": context.committer_name,
                    "commit-committer-email": context.committer_email,
                    "commit-message": context.message,
                    "pull-request-number": context.pull_request_number,
                    "parallel-nonce": parallel_nonce,
                    "parallel-total-shards": parallel_total_shards,
                    "partial": context.partial_build,
                },
            }
        }
        if resources is not None:
            data["data"]["relationships"] = {
                "resources": {"data": [resource.serialize() for resource in resources]},
            }

        logger.info(
            "Creating build for branch=%s sha=%s ci=%s",
            context.branch,
            context.sha,
            context.ci_identifier,
        )
        return self._http.post(f"{self.api_url}/builds/", data)

    def finalize_build(self, build_id: str, all_shards: bool = False) -> ApiResponse:
        query = "?all-shards=true" if all_shards else ""
        logger.info("Finalizing build %s%s", build_id, " (all shards)" if all_shards else "")
        return self._http.post(f"{self.api_url}/builds/{build_id}/finalize{query}", {})

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    def make_resource(self, **kwargs: Any) -> Resource:
        return Resource(**kwargs)

    def upload_resource(self, build_id: str, content: bytes | str) -> ApiResponse:
        """Upload one resource's bytes; the sha of *content* is its id."""
        sha = sha256_hex(content)
        data = {
            "data": {
                "type": "resources",
                "id": sha,
                "attributes": {
                    "base64-content": base64_encode(content),
                },
            },
        }
        logger.debug("Uploading resource %s to build %s", sha, build_id)
        return self._http.post(
            f"{self.api_url}/builds/{build_id}/resources/",
            data,
            timeout=self._settings.upload_timeout_seconds,
        )

    def upload_resources(
        self, build_id: str, resources: Iterable[Resource]
    ) -> list[ApiResponse]:
        """Upload *resources* with at most ``UPLOAD_CONCURRENCY`` in flight.

        Content held on disk is read inside the worker, just before its
        upload. Responses come back in input order; the first failure is
        raised after in-flight uploads finish and queued ones are cancelled.
        """
        pending = list(resources)
        if not pending:
            return []

        with ThreadPoolExecutor(
            max_workers=UPLOAD_CONCURRENCY, thread_name_prefix="percy-upload"
        ) as executor:
            futures = [
                executor.submit(self._upload_from_resource, build_id, resource)
                for resource in pending
            ]
            try:
                return [future.result() for future in futures]
            except Exception:
                for future in futures:
                    future.cancel()
                raise

    def _upload_from_resource(self, build_id: str, resource: Resource) -> ApiResponse:
        return self.upload_resource(build_id, resource.read_content())

    @staticmethod
    def get_missing_resources(response: ApiResponse | dict[str, Any] | None) -> list[dict[str, Any]]:
        """Records listed under ``data.relationships.missing-resources``."""
        body = response.body if isinstance(response, ApiResponse) else response
        try:
            missing = body["data"]["relationships"]["missing-resources"]["data"]
        except (KeyError, TypeError):
            return []
        return list(missing or [])

    def upload_missing_resources(
        self,
        build_id: str,
        response: ApiResponse | dict[str, Any] | None,
        resources: Iterable[Resource],
    ) -> list[ApiResponse]:
        """Upload exactly the local resources the service reported missing."""
        missing = self.get_missing_resources(response)
        if not missing:
            return []

        by_sha = {resource.sha: resource for resource in resources}
        to_upload: dict[str, Resource] = {}
        for record in missing:
            sha = str(record.get("id", "")).lower()
            resource = by_sha.get(sha)
            if resource is None:
                logger.warning("Service requested unknown resource %s; skipping", sha)
                continue
            to_upload.setdefault(sha, resource)

        logger.info(
            "Uploading %d missing resource(s) to build %s", len(to_upload), build_id
        )
        return self.upload_resources(build_id, to_upload.values())

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def create_snapshot(
        self,
        build_id: str,
        resources: Iterable[Resource] | None = None,
        *,
        name: str | None = None,
        widths: list[int] | None = None,
        minimum_height: int | None = None,
        enable_javascript: bool | None = None,
    ) -> ApiResponse:
        data = {
            "data": {
                "type": "snapshots",
                "attributes": {
                    "name": name or None,
                    "enable-javascript": enable_javascript or None,
                    "widths": widths or None,
                    "minimum-height": minimum_height or None,
                },
                "relationships": {
                    "resources": {
                        "data": [resource.serialize() for resource in resources or []],
                    },
                },
            },
        }
        logger.debug("Creating snapshot %r in build %s", name, build_id)
        return self._http.post(f"{self.api_url}/builds/{build_id}/snapshots/", data)

    def finalize_snapshot(self, snapshot_id: str) -> ApiResponse:
        return self._http.post(f"{self.api_url}/snapshots/{snapshot_id}/finalize", {})

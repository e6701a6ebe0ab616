"""Shared test fixtures for percy-sync."""

from __future__ import annotations

import json
import threading
import time
from collections.abc import Callable, Sequence
from typing import Any

import pytest

from percy_sync.api.retry import RetryPolicy
from percy_sync.client import PercyClient
from percy_sync.config import ClientSettings
from percy_sync.core.environment import Environment
from percy_sync.core.git import GIT_COMMIT_FORMAT


def format_commit(
    sha: str = "a" * 40,
    author_name: str = "Ada Author",
    author_email: str = "ada@example.com",
    committer_name: str = "Carl Committer",
    committer_email: str = "carl@example.com",
    committed_at: str = "2024-01-02 03:04:05 +0000",
    message: str = "A commit message",
) -> str:
    """Render fields the way ``git show --format=GIT_COMMIT_FORMAT`` would."""
    return (
        GIT_COMMIT_FORMAT.replace("%n", "\n")
        .replace("%H", sha)
        .replace("%an", author_name)
        .replace("%ae", author_email)
        .replace("%cn", committer_name)
        .replace("%ce", committer_email)
        .replace("%ai", committed_at)
        .replace("%B", message)
    )


class StubGit:
    """Git runner answering from a dict keyed by the joined argument list."""

    def __init__(self, outputs: dict[str, str] | None = None) -> None:
        self.outputs = outputs or {}
        self.calls: list[list[str]] = []

    def __call__(self, args: Sequence[str]) -> str:
        self.calls.append(list(args))
        if args and args[0] == "show":
            return self.outputs.get(f"show {args[1]}", "")
        return self.outputs.get(" ".join(args), "")


class FakeResponse:
    """Minimal stand-in for ``requests.Response``."""

    def __init__(self, status_code: int = 200, body: Any = None) -> None:
        self.status_code = status_code
        self._body = body
        if body is None:
            self.content = b""
        elif isinstance(body, str):
            self.content = body.encode("utf-8")
        else:
            self.content = json.dumps(body).encode("utf-8")

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")

    def json(self) -> Any:
        if isinstance(self._body, str):
            raise ValueError("not JSON")
        return self._body


class FakeSession:
    """Records requests and answers them through *responder*.

    *responder* receives ``(method, url, payload)`` and returns a
    ``FakeResponse`` or raises. Tracks the peak number of requests in
    flight at once.
    """

    def __init__(
        self,
        responder: Callable[[str, str, Any], FakeResponse] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.responder = responder or (lambda method, url, payload: FakeResponse(200, {}))
        self.delay = delay
        self.requests: list[dict[str, Any]] = []
        self.closed = False
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def request(self, method, url, headers=None, json=None, timeout=None):
        with self._lock:
            self.requests.append(
                {"method": method, "url": url, "headers": headers, "json": json, "timeout": timeout}
            )
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            return self.responder(method, url, json)
        finally:
            with self._lock:
                self.in_flight -= 1

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def stub_git() -> StubGit:
    """A git runner with no repository: every command yields ``""``."""
    return StubGit()


@pytest.fixture
def env() -> dict[str, str]:
    """An empty environment mapping, mutable by the test."""
    return {}


@pytest.fixture
def environment(env: dict[str, str], stub_git: StubGit) -> Environment:
    """An Environment over the test's mapping and stub git."""
    return Environment(env, git_runner=stub_git)


@pytest.fixture
def settings() -> ClientSettings:
    """Settings independent of the process environment and any .env file."""
    return ClientSettings(_env_file=None, token="test-token", api_url="https://percy.test/api/v1")


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def client(
    settings: ClientSettings, environment: Environment, fake_session: FakeSession
) -> PercyClient:
    """A PercyClient wired to the fake session with instant retries."""
    return PercyClient(
        environment=environment,
        settings=settings,
        session=fake_session,
        retry_policy=RetryPolicy(interval_seconds=0),
        sleep=lambda _: None,
    )

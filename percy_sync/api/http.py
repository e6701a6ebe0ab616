"""JSON-API transport over a pooled ``requests`` session.

One session is shared by every call a client makes. Its adapter caps the
pool at ``MAX_SOCKETS`` connections and blocks when they are all in use;
connections are kept alive between calls. Each request runs under
``call_with_retry``, and every failure is reported as ``ApiError``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

import requests
from pydantic import BaseModel, ConfigDict
from requests.adapters import HTTPAdapter

from percy_sync.api.errors import ApiError
from percy_sync.api.retry import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)

JSON_API_CONTENT_TYPE = "application/vnd.api+json"
MAX_SOCKETS = 5
DEFAULT_TIMEOUT_SECONDS = 50.0

_TRANSIENT_ERRORS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
    requests.exceptions.ChunkedEncodingError,
)


class ApiResponse(BaseModel):
    """Status and decoded body of a successful response."""

    model_config = ConfigDict(frozen=True)

    status_code: int
    body: Any = None


def build_session(max_sockets: int = MAX_SOCKETS) -> requests.Session:
    """Create a keep-alive session with a bounded connection pool."""
    session = requests.Session()
    adapter = HTTPAdapter(
        pool_connections=1,
        pool_maxsize=max_sockets,
        pool_block=True,
        max_retries=0,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def _decode_body(response: requests.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class HttpClient:
    """Authenticated GET/POST against the service with retries.

    Parameters
    ----------
    token:
        Project token, sent as ``Authorization: Token token=<token>``.
    user_agent:
        Called for every request, so the header reflects the current
        environment.
    session:
        A ``requests.Session`` (or compatible object). Defaults to
        ``build_session()``.
    timeout_seconds:
        Default per-attempt timeout.
    retry_policy:
        Attempts and interval for transient failures.
    """

    def __init__(
        self,
        token: str,
        user_agent: Callable[[], str],
        *,
        session: requests.Session | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._token = token
        self._user_agent = user_agent
        self._session = session if session is not None else build_session()
        self.timeout_seconds = timeout_seconds
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep

    def close(self) -> None:
        self._session.close()

    def headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = {
            "Authorization": f"Token token={self._token}",
            "User-Agent": self._user_agent(),
        }
        if extra:
            headers.update(extra)
        return headers

    def get(self, url: str, *, timeout: float | None = None) -> ApiResponse:
        return self._request("GET", url, None, timeout, self.headers())

    def post(
        self, url: str, payload: dict[str, Any], *, timeout: float | None = None
    ) -> ApiResponse:
        return self._request(
            "POST", url, payload, timeout, self.headers({"Content-Type": JSON_API_CONTENT_TYPE})
        )

    def _request(
        self,
        method: str,
        url: str,
        payload: dict[str, Any] | None,
        timeout: float | None,
        headers: dict[str, str],
    ) -> ApiResponse:
        return call_with_retry(
            lambda: self._send_once(
                method, url, payload, timeout or self.timeout_seconds, headers
            ),
            policy=self.retry_policy,
            operation_name=f"{method} {url}",
            sleep=self._sleep,
        )

    def _send_once(
        self,
        method: str,
        url: str,
        payload: dict[str, Any] | None,
        timeout: float,
        headers: dict[str, str],
    ) -> ApiResponse:
        logger.debug("%s %s (timeout=%ss)", method, url, timeout)
        try:
            response = self._session.request(
                method,
                url,
                headers=headers,
                json=payload,
                timeout=timeout,
            )
        except _TRANSIENT_ERRORS as exc:
            raise ApiError(f"{method} {url} failed: {exc}", retryable=True) from exc
        except requests.exceptions.RequestException as exc:
            raise ApiError(f"{method} {url} failed: {exc}") from exc

        body = _decode_body(response)
        if response.status_code >= 400:
            raise ApiError.from_status(method, url, response.status_code, body)
        return ApiResponse(status_code=response.status_code, body=body)

"""The single error type surfaced for failed remote calls."""

from __future__ import annotations

from typing import Any


class ApiError(RuntimeError):
    """Raised when a request to the comparison service fails.

    Parameters
    ----------
    message:
        Human-readable summary.
    status_code:
        HTTP status of the failed response, or ``None`` when no response
        arrived (connection reset, timeout, DNS failure, ...).
    body:
        Parsed JSON body of the failed response when it was JSON, else its
        text. ``None`` when no response arrived.
    retryable:
        Whether the failure class is transient (5xx, connection error,
        timeout). Only retryable errors are retried.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: Any = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body
        self.retryable = retryable

    @classmethod
    def from_status(cls, method: str, url: str, status_code: int, body: Any) -> "ApiError":
        return cls(
            f"{method} {url} failed with HTTP {status_code}",
            status_code=status_code,
            body=body,
            retryable=status_code >= 500,
        )

    def __repr__(self) -> str:
        return f"ApiError(status_code={self.status_code!r}, message={self.message!r})"

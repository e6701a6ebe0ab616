"""Fixed-interval retry for idempotent service calls.

Every call the client makes is safe to repeat: uploads are keyed by
content hash and build relationships are idempotent on their identifiers.
Only transient failures (``ApiError.retryable``) are retried; anything else
propagates on the first attempt.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from pydantic import BaseModel, ConfigDict, Field

from percy_sync.api.errors import ApiError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_ATTEMPTS = 5
RETRY_INTERVAL_SECONDS = 0.05


class RetryPolicy(BaseModel):
    """How many times to try a call and how long to wait in between."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=MAX_ATTEMPTS, ge=1)
    interval_seconds: float = Field(default=RETRY_INTERVAL_SECONDS, ge=0.0)


def call_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy | None = None,
    operation_name: str = "request",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run *operation* until it succeeds or the retry budget is spent.

    Raises the last ``ApiError`` unchanged once ``policy.max_attempts``
    attempts have failed, so its status code and body stay available.
    """
    policy = policy or RetryPolicy()
    for attempt in range(1, policy.max_attempts + 1):
        try:
            result = operation()
        except ApiError as exc:
            if not exc.retryable:
                raise
            if attempt >= policy.max_attempts:
                logger.error(
                    "%s failed after %d attempts: %s",
                    operation_name,
                    attempt,
                    exc.message,
                )
                raise
            logger.warning(
                "%s failed on attempt %d/%d (%s), retrying",
                operation_name,
                attempt,
                policy.max_attempts,
                exc.message,
            )
            sleep(policy.interval_seconds)
            continue

        if attempt > 1:
            logger.info("%s succeeded after %d attempts", operation_name, attempt)
        return result

    raise AssertionError("unreachable")

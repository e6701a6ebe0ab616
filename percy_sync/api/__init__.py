"""HTTP layer: pooled session, retries, error type and User-Agent."""

from percy_sync.api.errors import ApiError
from percy_sync.api.http import JSON_API_CONTENT_TYPE, ApiResponse, HttpClient, build_session
from percy_sync.api.retry import RetryPolicy, call_with_retry
from percy_sync.api.user_agent import build_user_agent

__all__ = [
    "ApiError",
    "ApiResponse",
    "HttpClient",
    "JSON_API_CONTENT_TYPE",
    "RetryPolicy",
    "build_session",
    "build_user_agent",
    "call_with_retry",
]

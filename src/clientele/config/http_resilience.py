"""Configuration types for resilient HTTP clients."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from collections.abc import Mapping

ResponseHook = Callable[[httpx.Response], Awaitable[None] | None]


class RetryablePayloadError(httpx.HTTPError):
    """Raised by a response hook when a successful HTTP response carries a retryable failure.

    GraphQL APIs report throttling inside a 200 response, which the retry
    transport never sees; ``ResilientClient`` retries these itself.
    """

    def __init__(self, message: str, *, response: httpx.Response) -> None:
        super().__init__(message)
        self.response = response


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Transport-level retries plus the budget for payload-level retries."""

    total: int = 2
    backoff_factor: float = 0.5
    max_backoff_wait: float = 10.0
    respect_retry_after_header: bool = True
    # GraphQL mutations are POSTs; the platform rejects duplicate creates on its own.
    allowed_methods: frozenset[str] = field(
        default_factory=lambda: frozenset({"GET", "HEAD", "OPTIONS", "POST"})
    )
    status_forcelist: frozenset[int] = field(
        default_factory=lambda: frozenset({429, 500, 502, 503, 504})
    )
    retry_on_exceptions: tuple[type[httpx.HTTPError], ...] = (
        httpx.TimeoutException,
        httpx.NetworkError,
        httpx.RemoteProtocolError,
    )
    backoff_jitter: float = 1.0

    def payload_delay(self, attempt: int) -> float:
        """Seconds to wait before re-sending after the zero-based payload ``attempt``."""

        return min(self.backoff_factor * 2**attempt, self.max_backoff_wait)


@dataclass(slots=True, frozen=True)
class RateLimit:
    max_calls: int
    per_seconds: float


@dataclass(slots=True, frozen=True)
class ResilienceConfig:
    name: str
    base_url: str | None = None
    timeout_seconds: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    ratelimit: RateLimit | None = None
    response_hooks: tuple[ResponseHook, ...] = field(default_factory=tuple)
    default_headers: Mapping[str, str] | None = None

    def with_response_hooks(self, *hooks: ResponseHook) -> ResilienceConfig:
        missing = tuple(hook for hook in hooks if hook not in self.response_hooks)
        if not missing:
            return self
        return replace(self, response_hooks=(*self.response_hooks, *missing))

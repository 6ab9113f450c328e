# ABOUTME: Resilient invocation of metadata providers: rate limiting, timeouts, retry with backoff.
# ABOUTME: Every call ends in an Ok or Degraded outcome so one failing provider never stops aggregation.

import asyncio
import logging
import random
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum

import httpx

from shelfmark.metadata.provider import (
    CreatorQuery,
    MetadataProvider,
    MultiCriteriaQuery,
    RateLimitConfig,
    TitleQuery,
)
from shelfmark.metadata.record import MetadataRecord

logger = logging.getLogger(__name__)

_THROTTLE_STATUS = 429
_RETRYABLE_STATUS_CODES = {500, 502, 503, 504}


class ErrorKind(str, Enum):
    """How a provider failure should be treated."""

    RETRYABLE = "retryable"
    THROTTLED = "throttled"
    FATAL = "fatal"
    TIMEOUT = "timeout"


class ProviderError(Exception):
    """Raised by provider clients to signal a failure with an explicit kind."""

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind = ErrorKind.FATAL,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.retry_after = retry_after


class ThrottledError(ProviderError):
    """Raised when a provider asks us to slow down."""

    def __init__(self, message: str = "rate limited", *, retry_after: float | None = None) -> None:
        super().__init__(message, kind=ErrorKind.THROTTLED, retry_after=retry_after)


def classify_error(exc: BaseException) -> ErrorKind:
    """Decide whether a provider failure is worth retrying.

    Network errors, timeouts and 5xx responses are retryable; 429 is a
    throttling signal; any other 4xx, malformed requests and unrecognised
    exceptions are fatal.
    """
    if isinstance(exc, ProviderError):
        return exc.kind
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status == _THROTTLE_STATUS:
            return ErrorKind.THROTTLED
        if status in _RETRYABLE_STATUS_CODES or status >= 500:
            return ErrorKind.RETRYABLE
        return ErrorKind.FATAL
    if isinstance(exc, httpx.TransportError):
        return ErrorKind.RETRYABLE
    if isinstance(exc, (TimeoutError, ConnectionError)):
        return ErrorKind.RETRYABLE
    return ErrorKind.FATAL


def retry_after_seconds(exc: BaseException) -> float | None:
    """Extract a server-requested wait from a throttling error, if any."""
    if isinstance(exc, ProviderError):
        return exc.retry_after
    if isinstance(exc, httpx.HTTPStatusError):
        header = exc.response.headers.get("Retry-After")
        if header:
            try:
                return max(0.0, float(header))
            except ValueError:
                return None
    return None


@dataclass(frozen=True)
class RetryPolicy:
    """Retry bounds and backoff shape. Delays are in seconds."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter: float = 1.0
    throttle_delay: float = 60.0

    def backoff(self, attempt: int) -> float:
        """Delay before retry number attempt + 1 (attempt is zero-based)."""
        delay = self.base_delay * (2**attempt)
        if self.jitter > 0:
            delay += random.uniform(0.0, self.jitter)
        return min(delay, self.max_delay)


@dataclass(frozen=True)
class FailureCause:
    """One failed attempt inside a provider call."""

    kind: ErrorKind
    message: str
    attempt: int


@dataclass(frozen=True)
class Ok:
    """The provider answered; records may still be empty."""

    provider: str
    records: list[MetadataRecord]
    attempts: int = 1
    elapsed: float = 0.0

    @property
    def succeeded(self) -> bool:
        return True


@dataclass(frozen=True)
class Degraded:
    """The provider failed soft; records holds whatever could be salvaged."""

    provider: str
    records: list[MetadataRecord]
    causes: list[FailureCause] = field(default_factory=list)
    attempts: int = 0
    elapsed: float = 0.0

    @property
    def succeeded(self) -> bool:
        return False

    @property
    def timed_out(self) -> bool:
        return any(c.kind is ErrorKind.TIMEOUT for c in self.causes)


ProviderOutcome = Ok | Degraded


class RateLimiter:
    """Sliding-window limiter with a minimum spacing between requests.

    Slots are reserved synchronously so concurrent callers never read the
    same clock value twice; callers then sleep outside any lock until their
    slot comes up.
    """

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or RateLimitConfig()
        self._clock = clock
        self._window = self._config.window_ms / 1000.0
        self._spacing = self._config.request_delay / 1000.0
        self._slots: deque[float] = deque()
        self._next_allowed = 0.0

    @property
    def config(self) -> RateLimitConfig:
        return self._config

    def peek(self) -> float:
        """Return how long the next reservation would wait, without claiming it."""
        now = self._clock()
        return self._next_slot(now) - now

    def reserve(self) -> float:
        """Claim the next request slot and return how long to wait for it."""
        now = self._clock()
        slot = self._next_slot(now)
        self._prune(slot)
        self._slots.append(slot)
        self._next_allowed = slot + self._spacing
        return slot - now

    async def acquire(self) -> None:
        delay = self.reserve()
        if delay > 0:
            await asyncio.sleep(delay)

    def _next_slot(self, now: float) -> float:
        slot = max(now, self._next_allowed)
        limit = self._config.max_requests
        if limit <= 0:
            return slot
        live = [t for t in self._slots if t > slot - self._window]
        if len(live) >= limit:
            slot = max(slot, live[len(live) - limit] + self._window)
        return slot

    def _prune(self, at: float) -> None:
        while self._slots and self._slots[0] <= at - self._window:
            self._slots.popleft()


class RateLimiterRegistry:
    """One RateLimiter per provider name, shared by every enrichment that uses it."""

    def __init__(self) -> None:
        self._limiters: dict[str, RateLimiter] = {}

    def get(self, provider: MetadataProvider) -> RateLimiter:
        limiter = self._limiters.get(provider.name)
        if limiter is None:
            limiter = RateLimiter(provider.rate_limit)
            self._limiters[provider.name] = limiter
        return limiter

    def __contains__(self, name: str) -> bool:
        return name in self._limiters

    def __len__(self) -> int:
        return len(self._limiters)


class ResilientProvider:
    """Wraps a MetadataProvider so each search returns a ProviderOutcome.

    Applies the provider's rate limit, aborts attempts that exceed the
    request timeout, retries retryable failures with exponential backoff and
    gives up once the operation timeout would be crossed.
    """

    def __init__(
        self,
        provider: MetadataProvider,
        *,
        limiter: RateLimiter | None = None,
        retry: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._provider = provider
        self._limiter = limiter or RateLimiter(provider.rate_limit)
        self._retry = retry or RetryPolicy()
        self._sleep = sleep

    @property
    def provider(self) -> MetadataProvider:
        return self._provider

    @property
    def name(self) -> str:
        return self._provider.name

    async def search_by_title(self, query: TitleQuery) -> ProviderOutcome:
        return await self.call("search_by_title", lambda: self._provider.search_by_title(query))

    async def search_by_isbn(self, isbn: str) -> ProviderOutcome:
        return await self.call("search_by_isbn", lambda: self._provider.search_by_isbn(isbn))

    async def search_by_creator(self, query: CreatorQuery) -> ProviderOutcome:
        return await self.call(
            "search_by_creator", lambda: self._provider.search_by_creator(query)
        )

    async def search_multi_criteria(self, query: MultiCriteriaQuery) -> ProviderOutcome:
        return await self.call(
            "search_multi_criteria", lambda: self._provider.search_multi_criteria(query)
        )

    async def call(
        self,
        operation: str,
        invoke: Callable[[], Awaitable[list[MetadataRecord]]],
    ) -> ProviderOutcome:
        """Run one provider operation under the rate limit, timeout and retry rules.

        Args:
            operation: Name used in log messages.
            invoke: Zero-argument callable producing a fresh provider coroutine.

        Returns:
            Ok with the provider's records, or Degraded with an empty record
            list and the causes of every failed attempt.
        """
        loop = asyncio.get_running_loop()
        started = loop.time()
        timeouts = self._provider.timeout
        deadline = started + timeouts.operation_timeout / 1000.0
        request_timeout = timeouts.request_timeout / 1000.0
        causes: list[FailureCause] = []
        attempts = 0
        total = self._retry.max_retries + 1

        for attempt in range(total):
            wait = self._limiter.peek()
            if loop.time() + wait >= deadline:
                causes.append(
                    FailureCause(ErrorKind.TIMEOUT, "rate limit wait exceeds deadline", attempt + 1)
                )
                logger.warning(
                    "%s.%s: rate limit wait of %.2fs exceeds operation timeout, giving up",
                    self.name,
                    operation,
                    wait,
                )
                break
            wait = self._limiter.reserve()
            if wait > 0:
                await self._sleep(wait)

            remaining = deadline - loop.time()
            capped_by_operation = remaining < request_timeout
            attempts += 1
            try:
                records = await asyncio.wait_for(
                    invoke(), timeout=min(request_timeout, remaining)
                )
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                kind = classify_error(exc)
                if isinstance(exc, TimeoutError) and capped_by_operation:
                    kind = ErrorKind.TIMEOUT
                causes.append(FailureCause(kind, _describe(exc), attempt + 1))

                if kind in (ErrorKind.FATAL, ErrorKind.TIMEOUT):
                    logger.warning("%s.%s failed (%s): %s", self.name, operation, kind.value, exc)
                    break
                if attempt >= total - 1:
                    logger.warning(
                        "%s.%s failed after %d attempts: %s", self.name, operation, attempts, exc
                    )
                    break

                if kind is ErrorKind.THROTTLED:
                    retry_after = retry_after_seconds(exc)
                    delay = retry_after if retry_after is not None else self._retry.throttle_delay
                else:
                    delay = self._retry.backoff(attempt)

                if loop.time() + delay >= deadline:
                    causes.append(
                        FailureCause(ErrorKind.TIMEOUT, "retry delay exceeds deadline", attempt + 1)
                    )
                    logger.warning(
                        "%s.%s: retry in %.2fs would exceed operation timeout, giving up",
                        self.name,
                        operation,
                        delay,
                    )
                    break

                logger.warning(
                    "%s.%s failed (%s), retrying in %.2fs (attempt %d/%d)",
                    self.name,
                    operation,
                    kind.value,
                    delay,
                    attempt + 1,
                    self._retry.max_retries,
                )
                await self._sleep(delay)
                continue

            logger.debug(
                "%s.%s returned %d records in %d attempt(s)",
                self.name,
                operation,
                len(records),
                attempts,
            )
            return Ok(
                provider=self.name,
                records=list(records),
                attempts=attempts,
                elapsed=loop.time() - started,
            )

        return Degraded(
            provider=self.name,
            records=[],
            causes=causes,
            attempts=attempts,
            elapsed=loop.time() - started,
        )


def _describe(exc: BaseException) -> str:
    text = str(exc)
    return f"{type(exc).__name__}: {text}" if text else type(exc).__name__

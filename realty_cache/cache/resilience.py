"""Resilience primitives for cache fetchers: exception hierarchy, retry, circuit breaker."""

import logging
import time
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ── Exception Hierarchy ──────────────────────────────────────────────────────


class CacheError(Exception):
    """Base class for all errors raised by the caching layers."""


class FetchError(CacheError):
    """A value producer failed."""


class TransientFetchError(FetchError):
    """Retriable fetch failure (timeouts, locked database, connection resets)."""


class PermanentFetchError(FetchError):
    """Non-retriable fetch failure."""


class CircuitOpenError(CacheError):
    """Circuit breaker is open; fetches are being shed."""


# ── Retry ─────────────────────────────────────────────────────────────────


FETCH_WAIT = wait_exponential(multiplier=1, min=1, max=10)


def log_retry_attempt(retry_state: RetryCallState) -> None:
    """Tenacity ``before_sleep`` callback that logs each retry."""
    attempt = retry_state.attempt_number
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning("Fetch retry attempt %d after error: %s", attempt, exc)


def with_retries(
    fetcher: Callable[[], Awaitable[T]], attempts: int = 3
) -> Callable[[], Awaitable[T]]:
    """Wrap *fetcher* so ``TransientFetchError`` is retried with exponential backoff.

    Other exceptions propagate on the first attempt. After the last attempt the
    original error is re-raised.
    """

    async def _fetch() -> T:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(TransientFetchError),
            stop=stop_after_attempt(attempts),
            wait=FETCH_WAIT,
            before_sleep=log_retry_attempt,
            reraise=True,
        ):
            with attempt:
                return await fetcher()
        raise AssertionError("unreachable")  # pragma: no cover

    return _fetch


# ── Circuit Breaker ──────────────────────────────────────────────────────────


class CircuitState(StrEnum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Async circuit breaker guarding a backing store.

    Args:
        name: Human-readable name for logging.
        fail_max: Consecutive failures before opening.
        reset_timeout: Seconds to wait before trying again (half-open).
    """

    def __init__(self, name: str, fail_max: int = 5, reset_timeout: float = 60.0) -> None:
        self.name = name
        self.fail_max = fail_max
        self.reset_timeout = reset_timeout

        self._state = CircuitState.CLOSED
        self._fail_count = 0
        self._opened_at: float = 0.0

    @property
    def state(self) -> CircuitState:
        if self._state == CircuitState.OPEN:
            if time.monotonic() - self._opened_at >= self.reset_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    async def call(self, fetcher: Callable[[], Awaitable[T]]) -> T:
        """Run *fetcher* under breaker control.

        Raises:
            CircuitOpenError: If the circuit is OPEN. *fetcher* is not invoked.
        """
        current = self.state
        if current == CircuitState.OPEN:
            raise CircuitOpenError(f"Circuit '{self.name}' is open")

        try:
            result = await fetcher()
        except Exception:
            self._fail_count += 1
            if self._fail_count >= self.fail_max or current == CircuitState.HALF_OPEN:
                self._state = CircuitState.OPEN
                self._opened_at = time.monotonic()
                logger.warning(
                    "Circuit '%s' opened after %d failures", self.name, self._fail_count
                )
            raise

        self._fail_count = 0
        self._state = CircuitState.CLOSED
        return result


database_breaker = CircuitBreaker("database", fail_max=5, reset_timeout=30.0)

"""Retry with exponential backoff and jitter for WebUI requests.

Every attempt is classified into an explicit outcome (``Success``,
``RetryableFailure`` or ``TerminalFailure``) and the loop dispatches on it.
The engine only decides whether to try again; turning a final response into
a value or an ``ApiError`` is the response handler's job.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from http import HTTPStatus

import httpx

from sdwebui.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Statuses worth retrying unchanged: request timeout, rate limiting, server errors.
TRANSIENT_STATUS_CODES: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504})

RATE_LIMIT_STATUS = 429

# (bound) -> value in [0, bound)
JitterSource = Callable[[float], float]
Sleeper = Callable[[float], Awaitable[None]]
Operation = Callable[[], Awaitable[httpx.Response]]


def random_jitter(bound: float) -> float:
    """Uniform jitter in ``[0, bound)`` from the process-wide generator."""
    if bound <= 0:
        return 0.0
    return random.random() * bound  # noqa: S311


# ============================================================================
# Data
# ============================================================================


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to retry and how long to wait in between (seconds)."""

    max_retries: int = 3
    base_delay: float = 1.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ConfigurationError("max_retries cannot be negative")
        if self.base_delay < 0:
            raise ConfigurationError("base_delay cannot be negative")

    @property
    def jitter_bound(self) -> float:
        return self.base_delay / 4

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


@dataclass(frozen=True)
class RequestAttempt:
    index: int
    endpoint: str
    status_code: int | None = None
    elapsed: float = 0.0


@dataclass(frozen=True)
class Success:
    response: httpx.Response


@dataclass(frozen=True)
class RetryableFailure:
    reason: str
    status_code: int | None = None
    response: httpx.Response | None = None
    error: httpx.TransportError | None = None


@dataclass(frozen=True)
class TerminalFailure:
    reason: str
    status_code: int | None = None
    response: httpx.Response | None = None


Outcome = Success | RetryableFailure | TerminalFailure


# ============================================================================
# Classification and backoff
# ============================================================================


def classify_response(
    response: httpx.Response,
    transient_statuses: frozenset[int] = TRANSIENT_STATUS_CODES,
) -> Outcome:
    """Map a received response onto an outcome."""
    status = response.status_code
    if response.is_success:
        return Success(response)
    reason = f"Request failed with status {status}"
    if status in transient_statuses:
        return RetryableFailure(reason, status_code=status, response=response)
    return TerminalFailure(reason, status_code=status, response=response)


def classify_error(error: httpx.TransportError) -> RetryableFailure:
    """Transport failures (timeouts, refused connections, DNS) are always retryable."""
    if isinstance(error, httpx.TimeoutException):
        return RetryableFailure("Request timed out", error=error)
    return RetryableFailure(f"Request failed with {type(error).__name__}: {error}", error=error)


def backoff_delay(
    policy: RetryPolicy,
    attempt: RequestAttempt,
    jitter: JitterSource = random_jitter,
) -> float:
    """Seconds to wait after ``attempt`` fails.

    ``base_delay * 2**index``, doubled again for 429, plus jitter in
    ``[0, base_delay / 4)``.
    """
    delay = policy.base_delay * (2**attempt.index)
    if attempt.status_code == RATE_LIMIT_STATUS:
        delay *= 2
    return delay + jitter(policy.jitter_bound)


def _status_label(status_code: int | None) -> str:
    if status_code is None:
        return "[Network Error]"
    try:
        phrase = HTTPStatus(status_code).phrase
    except ValueError:
        return f"[{status_code}]"
    return f"[{status_code} {phrase}]"


def _raise_if_cancelled(cancel: asyncio.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise asyncio.CancelledError("request cancelled by caller")


# ============================================================================
# Engine
# ============================================================================


class RetryEngine:
    """Runs one request with bounded retries.

    Holds only read-only configuration, so one instance can serve any number
    of concurrent calls.
    """

    def __init__(
        self,
        policy: RetryPolicy,
        *,
        log: logging.Logger | None = None,
        jitter: JitterSource = random_jitter,
        sleep: Sleeper = asyncio.sleep,
        transient_statuses: frozenset[int] = TRANSIENT_STATUS_CODES,
    ) -> None:
        self.policy = policy
        self.transient_statuses = transient_statuses
        self._log = log or logger
        self._jitter = jitter
        self._sleep = sleep

    async def execute(
        self,
        operation: Operation,
        endpoint: str,
        *,
        cancel: asyncio.Event | None = None,
    ) -> httpx.Response:
        """Call ``operation`` until it succeeds, fails terminally, or retries run out.

        Returns the last response, which may carry a failure status. A
        transport error on the final attempt is re-raised. Raises
        ``asyncio.CancelledError`` as soon as ``cancel`` is set, including
        while waiting between attempts.
        """
        started = time.monotonic()

        for index in range(self.policy.max_attempts):
            _raise_if_cancelled(cancel)
            attempt = RequestAttempt(index=index, endpoint=endpoint)

            try:
                response = await operation()
            except httpx.TransportError as exc:
                outcome: Outcome = classify_error(exc)
            else:
                outcome = classify_response(response, self.transient_statuses)

            match outcome:
                case Success(response=response):
                    if index > 0:
                        self._log.info("Request succeeded after %d retry attempt(s)", index)
                    return response
                case TerminalFailure(response=response):
                    return response
                case RetryableFailure(reason=reason, status_code=status, response=response, error=error):
                    attempt = replace(attempt, status_code=status, elapsed=time.monotonic() - started)
                    if index >= self.policy.max_retries:
                        if error is not None:
                            raise error
                        return response
                    # cancelled in flight: stop before logging a retry
                    _raise_if_cancelled(cancel)
                    await self._backoff(attempt, reason, cancel)

        raise RuntimeError("retry loop exited unexpectedly")  # pragma: no cover

    async def _backoff(self, attempt: RequestAttempt, reason: str, cancel: asyncio.Event | None) -> None:
        delay = backoff_delay(self.policy, attempt, self._jitter)
        self._log.debug(
            "attempt %d on %s failed %.0fms into the call",
            attempt.index + 1,
            attempt.endpoint,
            attempt.elapsed * 1000,
        )
        self._log.warning(
            "%s %s on %s. Retrying in %.0fms (attempt %d/%d)",
            _status_label(attempt.status_code),
            reason,
            attempt.endpoint,
            delay * 1000,
            attempt.index + 1,
            self.policy.max_retries,
        )
        await self._wait(delay, cancel)

    async def _wait(self, delay: float, cancel: asyncio.Event | None) -> None:
        if cancel is None:
            await self._sleep(delay)
            return

        sleeper = asyncio.ensure_future(self._sleep(delay))
        watcher = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({sleeper, watcher}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, watcher):
                if not task.done():
                    task.cancel()
            # retrieve both outcomes, including a sleeper error
            await asyncio.gather(sleeper, watcher, return_exceptions=True)
        _raise_if_cancelled(cancel)
        sleeper.result()

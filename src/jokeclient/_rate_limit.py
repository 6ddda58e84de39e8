"""
Admission control for the jokeclient package.

This module bounds how fast a JokeClient may call the remote service. Two
interchangeable strategies share the AdmissionController contract:

- Fixed window: synchronous admit-or-reject check, fails fast when exhausted.
- Scheduler: FIFO queue served by one worker, with a reservoir per window
  and a minimum spacing between operation starts.

Available implementations:
    - FixedWindowRateLimiter: `try_admit()` returns True/False, never blocks.
    - SchedulingRateLimiter: `schedule(fn)` returns a Future executed in order.

Example (Fixed window):
    >>> from jokeclient._rate_limit import FixedWindowRateLimiter
    >>> limiter = FixedWindowRateLimiter(max_requests=10, time_window=60.0)
    >>> if limiter.try_admit():
    ...     ...  # perform the call

Example (Scheduler):
    >>> from jokeclient._rate_limit import SchedulingRateLimiter
    >>> limiter = SchedulingRateLimiter(max_requests=10, time_window=60.0, min_time=0.1)
    >>> future = limiter.schedule(lambda: "done")
    >>> future.result()
    'done'
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable
from concurrent.futures import Future
from typing import TYPE_CHECKING, Any, TypeVar, override

if TYPE_CHECKING:
    from jokeclient._config import RateLimitConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# Exceptions
# =============================================================================


class ClientSideRateLimitError(Exception):
    """
    Base exception for client-side admission control errors.

    These originate from the local AdmissionController, never from the
    remote service.
    """

    pass


class AdmissionDeniedError(ClientSideRateLimitError):
    """
    Raised when the fixed-window budget is exhausted.

    Attributes:
        retry_after: Seconds until the budget refills.

    Example:
        >>> try:
        ...     limiter.run(do_request)
        ... except AdmissionDeniedError as e:
        ...     print(f"Try again in {e.retry_after:.1f}s")
    """

    def __init__(self, retry_after: float):
        self.retry_after = retry_after
        super().__init__(
            f"Rate limit exceeded. Please try again in {retry_after:.2f}s."
        )


class TokenAcquisitionTimeoutError(ClientSideRateLimitError):
    """
    Raised when a queued operation did not start within its time budget.

    The operation is cancelled and never runs.

    Attributes:
        waited: Time in seconds the caller waited before giving up.
        max_wait_time: The budget that was exceeded.
    """

    def __init__(self, waited: float, max_wait_time: float):
        self.waited = waited
        self.max_wait_time = max_wait_time
        super().__init__(
            f"Rate limit timeout: waited {waited:.2f}s, max_wait_time={max_wait_time:.2f}s"
        )


class LimiterStoppedError(ClientSideRateLimitError):
    """Raised for operations scheduled on, or dropped by, a stopped limiter."""

    def __init__(self, message: str = "Rate limiter has been stopped."):
        super().__init__(message)


# =============================================================================
# Common Contract
# =============================================================================


class AdmissionController(ABC):
    """
    Abstract base class for admission strategies.

    `run()` is the single entry point used by JokeClient: it gates the given
    zero-argument operation and returns its result, or raises a
    ClientSideRateLimitError subclass without running it.
    """

    @abstractmethod
    def run(self, operation: Callable[[], T], timeout: float | None = None) -> T:
        """
        Gate `operation` through the controller and return its result.

        Args:
            operation: Zero-argument callable performing the I/O.
            timeout: Maximum seconds the caller is willing to wait for admission.
                Ignored by strategies that never wait.

        Raises:
            AdmissionDeniedError: If the budget is exhausted (fail-fast strategies).
            TokenAcquisitionTimeoutError: If admission did not happen within `timeout`.
            LimiterStoppedError: If the controller has been stopped.
        """
        pass

    @abstractmethod
    def stats(self) -> dict[str, Any]:
        """Returns a snapshot of the controller state for diagnostics."""
        pass

    def stop(self) -> None:
        """Stop the controller. Idempotent."""
        pass


# =============================================================================
# Fixed Window
# =============================================================================


class FixedWindowRateLimiter(AdmissionController):
    """
    Synchronous fixed-window admission controller.

    Admits at most `max_requests` operations per `time_window` seconds. When
    the window has elapsed the budget is reset to full and the window anchor
    moves to "now"; a partially elapsed window grants nothing back.

    This limiter is thread-safe: the refill check and the decrement happen
    under one lock, so concurrent callers can never over-draw the budget.

    Example:
        >>> limiter = FixedWindowRateLimiter(max_requests=2, time_window=60.0)
        >>> limiter.try_admit(), limiter.try_admit(), limiter.try_admit()
        (True, True, False)

    Args:
        max_requests: Budget per window. 0 denies every call.
        time_window: Window length in seconds. 0 refills on every call.
    """

    def __init__(self, max_requests: int = 10, time_window: float = 60.0):
        assert max_requests is not None, "max_requests cannot be None."
        assert max_requests >= 0, "max_requests must be >= 0."
        assert time_window is not None, "time_window cannot be None."
        assert time_window >= 0, "time_window must be >= 0."

        self.max_requests = max_requests
        self.time_window = time_window

        self._available = max_requests
        self._window_anchor = time.monotonic()
        self._lock = threading.Lock()

    def _refill(self, now: float) -> None:
        # Caller must hold self._lock
        if now - self._window_anchor >= self.time_window:
            self._available = self.max_requests
            self._window_anchor = max(self._window_anchor, now)

    def try_admit(self) -> bool:
        """
        Consume one unit of budget if available.

        Returns:
            True if admitted, False if the budget is exhausted.
        """
        with self._lock:
            self._refill(time.monotonic())
            if self._available > 0:
                self._available -= 1
                return True
            return False

    @property
    def available(self) -> int:
        """Returns the remaining budget after the refill check, without consuming it."""
        with self._lock:
            self._refill(time.monotonic())
            return self._available

    def peek_available(self) -> int:
        """Alias of `available` for call sites that prefer a method."""
        return self.available

    @property
    def window_anchor(self) -> float:
        """Returns the monotonic timestamp at which the current window started."""
        return self._window_anchor

    def time_until_refill(self) -> float:
        """Returns the seconds left until the budget resets (0 once the window elapsed)."""
        with self._lock:
            elapsed = time.monotonic() - self._window_anchor
            return max(0.0, self.time_window - elapsed)

    @override
    def run(self, operation: Callable[[], T], timeout: float | None = None) -> T:
        """
        Admit and run `operation`, or fail fast.

        Raises:
            AdmissionDeniedError: If the budget is exhausted.
        """
        if not self.try_admit():
            retry_after = self.time_until_refill()
            logger.warning(f"Rate limit exhausted ({self.max_requests}/{self.time_window:.1f}s). Retry after {retry_after:.2f}s.")
            raise AdmissionDeniedError(retry_after=retry_after)
        return operation()

    @override
    def stats(self) -> dict[str, Any]:
        return {
            "available_tokens": self.available,
            "time_until_refill": self.time_until_refill(),
        }


# =============================================================================
# Scheduler
# =============================================================================


class _Job:
    """Internal: an operation waiting in the scheduler queue."""

    __slots__ = ("operation", "future")

    def __init__(self, operation: Callable[[], Any]):
        self.operation = operation
        self.future: Future[Any] = Future()


class SchedulingRateLimiter(AdmissionController):
    """
    Queueing admission controller.

    Operations are executed by a single background worker thread:

    - FIFO order: operations start in submission order.
    - Serialized: at most one operation runs at a time.
    - Spacing: at least `min_time` seconds between two operation starts.
    - Reservoir: at most `max_requests` starts per window. The reservoir is
      reset to `max_requests` at each window boundary, it does not leak back
      one unit at a time.

    `stop()` drops every waiting operation (their futures fail with
    LimiterStoppedError) and guarantees that nothing else starts after it
    returns. An operation already running is allowed to finish.

    Example:
        >>> limiter = SchedulingRateLimiter(max_requests=10, time_window=60.0)
        >>> limiter.schedule(lambda: 42).result()
        42
        >>> limiter.stop()

    Args:
        max_requests: Reservoir size per window. 0 never starts anything.
        time_window: Window length in seconds (must be > 0).
        min_time: Minimum seconds between operation starts.
    """

    def __init__(
        self,
        max_requests: int = 10,
        time_window: float = 60.0,
        min_time: float = 0.1,
    ):
        assert max_requests is not None, "max_requests cannot be None."
        assert max_requests >= 0, "max_requests must be >= 0."
        assert time_window is not None, "time_window cannot be None."
        assert time_window > 0, "time_window must be greater than 0."
        assert min_time is not None, "min_time cannot be None."
        assert min_time >= 0, "min_time must be >= 0."

        self.max_requests = max_requests
        self.time_window = time_window
        self.min_time = min_time

        self._reservoir = max_requests
        self._next_refresh = time.monotonic() + time_window
        self._last_start: float | None = None
        self._queue: deque[_Job] = deque()
        self._running = 0
        self._stopped = False
        self._cond = threading.Condition()
        self._worker: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def schedule(self, operation: Callable[[], T]) -> "Future[T]":
        """
        Enqueue `operation` and return a Future for its result.

        Raises:
            LimiterStoppedError: If the limiter has been stopped.
        """
        assert operation is not None, "operation cannot be None."

        job = _Job(operation)
        with self._cond:
            if self._stopped:
                raise LimiterStoppedError()
            self._queue.append(job)
            self._ensure_worker()
            self._cond.notify_all()
        return job.future

    @property
    def queued_count(self) -> int:
        """Returns the number of operations waiting to start."""
        with self._cond:
            return sum(1 for job in self._queue if not job.future.cancelled())

    @property
    def running_count(self) -> int:
        """Returns the number of operations in flight (0 or 1)."""
        with self._cond:
            return self._running

    @property
    def is_stopped(self) -> bool:
        with self._cond:
            return self._stopped

    @override
    def run(self, operation: Callable[[], T], timeout: float | None = None) -> T:
        """
        Schedule `operation` and wait for its result.

        Args:
            operation: Zero-argument callable performing the I/O.
            timeout: Maximum seconds to wait for the operation to *start*.
                None waits indefinitely. Once started, the operation runs to
                completion and its own budget applies.

        Raises:
            TokenAcquisitionTimeoutError: If the operation did not start in time.
            LimiterStoppedError: If the limiter was stopped before it started.
        """
        start_time = time.monotonic()
        future = self.schedule(operation)
        started = self._wait_until_started(future, timeout)
        if not started:
            waited = time.monotonic() - start_time
            assert timeout is not None, "🌀 Sanity check | only a bounded wait can time out."
            logger.warning(f"Queued operation did not start within {timeout:.2f}s; cancelling it.")
            raise TokenAcquisitionTimeoutError(waited=waited, max_wait_time=timeout)
        return future.result()

    @override
    def stats(self) -> dict[str, Any]:
        return {
            "queued": self.queued_count,
            "running": self.running_count,
        }

    @override
    def stop(self, drop_waiting: bool = True) -> None:
        """
        Stop the limiter. Idempotent.

        After this returns no queued operation will start. Waiting operations
        fail with LimiterStoppedError when `drop_waiting` is True; otherwise
        they are cancelled silently.
        """
        with self._cond:
            if self._stopped:
                return
            self._stopped = True
            dropped = list(self._queue)
            self._queue.clear()
            self._cond.notify_all()

        for job in dropped:
            if drop_waiting:
                if job.future.set_running_or_notify_cancel():
                    job.future.set_exception(LimiterStoppedError("Operation dropped: rate limiter stopped."))
            else:
                job.future.cancel()

        with self._cond:
            # Wake callers blocked in run() on a future that just failed
            self._cond.notify_all()

        if dropped:
            logger.debug(f"Rate limiter stopped; dropped {len(dropped)} queued operation(s).")

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _wait_until_started(self, future: "Future[Any]", timeout: float | None) -> bool:
        """
        Block until the worker picked up `future`, or cancel it on timeout.

        Returns:
            True if the operation started (or already finished), False if it
            was cancelled before starting.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while not future.running() and not future.done():
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    # Cancelling succeeds only while the job is still pending
                    return not future.cancel()
                self._cond.wait(remaining)
        return True

    def _ensure_worker(self) -> None:
        # Caller must hold self._cond
        if self._worker is None:
            self._worker = threading.Thread(
                target=self._work_loop,
                name="jokeclient-scheduler",
                daemon=True,
            )
            self._worker.start()

    def _refresh_reservoir(self, now: float) -> None:
        # Caller must hold self._cond
        if now >= self._next_refresh:
            elapsed_windows = int((now - self._next_refresh) // self.time_window) + 1
            self._next_refresh += elapsed_windows * self.time_window
            self._reservoir = self.max_requests

    def _next_job(self) -> _Job | None:
        """Wait until a job may start and claim it, or return None once stopped."""
        with self._cond:
            while True:
                if self._stopped:
                    return None

                # Drop jobs cancelled by callers that gave up waiting
                while self._queue and self._queue[0].future.cancelled():
                    self._queue.popleft()

                if not self._queue:
                    self._cond.wait()
                    continue

                now = time.monotonic()
                self._refresh_reservoir(now)

                if self._reservoir <= 0:
                    self._cond.wait(max(0.0, self._next_refresh - now))
                    continue

                if self._last_start is not None:
                    spacing_left = self._last_start + self.min_time - now
                    if spacing_left > 0:
                        self._cond.wait(spacing_left)
                        continue

                job = self._queue.popleft()
                if not job.future.set_running_or_notify_cancel():
                    continue

                self._reservoir -= 1
                self._last_start = now
                self._running = 1
                self._cond.notify_all()
                return job

    def _work_loop(self) -> None:
        while True:
            job = self._next_job()
            if job is None:
                return
            try:
                result = job.operation()
            except BaseException as e:
                job.future.set_exception(e)
            else:
                job.future.set_result(result)
            finally:
                with self._cond:
                    self._running = 0
                    self._cond.notify_all()


# =============================================================================
# Factory
# =============================================================================


def create_admission_controller(config: "RateLimitConfig | None" = None) -> AdmissionController | None:
    """
    Build the admission controller described by `config`.

    Args:
        config: Rate limit settings. If None, uses JOKES.config.rate_limit.

    Returns:
        The configured controller, or None when rate limiting is disabled.

    Raises:
        ValueError: If the configured strategy is unknown.
    """
    if config is None:
        from jokeclient._config import JOKES
        config = JOKES.config.rate_limit

    if not config.enabled:
        return None

    if config.strategy == "fixed_window":
        logger.debug(
            f"Using fixed_window admission control "
            f"(max_requests={config.max_requests}, time_window={config.time_window}s)."
        )
        return FixedWindowRateLimiter(
            max_requests=config.max_requests,
            time_window=config.time_window,
        )
    if config.strategy == "scheduler":
        logger.debug(
            f"Using scheduler admission control "
            f"(max_requests={config.max_requests}, time_window={config.time_window}s, min_time={config.min_time}s)."
        )
        return SchedulingRateLimiter(
            max_requests=config.max_requests,
            time_window=config.time_window,
            min_time=config.min_time,
        )
    raise ValueError(f"Unknown rate limit strategy: {config.strategy!r}")

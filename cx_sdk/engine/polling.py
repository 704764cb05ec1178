"""Bounded, cancellable polling.

A Poller repeatedly calls an observer until it observes a terminal value, the
wall-clock deadline passes, or the caller cancels. Transient transport errors
inside a single observation are retried a few times; if they persist, that interval
is simply a missed poll and the loop carries on until the deadline.

All sleeping goes through a CancelToken so a cancel() wakes the waiter
immediately instead of after the current interval.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from cx_sdk.domain.errors import OperationCancelled, PollingTimeout, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSED = object()


@dataclass(frozen=True)
class PollPolicy:
    """How often to poll and for how long. Durations are seconds."""

    interval: float = 20.0
    timeout: float = 7200.0
    backoff: float = 1.0
    """Multiplier applied to the interval after every poll. 1.0 = fixed interval."""

    max_interval: float | None = None
    """Upper bound for the interval when backoff > 1."""

    retries: int = 3
    """Extra attempts for a single poll that fails with a transient error."""

    retry_delay: float = 1.0

    def __post_init__(self) -> None:
        if self.interval <= 0:
            raise ValueError("interval must be positive")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.backoff < 1.0:
            raise ValueError("backoff must be >= 1.0")
        if self.retries < 0:
            raise ValueError("retries must be >= 0")

    def next_interval(self, current: float) -> float:
        grown = current * self.backoff
        if self.max_interval is not None:
            grown = min(grown, self.max_interval)
        return grown


class CancelToken:
    """Cooperative cancellation shared between a waiter and whoever may cancel it."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to seconds. Returns True if cancelled meanwhile."""
        return self._event.wait(max(seconds, 0.0))


class Poller:
    """Drives one polling loop under a PollPolicy."""

    def __init__(
        self,
        policy: PollPolicy,
        cancel: CancelToken | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._policy = policy
        self._cancel = cancel or CancelToken()
        self._clock = clock

    def run(self, observe: Callable[[], T], is_terminal: Callable[[T], bool], what: str) -> T:
        """Poll until is_terminal(observe()) holds and return that observation.

        Raises:
            PollingTimeout: the deadline passed without a terminal observation.
            OperationCancelled: the CancelToken fired.
        """
        policy = self._policy
        started = self._clock()
        deadline = started + policy.timeout
        interval = policy.interval
        polls = 0

        while True:
            self._check_cancelled(what)
            observed = self._attempt(observe, what)
            polls += 1
            if observed is not _MISSED and is_terminal(observed):
                logger.debug("%s reached a terminal state after %d poll(s)", what, polls)
                return observed

            remaining = deadline - self._clock()
            if remaining <= 0:
                elapsed = self._clock() - started
                raise PollingTimeout(
                    f"Timed out waiting for {what} after {elapsed:.1f}s ({polls} polls)",
                    elapsed=elapsed,
                )
            if self._cancel.wait(min(interval, remaining)):
                self._check_cancelled(what)
            interval = policy.next_interval(interval)

    def _attempt(self, observe: Callable[[], T], what: str) -> T | object:
        attempts = self._policy.retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return observe()
            except TransportError as err:
                logger.warning(
                    "Transient error polling %s (attempt %d/%d): %s", what, attempt, attempts, err
                )
                if attempt < attempts and self._cancel.wait(self._policy.retry_delay):
                    self._check_cancelled(what)
        logger.warning("Giving up on this poll of %s; will try again next interval", what)
        return _MISSED

    def _check_cancelled(self, what: str) -> None:
        if self._cancel.cancelled:
            raise OperationCancelled(f"Waiting for {what} was cancelled")

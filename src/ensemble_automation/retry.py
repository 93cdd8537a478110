"""Blocking retry and poll primitives used inside action procedures.

Both helpers hold the calling worker thread while they sleep. When an abort
event is supplied the sleep ends early once it is set, so a cancelled run
stops after the attempt that is currently in flight.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)

EXHAUSTED = "attempts exhausted"
TIMED_OUT = "timed out"
CANCELLED = "cancelled"


@dataclass
class PollOutcome:
    satisfied: bool
    attempts: int
    elapsed: float
    reason: str = ""

    def __bool__(self) -> bool:
        return self.satisfied

    @property
    def cancelled(self) -> bool:
        return self.reason == CANCELLED

    def describe(self, what: str) -> str:
        if self.satisfied:
            return f"{what} after {self.attempts} attempt(s)"
        return f"{what} {self.reason} after {self.attempts} attempt(s) in {self.elapsed:.1f}s"


def wait_for(
    condition: Callable[[], bool],
    *,
    period: float,
    max_attempts: Optional[int] = None,
    timeout: Optional[float] = None,
    abort: Optional[threading.Event] = None,
    clock: Callable[[], float] = time.monotonic,
) -> PollOutcome:
    """Evaluate ``condition`` every ``period`` seconds until it holds.

    Fails when ``max_attempts`` evaluations or ``timeout`` seconds have been
    used, whichever comes first. The first evaluation happens immediately.
    """

    if period < 0:
        raise ValueError("poll period must not be negative")
    if max_attempts is not None and max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    if max_attempts is None and timeout is None:
        raise ValueError("wait_for needs max_attempts or timeout")

    start = clock()
    attempts = 0
    while True:
        attempts += 1
        if condition():
            return PollOutcome(True, attempts, clock() - start)
        elapsed = clock() - start
        if max_attempts is not None and attempts >= max_attempts:
            return PollOutcome(False, attempts, elapsed, EXHAUSTED)
        delay = period
        if timeout is not None:
            remaining = timeout - elapsed
            if remaining <= 0:
                return PollOutcome(False, attempts, elapsed, TIMED_OUT)
            delay = min(period, remaining)
        if abort is not None:
            if abort.wait(delay):
                return PollOutcome(False, attempts, clock() - start, CANCELLED)
        else:
            time.sleep(delay)


def retry(
    operation: Callable[[], bool],
    *,
    attempts: int,
    backoff: float,
    abort: Optional[threading.Event] = None,
) -> PollOutcome:
    """Run ``operation`` up to ``attempts`` times, sleeping ``backoff`` between tries."""

    def _attempt() -> bool:
        ok = operation()
        if not ok:
            logger.debug("attempt failed; retrying in %.1fs", backoff)
        return ok

    return wait_for(_attempt, period=backoff, max_attempts=attempts, abort=abort)

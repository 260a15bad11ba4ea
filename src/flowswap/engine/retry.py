# src/flowswap/engine/retry.py
"""Bounded polling with tenacity integration.

BoundedRetry polls until a predicate holds or a fixed budget runs out. It
answers two questions at once:

- converged?  -> poll_until() returns None
- not converged -> poll_until() returns Residual(last value, polls)

so callers branch on presence and use the residual for diagnostics:

    pending = retry.poll_until(still_validating, lambda ids: not ids)
    if pending is not None:
        raise ValidationPendingError(pending.value)

Sleeps between polls block the calling thread. Run it on a worker thread,
never on a request-serving one. A CancellationToken stops the loop early;
a cancelled loop reports non-convergence.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

import structlog
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_result,
    stop_after_attempt,
    stop_when_event_set,
    wait_fixed,
)

from flowswap.core.config import RetryBudgetSettings

T = TypeVar("T")

slog = structlog.get_logger(__name__)


class CancellationToken:
    """Cooperative cancellation for blocking update loops.

    Backed by a threading.Event, so cancel() from any thread interrupts a
    pause in progress.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def event(self) -> threading.Event:
        return self._event

    def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds`` or until cancelled, whichever comes first."""
        self._event.wait(seconds)


@dataclass(frozen=True, slots=True)
class Residual(Generic[T]):
    """Last polled value of a loop that did not converge.

    Wrapped so a falsy residual (empty list, False) is still "present".
    """

    value: T
    polls: int
    cancelled: bool = False


class BoundedRetry:
    """Poll-until-predicate-or-exhausted primitive.

    max_retries is the number of ADDITIONAL polls after the first, so the
    poll function runs at most max_retries + 1 times.

    Example:
        retry = BoundedRetry(max_retries=60, pause_seconds=1.0)
        residual = retry.poll_until(runtime.is_data_queued, lambda queued: not queued)
        drained = residual is None
    """

    def __init__(
        self,
        *,
        max_retries: int,
        pause_seconds: float,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        """Initialize with a budget.

        Args:
            max_retries: Polls after the first before giving up (>= 0)
            pause_seconds: Pause between polls (>= 0)
            sleep: Sleep function override. Defaults to an interruptible
                sleep on the cancellation token, so tests can pass a no-op.
        """
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        if pause_seconds < 0:
            raise ValueError(f"pause_seconds must be >= 0, got {pause_seconds}")
        self.max_retries = max_retries
        self.pause_seconds = pause_seconds
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        settings: RetryBudgetSettings,
        *,
        sleep: Callable[[float], None] | None = None,
    ) -> BoundedRetry:
        return cls(max_retries=settings.max_retries, pause_seconds=settings.pause_seconds, sleep=sleep)

    def poll_until(
        self,
        poll: Callable[[], T],
        succeeded: Callable[[T], bool],
        *,
        cancellation: CancellationToken | None = None,
    ) -> Residual[T] | None:
        """Poll until ``succeeded(poll())`` holds or the budget is spent.

        Args:
            poll: Produces the value to test. Exceptions propagate unchanged.
            succeeded: Convergence predicate over the polled value.
            cancellation: Optional token; when cancelled the loop stops at
                the next check and reports non-convergence.

        Returns:
            None if the predicate held, otherwise the last polled value.
        """
        token = cancellation if cancellation is not None else CancellationToken()
        residual: list[Residual[T]] = []

        def on_exhausted(state: RetryCallState) -> None:
            # outcome is the last poll, which did not satisfy the predicate
            outcome = state.outcome
            if outcome is None:
                raise RuntimeError("Retry budget exhausted but no poll outcome was recorded")
            residual.append(Residual(value=outcome.result(), polls=state.attempt_number, cancelled=token.cancelled))

        def before_sleep(state: RetryCallState) -> None:
            slog.debug(
                "Condition not met, polling again",
                poll=getattr(poll, "__name__", repr(poll)),
                attempt=state.attempt_number,
                max_attempts=self.max_retries + 1,
                pause_seconds=self.pause_seconds,
            )

        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries + 1) | stop_when_event_set(token.event),
            wait=wait_fixed(self.pause_seconds),
            retry=retry_if_result(lambda value: not succeeded(value)),
            sleep=self._sleep if self._sleep is not None else token.sleep,
            before_sleep=before_sleep,
            retry_error_callback=on_exhausted,
        )
        retrying(poll)

        if residual:
            return residual[0]
        return None

# src/flowswap/contracts/results.py
"""Result types returned by update phases and by the orchestrator.

Each phase of the update returns a PhaseResult instead of raising. The
orchestrator branches on PhaseResult.ok, which keeps every state transition
an explicit value that tests can inspect.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Generic, TypeVar

from flowswap.contracts.enums import FailureKind, UpdateState

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class PhaseResult(Generic[T]):
    """Outcome of one phase of the update state machine.

    Either ``value`` is set (success) or ``failure_kind`` and ``error`` are
    set (failure). Never both.
    """

    state: UpdateState
    value: T | None = None
    failure_kind: FailureKind | None = None
    error: Exception | None = None

    def __post_init__(self) -> None:
        if (self.failure_kind is None) != (self.error is None):
            raise ValueError("failure_kind and error must be set together")

    @property
    def ok(self) -> bool:
        return self.failure_kind is None

    @classmethod
    def success(cls, state: UpdateState, value: T | None = None) -> PhaseResult[T]:
        return cls(state=state, value=value)

    @classmethod
    def failure(cls, state: UpdateState, kind: FailureKind, error: Exception) -> PhaseResult[T]:
        return cls(state=state, failure_kind=kind, error=error)

    def describe_error(self) -> str | None:
        if self.error is None:
            return None
        return f"{type(self.error).__name__}: {self.error}"


@dataclass(frozen=True, slots=True)
class DrainReport:
    """What the graceful drain did.

    Attributes:
        graceful: True when queues emptied within the drain budget. False
            means queued work was force-dropped.
        polls: Number of times the queued-work predicate was evaluated.
        sources_stopped: Identifiers of the source components stopped first.
        endpoints_timed_out: Remote endpoints whose stop did not complete
            within the transmission stop timeout.
    """

    graceful: bool
    polls: int
    sources_stopped: tuple[str, ...] = ()
    endpoints_timed_out: tuple[str, ...] = ()

    @property
    def forced(self) -> bool:
        return not self.graceful


@dataclass(frozen=True, slots=True)
class UpdateReport:
    """Terminal outcome of one update attempt.

    ``update()`` only exposes ``succeeded``; the report additionally lets
    callers tell a clean rollback (REVERTED) from DEGRADED_NO_RELOAD.
    """

    attempt_id: str
    state: UpdateState
    candidate_sha256: str
    started_at: datetime
    completed_at: datetime
    failed_phase: UpdateState | None = None
    failure_kind: FailureKind | None = None
    error: str | None = None
    rollback_error: str | None = None
    drain: DrainReport | None = None

    @property
    def succeeded(self) -> bool:
        return self.state == UpdateState.RUNNING

    @property
    def degraded(self) -> bool:
        return self.state == UpdateState.DEGRADED_NO_RELOAD

    @property
    def drain_forced(self) -> bool:
        return self.drain is not None and self.drain.forced

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()


@dataclass(frozen=True, slots=True)
class UpdateAttemptRecord:
    """One row of the update history, as read back from the database."""

    attempt_id: str
    started_at: datetime
    completed_at: datetime
    terminal_state: UpdateState
    candidate_sha256: str
    drain_forced: bool
    failed_phase: UpdateState | None = None
    failure_kind: FailureKind | None = None
    error: str | None = None
    rollback_error: str | None = None

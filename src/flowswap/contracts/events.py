"""Observability events for configuration updates.

Emitted by the orchestrator and the drain controller on an EventBus.
Consumers (dashboards, C2 heartbeats, tests) subscribe to the event types
they care about.
"""

from dataclasses import dataclass

from flowswap.contracts.enums import FailureKind, UpdateState


@dataclass(frozen=True, slots=True)
class UpdateStarted:
    """Emitted when an update attempt is accepted."""

    attempt_id: str
    candidate_sha256: str
    candidate_bytes: int


@dataclass(frozen=True, slots=True)
class PhaseStarted:
    """Emitted when the state machine enters a phase."""

    attempt_id: str
    phase: UpdateState


@dataclass(frozen=True, slots=True)
class PhaseCompleted:
    """Emitted when a phase finishes without error."""

    attempt_id: str
    phase: UpdateState
    duration_seconds: float


@dataclass(frozen=True, slots=True)
class PhaseFailed:
    """Emitted when a phase fails.

    Attributes:
        attempt_id: Update attempt identifier
        phase: The phase that failed
        failure_kind: Classification of the failure
        error: Exception class name and message
    """

    attempt_id: str
    phase: UpdateState
    failure_kind: FailureKind
    error: str


@dataclass(frozen=True, slots=True)
class DrainForced:
    """Emitted when queues did not empty in time and queued work was dropped.

    This is the intended escape valve, not a bug, but it loses data.
    """

    polls: int
    request_id: str


@dataclass(frozen=True, slots=True)
class TransmissionStopTimedOut:
    """Emitted when a remote endpoint did not stop within its timeout."""

    endpoint_id: str
    timeout_seconds: float


@dataclass(frozen=True, slots=True)
class UpdateCompleted:
    """Emitted once per attempt with its terminal state."""

    attempt_id: str
    state: UpdateState
    succeeded: bool
    duration_seconds: float
    failure_kind: FailureKind | None = None

# src/flowswap/contracts/enums.py
"""Status codes and state names used across subsystem boundaries."""

from enum import StrEnum


class ValidationStatus(StrEnum):
    """Validation state reported by a single runtime component.

    VALIDATING means the component has not settled yet; the reload
    validator keeps polling until no component reports it.
    """

    VALIDATING = "validating"
    VALID = "valid"
    INVALID = "invalid"


class UpdateState(StrEnum):
    """States of the configuration update state machine.

    Happy path:
        IDLE -> ENRICHING -> BACKING_UP -> PERSISTING -> DRAINING
             -> RELOADING -> VALIDATING -> RUNNING

    Rollback branch:
        REVERTING_FILES -> RELOADING_REVERTED -> REVERTED

    Terminal states: RUNNING, REVERTED, REJECTED, DEGRADED_NO_RELOAD.
    """

    IDLE = "idle"
    ENRICHING = "enriching"
    BACKING_UP = "backing_up"
    PERSISTING = "persisting"
    DRAINING = "draining"
    RELOADING = "reloading"
    VALIDATING = "validating"
    RUNNING = "running"
    REVERTING_FILES = "reverting_files"
    RELOADING_REVERTED = "reloading_reverted"
    REVERTED = "reverted"
    REJECTED = "rejected"
    DEGRADED_NO_RELOAD = "degraded_no_reload"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES

    @property
    def touches_runtime(self) -> bool:
        """Whether a failure in this phase may have left the runtime modified."""
        return self in _RUNTIME_PHASES


_TERMINAL_STATES = frozenset(
    {
        UpdateState.RUNNING,
        UpdateState.REVERTED,
        UpdateState.REJECTED,
        UpdateState.DEGRADED_NO_RELOAD,
    }
)

_RUNTIME_PHASES = frozenset(
    {
        UpdateState.DRAINING,
        UpdateState.RELOADING,
        UpdateState.VALIDATING,
    }
)


class FailureKind(StrEnum):
    """Why an update attempt did not reach RUNNING.

    Stored in the update history (update_attempts.failure_kind).
    """

    REJECTED_CANDIDATE = "rejected_candidate"
    FILE_OPERATION = "file_operation"
    DRAIN_FAILURE = "drain_failure"
    RELOAD_FAILURE = "reload_failure"
    REVERT_RELOAD_FAILURE = "revert_reload_failure"
    BUSY = "busy"
    UNEXPECTED = "unexpected"

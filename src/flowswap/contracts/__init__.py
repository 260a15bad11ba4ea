# src/flowswap/contracts/__init__.py
"""Shared contracts for cross-boundary data types.

Enums, result dataclasses, events, errors and the runtime protocols live
here. This package is a LEAF MODULE with no outbound dependencies to
core/engine. Settings classes are NOT re-exported here - import them from
flowswap.core.config.
"""

from flowswap.contracts.enums import FailureKind, UpdateState, ValidationStatus
from flowswap.contracts.errors import (
    ConfigFileError,
    FlowswapError,
    RejectedCandidateError,
    ReloadFailedError,
    RevertReloadError,
    ValidationFailedError,
    ValidationIssue,
    ValidationPendingError,
)
from flowswap.contracts.events import (
    DrainForced,
    PhaseCompleted,
    PhaseFailed,
    PhaseStarted,
    TransmissionStopTimedOut,
    UpdateCompleted,
    UpdateStarted,
)
from flowswap.contracts.results import (
    DrainReport,
    PhaseResult,
    UpdateAttemptRecord,
    UpdateReport,
)
from flowswap.contracts.runtime import (
    ConfigurationEnricher,
    Connection,
    RemoteEndpoint,
    RuntimeHandle,
    ValidatableComponent,
)

__all__ = [
    "ConfigFileError",
    "ConfigurationEnricher",
    "Connection",
    "DrainForced",
    "DrainReport",
    "FailureKind",
    "FlowswapError",
    "PhaseCompleted",
    "PhaseFailed",
    "PhaseResult",
    "PhaseStarted",
    "RejectedCandidateError",
    "ReloadFailedError",
    "RemoteEndpoint",
    "RevertReloadError",
    "RuntimeHandle",
    "TransmissionStopTimedOut",
    "UpdateAttemptRecord",
    "UpdateCompleted",
    "UpdateReport",
    "UpdateStarted",
    "UpdateState",
    "ValidatableComponent",
    "ValidationFailedError",
    "ValidationIssue",
    "ValidationPendingError",
    "ValidationStatus",
]

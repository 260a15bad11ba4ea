# src/flowswap/contracts/errors.py
"""Exception hierarchy for configuration updates.

None of these escape UpdateOrchestrator.apply(): the orchestrator converts
them into PhaseResult failures and, ultimately, into an UpdateReport.
They are raised by the building blocks (file set, reload validator) so the
orchestrator can tell the failure kinds apart.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path


class FlowswapError(Exception):
    """Base class for all flowswap errors."""


class RejectedCandidateError(FlowswapError):
    """Raised when the candidate configuration cannot be enriched.

    Nothing on disk or in the runtime has changed when this is raised.
    """


class ConfigFileError(FlowswapError):
    """Raised when a configuration file cannot be backed up or persisted."""

    def __init__(self, message: str, *, path: Path) -> None:
        self.path = path
        super().__init__(f"{message}: {path}")


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    """A single validation error reported by a runtime component."""

    component_id: str
    message: str

    def __str__(self) -> str:
        return f"{self.component_id}: {self.message}"


class ReloadFailedError(FlowswapError):
    """Raised when a persisted configuration cannot be brought to RUNNING.

    Triggers rollback in the orchestrator. Subclasses narrow down which
    reload step gave up.
    """


class ValidationPendingError(ReloadFailedError):
    """Raised when components are still VALIDATING after the retry budget."""

    def __init__(self, component_ids: Sequence[str]) -> None:
        self.component_ids = tuple(component_ids)
        super().__init__(
            f"Maximum retry number exceeded while waiting for components to be validated: {', '.join(self.component_ids)}"
        )


class ValidationFailedError(ReloadFailedError):
    """Raised when any component reports validation errors after reload.

    A configuration with validation errors must never start processing.
    """

    def __init__(self, issues: Sequence[ValidationIssue]) -> None:
        self.issues = tuple(issues)
        super().__init__(f"Unable to start flow due to {len(self.issues)} validation error(s): " + "; ".join(str(i) for i in self.issues))


class RevertReloadError(FlowswapError):
    """Raised when the reverted configuration could not be reloaded.

    Files are back to the previous configuration but the runtime is not
    confirmed to be running it. Requires a process restart.
    """

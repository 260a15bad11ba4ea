# src/flowswap/engine/reload.py
"""ReloadValidator: bring a persisted configuration to running.

load() loads the active configuration file into the runtime and
reinitializes it. validate_and_start() waits for every component to settle,
refuses to start on any validation error, and resumes processing.
reload() does both.

Every fatal condition surfaces as ReloadFailedError (or a subclass). Rollback
is not this class's job.
"""

from __future__ import annotations

from collections.abc import Callable

import structlog

from flowswap.contracts.enums import ValidationStatus
from flowswap.contracts.errors import (
    ReloadFailedError,
    ValidationFailedError,
    ValidationIssue,
    ValidationPendingError,
)
from flowswap.contracts.runtime import RuntimeHandle, ValidatableComponent
from flowswap.core.config import ValidationSettings
from flowswap.engine.retry import BoundedRetry, CancellationToken

slog = structlog.get_logger(__name__)


class ReloadValidator:
    """Reload the runtime from disk and gate startup on validation."""

    def __init__(
        self,
        runtime: RuntimeHandle,
        settings: ValidationSettings,
        *,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self._runtime = runtime
        self._retry = BoundedRetry.from_settings(settings, sleep=sleep)

    def reload(self, cancellation: CancellationToken | None = None) -> None:
        """Load, validate and start the persisted configuration.

        Raises:
            ReloadFailedError: If any step fails.
        """
        self.load()
        self.validate_and_start(cancellation)

    def load(self) -> None:
        """Load the active configuration file and reinitialize the runtime.

        Raises:
            ReloadFailedError: If the runtime rejects the configuration.
        """
        slog.info("Initiating flow reload")
        try:
            self._runtime.load_persisted_configuration(None)
            self._runtime.reinitialize(True)
        except Exception as e:
            raise ReloadFailedError(f"Unable to load persisted flow configuration: {type(e).__name__}: {e}") from e

    def validate_and_start(self, cancellation: CancellationToken | None = None) -> None:
        """Wait for validation to settle, then start processing if clean.

        Raises:
            ValidationPendingError: Components still VALIDATING after the budget.
            ValidationFailedError: Any component reported validation errors.
            ReloadFailedError: The runtime failed while validating or starting.
        """
        try:
            components = self.validatable_components()
            pending = self._retry.poll_until(
                lambda: self._still_validating(components),
                lambda validating: not validating,
                cancellation=cancellation,
            )
        except Exception as e:
            raise ReloadFailedError(f"Unable to validate flow components: {type(e).__name__}: {e}") from e

        if pending is not None:
            component_ids = [c.identifier for c in pending.value]
            slog.error("Components are still in VALIDATING state", components=component_ids, polls=pending.polls)
            raise ValidationPendingError(component_ids)

        try:
            issues = self.collect_validation_errors(components)
        except Exception as e:
            raise ReloadFailedError(f"Unable to collect validation errors: {type(e).__name__}: {e}") from e
        if issues:
            slog.error("Validation errors found when reloading the flow", errors=[str(i) for i in issues])
            raise ValidationFailedError(issues)

        try:
            self._runtime.start_processing()
        except Exception as e:
            raise ReloadFailedError(f"Unable to start flow processing: {type(e).__name__}: {e}") from e
        slog.info("Flow has been reloaded successfully", components=len(components))

    def validatable_components(self) -> list[ValidatableComponent]:
        """Controller services, reporting tasks and all processors, flattened.

        Processors are de-duplicated by identifier; services and tasks are
        taken as the runtime reports them.
        """
        components: list[ValidatableComponent] = [
            *self._runtime.controller_services(),
            *self._runtime.reporting_tasks(),
        ]
        seen: set[str] = set()
        for processor in self._runtime.processors():
            if processor.identifier in seen:
                continue
            seen.add(processor.identifier)
            components.append(processor)
        return components

    @staticmethod
    def _still_validating(components: list[ValidatableComponent]) -> list[ValidatableComponent]:
        return [c for c in components if c.perform_validation() == ValidationStatus.VALIDATING]

    @staticmethod
    def collect_validation_errors(components: list[ValidatableComponent]) -> list[ValidationIssue]:
        return [ValidationIssue(component_id=c.identifier, message=message) for c in components for message in c.validation_errors()]

# src/flowswap/engine/orchestrator.py
"""UpdateOrchestrator: hot-swap the configuration of a running dataflow.

Coordinates:
- Enrichment of the raw candidate (nothing touched if it is rejected)
- Backup and persistence of the active configuration files
- Graceful drain of the live dataflow
- Reload and validation of the new configuration
- Rollback (revert files, reload the previous configuration) on failure
- Backup cleanup on every exit path

Each phase returns a PhaseResult and the state machine branches on those
values. Exceptions from collaborators never escape apply()/update(): the
caller sees a boolean (update) or an UpdateReport (apply), and the log,
events and update history carry the detail.

Example:
    orchestrator = UpdateOrchestrator(runtime, enricher, settings)
    future = orchestrator.submit(candidate_bytes)   # off the request thread
    report = future.result()
    if report.degraded:
        page_operator(report)
"""

from __future__ import annotations

import hashlib
import threading
import time
import uuid
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, NamedTuple, TypeVar

import structlog

from flowswap.contracts.enums import FailureKind, UpdateState
from flowswap.contracts.errors import ConfigFileError, RejectedCandidateError, ReloadFailedError, RevertReloadError
from flowswap.contracts.events import (
    PhaseCompleted,
    PhaseFailed,
    PhaseStarted,
    UpdateCompleted,
    UpdateStarted,
)
from flowswap.contracts.results import DrainReport, PhaseResult, UpdateReport
from flowswap.contracts.runtime import ConfigurationEnricher, RuntimeHandle
from flowswap.core.config import FlowswapSettings
from flowswap.core.events import EventBusProtocol, NullEventBus
from flowswap.core.files import ConfigFilePaths, ConfigFileSet
from flowswap.engine.drain import GracefulDrainController
from flowswap.engine.reload import ReloadValidator
from flowswap.engine.retry import CancellationToken
from flowswap.engine.spans import SpanFactory

if TYPE_CHECKING:
    from flowswap.core.history import UpdateHistory

T = TypeVar("T")

slog = structlog.get_logger(__name__)


@dataclass
class _Attempt:
    """Mutable bookkeeping for one update attempt."""

    attempt_id: str
    candidate_sha256: str
    candidate_bytes: int
    started_at: datetime
    log: Any
    drain: DrainReport | None = None

    @classmethod
    def begin(cls, raw: bytes) -> _Attempt:
        attempt_id = uuid.uuid4().hex
        return cls(
            attempt_id=attempt_id,
            candidate_sha256=hashlib.sha256(raw).hexdigest(),
            candidate_bytes=len(raw),
            started_at=datetime.now(UTC),
            log=slog.bind(attempt_id=attempt_id),
        )


class _Outcome(NamedTuple):
    state: UpdateState
    failure: PhaseResult[Any] | None = None
    rollback_failure: PhaseResult[Any] | None = None


class UpdateOrchestrator:
    """Replace the live configuration, or leave the previous one in place.

    At most one attempt runs at a time. A concurrent apply() is refused with
    a REJECTED report (failure kind BUSY) instead of interleaving; submit()
    queues attempts on a single worker thread instead.
    """

    def __init__(
        self,
        runtime: RuntimeHandle,
        enricher: ConfigurationEnricher,
        settings: FlowswapSettings,
        *,
        event_bus: EventBusProtocol | None = None,
        history: UpdateHistory | None = None,
        span_factory: SpanFactory | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            runtime: The live dataflow to reconfigure
            enricher: Turns raw candidate bytes into a runnable configuration
            settings: Validated settings (file layout, drain/validation budgets)
            event_bus: Receives phase and outcome events. Defaults to no-op.
            history: Records every attempt when provided
            span_factory: OpenTelemetry spans. Defaults to no-op.
            sleep: Sleep override for the polling loops (tests pass a no-op)
        """
        self._runtime = runtime
        self._enricher = enricher
        self._settings = settings
        self._events: EventBusProtocol = event_bus if event_bus is not None else NullEventBus()
        self._history = history
        self._spans = span_factory if span_factory is not None else SpanFactory()

        files = settings.files
        self._files = ConfigFileSet(
            ConfigFilePaths.derive(
                files.flow_configuration_file,
                backup_suffix=files.backup_suffix,
                raw_extension=files.raw_extension,
            )
        )
        self._drain = GracefulDrainController(runtime, settings.drain, event_bus=self._events, sleep=sleep)
        self._reload = ReloadValidator(runtime, settings.validation, sleep=sleep)

        self._lock = threading.Lock()
        self._state = UpdateState.IDLE
        self._cancellation: CancellationToken | None = None
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        runtime: RuntimeHandle,
        enricher: ConfigurationEnricher,
        settings: FlowswapSettings,
        *,
        event_bus: EventBusProtocol | None = None,
        span_factory: SpanFactory | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> UpdateOrchestrator:
        """Build an orchestrator for a host runtime from its loaded settings.

        Applies ``settings.logging`` and opens the update history when
        ``settings.history.enabled``. Hosts that configure logging and
        history themselves use the constructor.

        Example:
            settings = load_settings(Path("flowswap.yaml"))
            orchestrator = UpdateOrchestrator.from_settings(runtime, enricher, settings)
        """
        from flowswap.core.history import UpdateHistory
        from flowswap.core.logging import configure_logging

        configure_logging(settings.logging)
        history = UpdateHistory.from_settings(settings.history)
        slog.info(
            "Flow configuration updates enabled",
            flow_configuration_file=str(settings.files.flow_configuration_file),
            history=history is not None,
        )
        return cls(
            runtime,
            enricher,
            settings,
            event_bus=event_bus,
            history=history,
            span_factory=span_factory,
            sleep=sleep,
        )

    @property
    def state(self) -> UpdateState:
        """Current phase, IDLE when no attempt is running."""
        return self._state

    @property
    def paths(self) -> ConfigFilePaths:
        return self._files.paths

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def update(self, raw: bytes) -> bool:
        """Apply a candidate configuration.

        Returns:
            True iff the candidate is running. False for every other outcome,
            including DEGRADED_NO_RELOAD; use apply() to tell them apart.
        """
        return self.apply(raw).succeeded

    def apply(self, raw: bytes) -> UpdateReport:
        """Apply a candidate configuration and report how it ended.

        Blocks for up to the drain budget plus the validation budget. Never
        raises.
        """
        attempt = _Attempt.begin(raw)
        if not self._lock.acquire(blocking=False):
            attempt.log.warning("Flow configuration update already in progress, refusing concurrent update")
            busy = PhaseResult.failure(UpdateState.IDLE, FailureKind.BUSY, RuntimeError("Another update is in progress"))
            return self._finish(attempt, _Outcome(UpdateState.REJECTED, failure=busy))

        token = CancellationToken()
        self._cancellation = token
        try:
            return self._run(attempt, raw, token)
        except Exception as e:
            # Only reachable through a bug outside the phase wrappers; state unknown
            attempt.log.critical(
                "Unexpected error during flow configuration update, flow state unknown",
                phase=self._state.value,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=e,
            )
            unexpected = PhaseResult.failure(self._state, FailureKind.UNEXPECTED, e)
            return self._finish(attempt, _Outcome(UpdateState.DEGRADED_NO_RELOAD, failure=unexpected))
        finally:
            self._cancellation = None
            self._state = UpdateState.IDLE
            self._lock.release()

    def submit(self, raw: bytes) -> Future[UpdateReport]:
        """Run apply() on the orchestrator's dedicated worker thread.

        Attempts submitted while one is running are queued behind it.
        """
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="flowswap-update")
            return self._executor.submit(self.apply, raw)

    def cancel_current(self) -> bool:
        """Cut the current attempt's polling loops short.

        A cancelled drain falls through to the forced drain; a cancelled
        validation wait fails the reload and triggers rollback. The rollback
        itself is not cancellable.

        Returns:
            True if an attempt was running and has been signalled.
        """
        token = self._cancellation
        if token is None:
            return False
        slog.warning("Cancelling flow configuration update", phase=self._state.value)
        token.cancel()
        return True

    def shutdown(self, wait: bool = True) -> None:
        """Stop the worker thread started by submit()."""
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)

    def __enter__(self) -> UpdateOrchestrator:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.shutdown()

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _run(self, attempt: _Attempt, raw: bytes, token: CancellationToken) -> UpdateReport:
        attempt.log.info(
            "Attempting to update flow configuration",
            candidate_bytes=attempt.candidate_bytes,
            candidate_sha256=attempt.candidate_sha256,
        )
        attempt.log.debug("Candidate flow configuration", content=raw.decode("utf-8", errors="replace"))
        self._emit(UpdateStarted(attempt.attempt_id, attempt.candidate_sha256, attempt.candidate_bytes))

        with self._spans.update_span(attempt.attempt_id, candidate_sha256=attempt.candidate_sha256):
            enriched = self._phase(attempt, UpdateState.ENRICHING, FailureKind.REJECTED_CANDIDATE, lambda: self._enrich(raw))
            if not enriched.ok:
                attempt.log.error("Candidate flow configuration rejected, running flow left untouched", error=enriched.describe_error())
                return self._finish(attempt, _Outcome(UpdateState.REJECTED, failure=enriched))

            rendered = enriched.value
            if rendered is None:
                raise RuntimeError("Enrichment returned success but has no rendered configuration")
            with self._files.transaction():
                outcome = self._commit(attempt, raw, rendered, token)
            return self._finish(attempt, outcome)

    def _commit(self, attempt: _Attempt, raw: bytes, rendered: bytes, token: CancellationToken) -> _Outcome:
        backup = self._phase(attempt, UpdateState.BACKING_UP, FailureKind.FILE_OPERATION, self._files.backup)
        if not backup.ok:
            return self._roll_back(attempt, backup)

        persist = self._phase(attempt, UpdateState.PERSISTING, FailureKind.FILE_OPERATION, lambda: self._files.persist(rendered, raw))
        if not persist.ok:
            return self._roll_back(attempt, persist)

        drain = self._phase(attempt, UpdateState.DRAINING, FailureKind.DRAIN_FAILURE, lambda: self._drain.drain(token))
        if not drain.ok:
            return self._roll_back(attempt, drain)
        attempt.drain = drain.value

        load = self._phase(attempt, UpdateState.RELOADING, FailureKind.RELOAD_FAILURE, self._reload.load)
        if not load.ok:
            return self._roll_back(attempt, load)

        validate = self._phase(
            attempt,
            UpdateState.VALIDATING,
            FailureKind.RELOAD_FAILURE,
            lambda: self._reload.validate_and_start(token),
        )
        if not validate.ok:
            return self._roll_back(attempt, validate)

        return _Outcome(UpdateState.RUNNING)

    def _roll_back(self, attempt: _Attempt, failure: PhaseResult[Any]) -> _Outcome:
        attempt.log.error(
            "Flow configuration update failed. Reverting to previous flow configuration",
            failed_phase=failure.state.value,
            failure_kind=failure.failure_kind,
            error=failure.describe_error(),
            exc_info=failure.error,
        )

        reverted = self._phase(attempt, UpdateState.REVERTING_FILES, FailureKind.FILE_OPERATION, self._revert_files)
        if not reverted.ok:
            attempt.log.critical(
                "Unable to restore previous flow configuration files. Manual intervention required",
                error=reverted.describe_error(),
            )
            return _Outcome(UpdateState.DEGRADED_NO_RELOAD, failure=failure, rollback_failure=reverted)

        if not failure.state.touches_runtime:
            attempt.log.info("Previous flow configuration restored. Flow was not touched, no reload is necessary")
            return _Outcome(UpdateState.REVERTED, failure=failure)

        reloaded = self._phase(attempt, UpdateState.RELOADING_REVERTED, FailureKind.REVERT_RELOAD_FAILURE, self._reload_reverted)
        if not reloaded.ok:
            attempt.log.critical(
                "Unable to reload the reverted flow. On-disk and running configuration may disagree, process restart required",
                error=reloaded.describe_error(),
                exc_info=reloaded.error,
            )
            return _Outcome(UpdateState.DEGRADED_NO_RELOAD, failure=failure, rollback_failure=reloaded)

        attempt.log.warning("Previous flow configuration reverted and reloaded")
        return _Outcome(UpdateState.REVERTED, failure=failure)

    # ------------------------------------------------------------------
    # Phase actions
    # ------------------------------------------------------------------

    def _enrich(self, raw: bytes) -> bytes:
        try:
            rendered = self._enricher.enrich(raw)
        except Exception as e:
            raise RejectedCandidateError(f"Unable to enrich candidate flow configuration: {type(e).__name__}: {e}") from e
        if not isinstance(rendered, bytes):
            raise RejectedCandidateError(f"Enricher returned {type(rendered).__name__}, expected bytes")
        return rendered

    def _revert_files(self) -> None:
        if not self._files.revert():
            raise ConfigFileError("Unable to restore previous flow configuration", path=self._files.paths.active)

    def _reload_reverted(self) -> None:
        # Rollback is not cancellable
        try:
            self._reload.reload()
        except ReloadFailedError as e:
            raise RevertReloadError(str(e)) from e

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _phase(
        self,
        attempt: _Attempt,
        state: UpdateState,
        kind: FailureKind,
        action: Callable[[], T],
    ) -> PhaseResult[T]:
        """Run one phase, converting any exception into a failed PhaseResult."""
        self._state = state
        self._emit(PhaseStarted(attempt.attempt_id, state))
        started = time.perf_counter()
        with self._spans.phase_span(state) as span:
            try:
                value = action()
            except Exception as e:
                span.record_exception(e)
                result: PhaseResult[T] = PhaseResult.failure(state, kind, e)
                attempt.log.debug("Phase failed", phase=state.value, failure_kind=kind.value, error=result.describe_error())
                self._emit(PhaseFailed(attempt.attempt_id, state, kind, result.describe_error() or ""))
                return result
        duration = time.perf_counter() - started
        attempt.log.debug("Phase completed", phase=state.value, duration_seconds=round(duration, 3))
        self._emit(PhaseCompleted(attempt.attempt_id, state, duration))
        return PhaseResult.success(state, value)

    def _finish(self, attempt: _Attempt, outcome: _Outcome) -> UpdateReport:
        failure, rollback_failure = outcome.failure, outcome.rollback_failure
        if rollback_failure is not None:
            failure_kind = rollback_failure.failure_kind
        elif failure is not None:
            failure_kind = failure.failure_kind
        else:
            failure_kind = None

        report = UpdateReport(
            attempt_id=attempt.attempt_id,
            state=outcome.state,
            candidate_sha256=attempt.candidate_sha256,
            started_at=attempt.started_at,
            completed_at=datetime.now(UTC),
            failed_phase=failure.state if failure is not None else None,
            failure_kind=failure_kind,
            error=failure.describe_error() if failure is not None else None,
            rollback_error=rollback_failure.describe_error() if rollback_failure is not None else None,
            drain=attempt.drain,
        )

        if report.succeeded:
            attempt.log.info(
                "Flow configuration updated",
                duration_seconds=round(report.duration_seconds, 3),
                drain_forced=report.drain_forced,
            )
        else:
            attempt.log.info(
                "Flow configuration update finished without applying candidate",
                state=report.state.value,
                failure_kind=report.failure_kind,
                duration_seconds=round(report.duration_seconds, 3),
            )

        self._emit(
            UpdateCompleted(
                attempt_id=report.attempt_id,
                state=report.state,
                succeeded=report.succeeded,
                duration_seconds=report.duration_seconds,
                failure_kind=report.failure_kind,
            )
        )
        self._record(report)
        return report

    def _record(self, report: UpdateReport) -> None:
        if self._history is None:
            return
        try:
            self._history.record(report)
        except Exception as e:
            slog.error("Unable to record update attempt in history", attempt_id=report.attempt_id, error=str(e), error_type=type(e).__name__)

    def _emit(self, event: object) -> None:
        try:
            self._events.emit(event)
        except Exception as e:
            slog.error("Event handler failed", event_type=type(event).__name__, error=str(e), error_type=type(e).__name__)

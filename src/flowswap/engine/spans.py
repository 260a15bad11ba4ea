"""OpenTelemetry span factory for configuration updates.

Provides structured span creation for update attempts.
Falls back to no-op mode when no tracer is configured.

Span Hierarchy:
    update
    ├── phase:enriching
    ├── phase:backing_up
    ├── phase:persisting
    ├── phase:draining
    ├── phase:reloading
    ├── phase:validating
    └── phase:reverting_files / phase:reloading_reverted (rollback only)
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from flowswap.contracts.enums import UpdateState

if TYPE_CHECKING:
    from opentelemetry.trace import Span, Tracer


class NoOpSpan:
    """No-op span for when tracing is disabled."""

    def set_attribute(self, key: str, value: Any) -> None:
        """No-op."""
        pass

    def set_status(self, status: Any) -> None:
        """No-op."""
        pass

    def record_exception(self, exception: Exception) -> None:
        """No-op."""
        pass

    def is_recording(self) -> bool:
        """Always False for no-op."""
        return False


class SpanFactory:
    """Factory for creating OpenTelemetry spans.

    When no tracer is provided, all span methods return no-op contexts.

    Example:
        factory = SpanFactory(tracer=opentelemetry.trace.get_tracer("flowswap"))

        with factory.update_span("3f2a...") as span:
            with factory.phase_span(UpdateState.DRAINING) as phase:
                ...
    """

    _NOOP_SPAN = NoOpSpan()

    def __init__(self, tracer: "Tracer | None" = None) -> None:
        """Initialize with optional tracer.

        Args:
            tracer: OpenTelemetry tracer. If None, spans are no-ops.
        """
        self._tracer = tracer

    @property
    def enabled(self) -> bool:
        """Whether tracing is enabled."""
        return self._tracer is not None

    @contextmanager
    def update_span(self, attempt_id: str, *, candidate_sha256: str | None = None) -> Iterator["Span | NoOpSpan"]:
        """Create a span for a whole update attempt."""
        if self._tracer is None:
            yield self._NOOP_SPAN
            return

        with self._tracer.start_as_current_span("update") as span:
            span.set_attribute("update.attempt_id", attempt_id)
            if candidate_sha256 is not None:
                span.set_attribute("update.candidate_sha256", candidate_sha256)
            yield span

    @contextmanager
    def phase_span(self, phase: UpdateState) -> Iterator["Span | NoOpSpan"]:
        """Create a span for one phase of the update state machine."""
        if self._tracer is None:
            yield self._NOOP_SPAN
            return

        with self._tracer.start_as_current_span(f"phase:{phase.value}") as span:
            span.set_attribute("update.phase", phase.value)
            yield span

# src/flowswap/contracts/runtime.py
"""Protocols for the flow runtime collaborators.

The orchestrator never reaches for a process-wide runtime object. Everything
it needs from the live dataflow is injected through these protocols:

- ConfigurationEnricher: turns raw configuration bytes into a runnable one
- RuntimeHandle: the live dataflow (components, queues, lifecycle)
- ValidatableComponent: anything with a validation state
- RemoteEndpoint: a remote transmission endpoint with asynchronous stop

Processors, controller services and reporting tasks are all treated as
ValidatableComponent; the reload validator assembles them into one flat list.
"""

from collections.abc import Sequence
from concurrent.futures import Future
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from flowswap.contracts.enums import ValidationStatus


@dataclass(frozen=True, slots=True)
class Connection:
    """A queue between two components of the dataflow.

    A connection whose source and destination are the same component is a
    self-loop (feedback) and does not count as external input.
    """

    source_id: str
    destination_id: str

    @property
    def is_self_loop(self) -> bool:
        return self.source_id == self.destination_id


@runtime_checkable
class ValidatableComponent(Protocol):
    """A runtime component that carries a validation state."""

    @property
    def identifier(self) -> str:
        """Stable component identifier."""
        ...

    def perform_validation(self) -> ValidationStatus:
        """Run (or re-check) validation and return the current status."""
        ...

    def validation_errors(self) -> Sequence[str]:
        """Validation errors from the last validation, empty when valid."""
        ...


class RemoteEndpoint(Protocol):
    """A remote transmission endpoint (site-to-site style output)."""

    @property
    def identifier(self) -> str: ...

    def stop_transmitting(self) -> Future[None]:
        """Request transmission stop. Completes asynchronously."""
        ...


class ConfigurationEnricher(Protocol):
    """Turns a raw configuration payload into a runnable configuration.

    Must be free of side effects on the live system. Raises on invalid input.
    """

    def enrich(self, raw: bytes) -> bytes: ...


class RuntimeHandle(Protocol):
    """The live dataflow the orchestrator reconfigures."""

    def load_persisted_configuration(self, path: Path | None) -> None:
        """Load the runtime model from a configuration file.

        None means the runtime's own active configuration file.
        """
        ...

    def reinitialize(self, start_components: bool) -> None:
        """Run the post-load initialization a fresh boot would run."""
        ...

    def processors(self) -> Sequence[ValidatableComponent]:
        """All processors, transitively under the root group."""
        ...

    def controller_services(self) -> Sequence[ValidatableComponent]: ...

    def reporting_tasks(self) -> Sequence[ValidatableComponent]: ...

    def connections(self) -> Sequence[Connection]:
        """All connections, transitively under the root group."""
        ...

    def stop_component(self, component_id: str) -> None: ...

    def start_component(self, component_id: str) -> None: ...

    def stop_processing(self) -> None:
        """Stop every component of the dataflow. Idempotent."""
        ...

    def start_processing(self) -> None:
        """Start every component of the dataflow."""
        ...

    def is_data_queued(self) -> bool:
        """Whether any connection still holds unprocessed work."""
        ...

    def drop_all_queued(self, request_id: str, requestor: str) -> None:
        """Discard all queued work. Data-lossy."""
        ...

    def remote_endpoints(self) -> Sequence[RemoteEndpoint]: ...

# src/flowswap/engine/drain.py
"""GracefulDrainController: quiesce a live dataflow before reconfiguring it.

Algorithm:
1. Classify source components (no inbound connection other than self-loops)
2. Stop the sources, so no new work enters the dataflow
3. Poll "no work queued" within the drain budget while downstream
   components keep consuming
4. Budget exhausted: stop everything and drop all queued work (data-lossy
   escape valve, logged and emitted as DrainForced)
5. Stop all processing
6. Stop remote transmission on every endpoint, each wait bounded by its own
   timeout

drain() never raises. Shutdown has to finish so the reload can proceed;
collaborator failures are logged and absorbed.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Sequence
from concurrent.futures import Future

import networkx as nx
import structlog

from flowswap.contracts.events import DrainForced, TransmissionStopTimedOut
from flowswap.contracts.results import DrainReport
from flowswap.contracts.runtime import Connection, RemoteEndpoint, RuntimeHandle
from flowswap.core.config import DrainSettings
from flowswap.core.events import EventBusProtocol, NullEventBus
from flowswap.engine.retry import BoundedRetry, CancellationToken

slog = structlog.get_logger(__name__)

DRAIN_REQUESTOR = "flowswap-drain"


def find_source_components(component_ids: Sequence[str], connections: Sequence[Connection]) -> list[str]:
    """Return the components that originate work.

    A component is a source when it has no inbound connection, or when every
    inbound connection is a self-loop. Feedback onto itself is not external
    input.

    Args:
        component_ids: Candidate components, in the order to report them
        connections: All connections of the dataflow. Endpoints that are not
            in component_ids (ports, funnels) still count as inbound sources.

    Returns:
        Source component identifiers, in component_ids order.
    """
    graph = nx.MultiDiGraph()
    graph.add_nodes_from(component_ids)
    graph.add_edges_from((c.source_id, c.destination_id) for c in connections)
    return [node for node in component_ids if all(upstream == node for upstream, _ in graph.in_edges(node))]


class GracefulDrainController:
    """Bring a running dataflow to a stopped, ideally drained, state.

    Example:
        controller = GracefulDrainController(runtime, settings.drain)
        report = controller.drain()
        if report.forced:
            ...  # queued work was dropped
    """

    def __init__(
        self,
        runtime: RuntimeHandle,
        settings: DrainSettings,
        *,
        event_bus: EventBusProtocol | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self._runtime = runtime
        self._settings = settings
        self._events = event_bus if event_bus is not None else NullEventBus()
        self._retry = BoundedRetry.from_settings(settings, sleep=sleep)

    def drain(self, cancellation: CancellationToken | None = None) -> DrainReport:
        """Run the full drain. Never raises.

        Args:
            cancellation: Cancelling cuts the graceful wait short and falls
                through to the forced drain.
        """
        slog.info("Stopping flow gracefully")
        sources = self._stop_sources()
        graceful, polls = self._wait_for_queues_to_empty(cancellation)

        if graceful:
            slog.info("Flow has been drained gracefully", polls=polls)
        else:
            self._force_drain(polls)

        self._stop_processing()
        timed_out = self._stop_transmission()

        return DrainReport(
            graceful=graceful,
            polls=polls,
            sources_stopped=tuple(sources),
            endpoints_timed_out=tuple(timed_out),
        )

    def _stop_sources(self) -> list[str]:
        try:
            component_ids = [p.identifier for p in self._runtime.processors()]
            sources = find_source_components(component_ids, self._runtime.connections())
        except Exception as e:
            slog.warning("Unable to classify source components, skipping intake stop", error=str(e), error_type=type(e).__name__)
            return []

        stopped: list[str] = []
        for component_id in sources:
            try:
                self._runtime.stop_component(component_id)
            except Exception as e:
                slog.warning("Unable to stop source component", component_id=component_id, error=str(e), error_type=type(e).__name__)
                continue
            stopped.append(component_id)
        slog.debug("Stopped source components", components=stopped)
        return stopped

    def _wait_for_queues_to_empty(self, cancellation: CancellationToken | None) -> tuple[bool, int]:
        """Return (drained, polls)."""
        polls = 0

        def is_data_queued() -> bool:
            nonlocal polls
            polls += 1
            return self._runtime.is_data_queued()

        try:
            residual = self._retry.poll_until(is_data_queued, lambda queued: not queued, cancellation=cancellation)
        except Exception as e:
            slog.warning("Unable to determine whether data is queued, treating flow as not drained", error=str(e), error_type=type(e).__name__)
            return False, polls

        if residual is not None and residual.cancelled:
            slog.warning("Graceful drain cancelled", polls=residual.polls)
        return residual is None, polls

    def _force_drain(self, polls: int) -> None:
        request_id = uuid.uuid4().hex
        slog.warning(
            "Flow did not drain within graceful period. Force stopping flow and emptying queues",
            polls=polls,
            max_retries=self._settings.max_retries,
            pause_seconds=self._settings.pause_seconds,
            drop_request_id=request_id,
        )
        self._stop_processing()
        try:
            self._runtime.drop_all_queued(request_id, DRAIN_REQUESTOR)
        except Exception as e:
            slog.error("Unable to drop queued data", drop_request_id=request_id, error=str(e), error_type=type(e).__name__)
        self._emit(DrainForced(polls=polls, request_id=request_id))

    def _stop_processing(self) -> None:
        try:
            self._runtime.stop_processing()
        except Exception as e:
            slog.warning("Unable to stop flow processing", error=str(e), error_type=type(e).__name__)

    def _stop_transmission(self) -> list[str]:
        """Stop every remote endpoint. Returns the ones that did not stop in time."""
        try:
            endpoints: Sequence[RemoteEndpoint] = self._runtime.remote_endpoints()
        except Exception as e:
            slog.warning("Unable to enumerate remote endpoints", error=str(e), error_type=type(e).__name__)
            return []

        # Request every stop first so slow endpoints stop concurrently
        pending: list[tuple[str, Future[None]]] = []
        timed_out: list[str] = []
        for endpoint in endpoints:
            try:
                pending.append((endpoint.identifier, endpoint.stop_transmitting()))
            except Exception as e:
                slog.warning("Unable to request remote transmission stop", endpoint_id=endpoint.identifier, error=str(e))
                timed_out.append(endpoint.identifier)

        timeout = self._settings.transmission_stop_timeout_seconds
        for endpoint_id, future in pending:
            try:
                future.result(timeout=timeout)
            except TimeoutError:
                slog.warning(
                    "Unable to stop remote endpoint within defined interval",
                    endpoint_id=endpoint_id,
                    timeout_seconds=timeout,
                )
                timed_out.append(endpoint_id)
                self._emit(TransmissionStopTimedOut(endpoint_id=endpoint_id, timeout_seconds=timeout))
            except Exception as e:
                slog.warning("Remote endpoint failed to stop", endpoint_id=endpoint_id, error=str(e), error_type=type(e).__name__)
                timed_out.append(endpoint_id)
        return timed_out

    def _emit(self, event: object) -> None:
        try:
            self._events.emit(event)
        except Exception as e:
            slog.error("Event handler failed", event_type=type(event).__name__, error=str(e), error_type=type(e).__name__)

# src/flowswap/engine/__init__.py
"""Update engine: hot-swap a running dataflow's configuration.

This module provides the update state machine and its building blocks:
- UpdateOrchestrator: backup, persist, drain, reload, validate, roll back
- GracefulDrainController: stop intake, wait for queues, force if needed
- ReloadValidator: reload from disk and gate startup on validation
- BoundedRetry: poll-until-predicate with a fixed budget (tenacity)
- SpanFactory: OpenTelemetry integration

Example:
    from flowswap.core import load_settings
    from flowswap.engine import UpdateOrchestrator

    settings = load_settings(Path("settings.yaml"))
    orchestrator = UpdateOrchestrator(runtime, enricher, settings)

    if not orchestrator.update(candidate_bytes):
        ...  # previous configuration is still (or again) in place
"""

from flowswap.engine.drain import DRAIN_REQUESTOR, GracefulDrainController, find_source_components
from flowswap.engine.orchestrator import UpdateOrchestrator
from flowswap.engine.reload import ReloadValidator
from flowswap.engine.retry import BoundedRetry, CancellationToken, Residual
from flowswap.engine.spans import NoOpSpan, SpanFactory

__all__ = [
    "DRAIN_REQUESTOR",
    "BoundedRetry",
    "CancellationToken",
    "GracefulDrainController",
    "NoOpSpan",
    "ReloadValidator",
    "Residual",
    "SpanFactory",
    "UpdateOrchestrator",
    "find_source_components",
]

# src/flowswap/testing/__init__.py
"""Test infrastructure for flowswap.

Simulated runtime collaborators and settings factories, so tests exercise
the real orchestrator against real files without a dataflow engine.

Usage:
    from flowswap.testing import SimulatedRuntime, SimulatedEnricher, make_settings

    settings = make_settings(tmp_path / "flow.json.gz")
    runtime = SimulatedRuntime(settings.files.flow_configuration_file, queued=[True, False])
"""

from __future__ import annotations

import gzip
from pathlib import Path

from flowswap.core.config import DrainSettings, FileSettings, FlowswapSettings, ValidationSettings
from flowswap.testing.runtime import (
    SimulatedComponent,
    SimulatedEndpoint,
    SimulatedEnricher,
    SimulatedRuntime,
)


def make_settings(
    flow_configuration_file: Path,
    *,
    drain_retries: int = 3,
    validation_retries: int = 2,
    pause_seconds: float = 0.0,
    transmission_stop_timeout_seconds: float = 0.05,
) -> FlowswapSettings:
    """Settings with tiny budgets suitable for tests."""
    return FlowswapSettings(
        files=FileSettings(flow_configuration_file=flow_configuration_file),
        drain=DrainSettings(
            max_retries=drain_retries,
            pause_seconds=pause_seconds,
            transmission_stop_timeout_seconds=transmission_stop_timeout_seconds,
        ),
        validation=ValidationSettings(max_retries=validation_retries, pause_seconds=pause_seconds),
    )


def no_sleep(seconds: float) -> None:
    """Sleep replacement that returns immediately."""


def read_active_configuration(path: Path) -> bytes:
    """Content of an active configuration file, decompressed if gzipped."""
    data = path.read_bytes()
    return gzip.decompress(data) if path.suffix == ".gz" else data


__all__ = [
    "SimulatedComponent",
    "SimulatedEndpoint",
    "SimulatedEnricher",
    "SimulatedRuntime",
    "make_settings",
    "no_sleep",
    "read_active_configuration",
]

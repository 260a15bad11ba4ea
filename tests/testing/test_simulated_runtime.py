# tests/testing/test_simulated_runtime.py
"""Tests for the simulated runtime collaborators used throughout the suite."""

import gzip
from pathlib import Path

import pytest

from flowswap.contracts.enums import ValidationStatus
from flowswap.contracts.runtime import ValidatableComponent
from flowswap.testing import SimulatedComponent, SimulatedEndpoint, SimulatedEnricher, SimulatedRuntime


class TestSimulatedComponent:
    def test_last_status_repeats(self) -> None:
        component = SimulatedComponent("c", statuses=[ValidationStatus.VALIDATING, ValidationStatus.VALID])

        assert [component.perform_validation() for _ in range(4)] == [
            ValidationStatus.VALIDATING,
            ValidationStatus.VALID,
            ValidationStatus.VALID,
            ValidationStatus.VALID,
        ]
        assert component.validation_calls == 4

    def test_satisfies_protocol(self) -> None:
        assert isinstance(SimulatedComponent("c"), ValidatableComponent)

    def test_empty_script_rejected(self) -> None:
        with pytest.raises(ValueError):
            SimulatedComponent("c", statuses=[])


class TestSimulatedEndpoint:
    def test_stop_completes(self) -> None:
        endpoint = SimulatedEndpoint("rpg")

        assert endpoint.stop_transmitting().done() is True
        assert endpoint.stop_requested == 1

    def test_hanging_stop_never_completes(self) -> None:
        assert SimulatedEndpoint("rpg", hang=True).stop_transmitting().done() is False


class TestSimulatedEnricher:
    def test_rejects_listed_payloads(self) -> None:
        enricher = SimulatedEnricher(rejected={b"bad"}, prefix=b">")

        assert enricher.enrich(b"good") == b">good"
        with pytest.raises(ValueError):
            enricher.enrich(b"bad")
        assert enricher.calls == [b"good", b"bad"]


class TestSimulatedRuntime:
    def test_loads_gzipped_active_file(self, tmp_path: Path) -> None:
        path = tmp_path / "flow.json.gz"
        path.write_bytes(gzip.compress(b"config"))
        runtime = SimulatedRuntime(path)

        runtime.load_persisted_configuration(None)

        assert runtime.loaded_configuration == b"config"

    def test_queued_script_then_false(self, tmp_path: Path) -> None:
        runtime = SimulatedRuntime(tmp_path / "flow.json", queued=[True, True])

        assert [runtime.is_data_queued() for _ in range(3)] == [True, True, False]
        assert runtime.is_data_queued_calls == 3

    def test_queued_script_can_raise(self, tmp_path: Path) -> None:
        runtime = SimulatedRuntime(tmp_path / "flow.json", queued=[OSError("gone")])

        with pytest.raises(OSError, match="gone"):
            runtime.is_data_queued()

    def test_start_records_loaded_configuration(self, tmp_path: Path) -> None:
        path = tmp_path / "flow.json"
        path.write_bytes(b"v1")
        runtime = SimulatedRuntime(path)

        runtime.stop_processing()
        runtime.load_persisted_configuration(None)
        runtime.start_processing()

        assert runtime.processing is True
        assert runtime.started_configurations == [b"v1"]
        assert runtime.call_names() == ["stop_processing", "load_persisted_configuration", "start_processing"]

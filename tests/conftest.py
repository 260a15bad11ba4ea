# tests/conftest.py
"""Shared test fixtures.

Every orchestrator test runs against real files under tmp_path and a
SimulatedRuntime reading the same active file, so the file handling and the
runtime's view of "the active configuration" cannot drift apart.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/
"""

import gzip
import logging
import os
from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog
from hypothesis import Phase, Verbosity, settings

from flowswap.core.events import EventBus
from flowswap.core.history import UpdateHistory, UpdateHistoryDB

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


OLD_CONFIG = b'{"flow": "old"}'
OLD_RAW = b"old-raw"


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """Tests that call configure_logging must not leak into other tests."""
    root, package = logging.getLogger(), logging.getLogger("flowswap")
    handlers, level = root.handlers[:], root.level
    package_handlers, package_level, package_propagate = package.handlers[:], package.level, package.propagate
    yield
    structlog.reset_defaults()
    root.handlers = handlers
    root.setLevel(level)
    package.handlers = package_handlers
    package.setLevel(package_level)
    package.propagate = package_propagate


@pytest.fixture
def flow_file(tmp_path: Path) -> Path:
    """Active gzip-compressed configuration (OLD_CONFIG) with its raw counterpart (OLD_RAW)."""
    path = tmp_path / "conf" / "flow.json.gz"
    path.parent.mkdir(parents=True)
    path.write_bytes(gzip.compress(OLD_CONFIG))
    (path.parent / "flow.json.raw").write_bytes(OLD_RAW)
    return path


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def history() -> Iterator[UpdateHistory]:
    db = UpdateHistoryDB.in_memory()
    yield UpdateHistory(db)
    db.close()


@pytest.fixture
def old_config() -> bytes:
    """Decompressed content of the active file written by flow_file."""
    return OLD_CONFIG


@pytest.fixture
def old_raw() -> bytes:
    return OLD_RAW

# src/flowswap/core/__init__.py
"""Core infrastructure: Configuration, Files, Events, History, Logging."""

from flowswap.core.config import (
    DrainSettings,
    FileSettings,
    FlowswapSettings,
    HistorySettings,
    LoggingSettings,
    RetryBudgetSettings,
    ValidationSettings,
    load_settings,
)
from flowswap.core.events import (
    EventBus,
    EventBusProtocol,
    NullEventBus,
)
from flowswap.core.files import ConfigFilePaths, ConfigFileSet, write_atomically
from flowswap.core.history import UpdateHistory, UpdateHistoryDB
from flowswap.core.logging import (
    configure_logging,
    get_logger,
)

__all__ = [
    "ConfigFilePaths",
    "ConfigFileSet",
    "DrainSettings",
    "EventBus",
    "EventBusProtocol",
    "FileSettings",
    "FlowswapSettings",
    "HistorySettings",
    "LoggingSettings",
    "NullEventBus",
    "RetryBudgetSettings",
    "UpdateHistory",
    "UpdateHistoryDB",
    "ValidationSettings",
    "configure_logging",
    "get_logger",
    "load_settings",
    "write_atomically",
]

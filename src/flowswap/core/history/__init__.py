# src/flowswap/core/history/__init__.py
"""Update history: an audit trail of configuration update attempts."""

from flowswap.core.history.database import UpdateHistoryDB
from flowswap.core.history.recorder import UpdateHistory
from flowswap.core.history.schema import metadata, update_attempts_table

__all__ = [
    "UpdateHistory",
    "UpdateHistoryDB",
    "metadata",
    "update_attempts_table",
]

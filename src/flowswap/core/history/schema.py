"""SQLAlchemy table definitions for the update history.

Uses SQLAlchemy Core (not ORM) for explicit control over queries
and compatibility with multiple database backends.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    MetaData,
    String,
    Table,
    Text,
)

metadata = MetaData()

update_attempts_table = Table(
    "update_attempts",
    metadata,
    Column("attempt_id", String(64), primary_key=True),
    Column("started_at", DateTime(timezone=True), nullable=False),
    Column("completed_at", DateTime(timezone=True), nullable=False),
    Column("terminal_state", String(32), nullable=False),
    Column("candidate_sha256", String(64), nullable=False),
    Column("drain_forced", Boolean, nullable=False),
    # NULL for attempts that reached RUNNING
    Column("failed_phase", String(32)),
    Column("failure_kind", String(32)),
    Column("error", Text),
    # Only set when reloading the reverted configuration also failed
    Column("rollback_error", Text),
    Index("ix_update_attempts_started_at", "started_at"),
)

# src/flowswap/core/history/recorder.py
"""Records update attempts and reads them back."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import select

from flowswap.contracts.enums import FailureKind, UpdateState
from flowswap.contracts.results import UpdateAttemptRecord, UpdateReport
from flowswap.core.config import HistorySettings
from flowswap.core.history.database import UpdateHistoryDB
from flowswap.core.history.schema import update_attempts_table


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


class UpdateHistory:
    """Audit store for update attempts.

    One row per attempt, written once the attempt reaches a terminal state.
    This is where a DEGRADED_NO_RELOAD attempt stays visible after the
    boolean returned by update() has been consumed.

    Example:
        history = UpdateHistory(UpdateHistoryDB.in_memory())
        orchestrator = UpdateOrchestrator(runtime, enricher, settings, history=history)
        orchestrator.update(candidate)
        latest = history.recent(limit=1)[0]
    """

    def __init__(self, db: UpdateHistoryDB) -> None:
        self._db = db

    @classmethod
    def from_settings(cls, settings: HistorySettings) -> UpdateHistory | None:
        """Open the configured store, or None when history is disabled."""
        if not settings.enabled:
            return None
        return cls(UpdateHistoryDB(settings.url))

    @property
    def db(self) -> UpdateHistoryDB:
        return self._db

    def record(self, report: UpdateReport) -> None:
        with self._db.connection() as conn:
            conn.execute(
                update_attempts_table.insert().values(
                    attempt_id=report.attempt_id,
                    started_at=report.started_at,
                    completed_at=report.completed_at,
                    terminal_state=report.state.value,
                    candidate_sha256=report.candidate_sha256,
                    drain_forced=report.drain_forced,
                    failed_phase=report.failed_phase.value if report.failed_phase is not None else None,
                    failure_kind=report.failure_kind.value if report.failure_kind is not None else None,
                    error=report.error,
                    rollback_error=report.rollback_error,
                )
            )

    def recent(self, limit: int = 20) -> list[UpdateAttemptRecord]:
        """Most recent attempts first."""
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        query = select(update_attempts_table).order_by(update_attempts_table.c.started_at.desc()).limit(limit)
        with self._db.connection() as conn:
            rows = conn.execute(query).fetchall()
        return [self._to_record(row) for row in rows]

    def get(self, attempt_id: str) -> UpdateAttemptRecord | None:
        query = select(update_attempts_table).where(update_attempts_table.c.attempt_id == attempt_id)
        with self._db.connection() as conn:
            row = conn.execute(query).fetchone()
        return self._to_record(row) if row is not None else None

    @staticmethod
    def _to_record(row: object) -> UpdateAttemptRecord:
        mapping = row._mapping  # type: ignore[attr-defined]  # sqlalchemy Row
        return UpdateAttemptRecord(
            attempt_id=mapping["attempt_id"],
            started_at=_as_utc(mapping["started_at"]),
            completed_at=_as_utc(mapping["completed_at"]),
            terminal_state=UpdateState(mapping["terminal_state"]),
            candidate_sha256=mapping["candidate_sha256"],
            drain_forced=bool(mapping["drain_forced"]),
            failed_phase=UpdateState(mapping["failed_phase"]) if mapping["failed_phase"] is not None else None,
            failure_kind=FailureKind(mapping["failure_kind"]) if mapping["failure_kind"] is not None else None,
            error=mapping["error"],
            rollback_error=mapping["rollback_error"],
        )

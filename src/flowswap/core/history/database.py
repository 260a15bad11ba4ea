# src/flowswap/core/history/database.py
"""Database connection management for the update history.

Handles SQLite (default, file-backed next to the agent's state) and any
other SQLAlchemy backend.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Self

from sqlalchemy import Connection, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url

from flowswap.core.history.schema import metadata


class UpdateHistoryDB:
    """Update history database connection manager."""

    def __init__(self, connection_string: str) -> None:
        """Initialize database connection and create tables.

        Args:
            connection_string: SQLAlchemy connection string
                e.g., "sqlite:///./state/flowswap.db"
        """
        self.connection_string = connection_string
        self._engine: Engine | None = self._create_engine(connection_string)
        metadata.create_all(self.engine)

    @staticmethod
    def _create_engine(url: str) -> Engine:
        parsed = make_url(url)
        if parsed.drivername.startswith("sqlite") and parsed.database not in (None, "", ":memory:"):
            # SQLite will not create missing parent directories
            Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(url, echo=False)
        if parsed.drivername.startswith("sqlite"):
            UpdateHistoryDB._configure_sqlite(engine)
        return engine

    @staticmethod
    def _configure_sqlite(engine: Engine) -> None:
        """Set WAL journaling and a busy timeout on every new connection."""

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection: object, connection_record: object) -> None:
            cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]  # DBAPI connection typed as object
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

    @property
    def engine(self) -> Engine:
        """Get the SQLAlchemy engine."""
        if self._engine is None:
            raise RuntimeError("Database not initialized")
        return self._engine

    def close(self) -> None:
        """Close database connection."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.close()

    @classmethod
    def in_memory(cls) -> Self:
        """Create an in-memory SQLite database for testing.

        A single shared connection keeps the in-memory database alive across
        checkouts.
        """
        from sqlalchemy.pool import StaticPool

        engine = create_engine(
            "sqlite:///:memory:",
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        metadata.create_all(engine)
        instance = cls.__new__(cls)
        instance.connection_string = "sqlite:///:memory:"
        instance._engine = engine
        return instance

    @contextmanager
    def connection(self) -> Iterator[Connection]:
        """Get a connection inside a transaction.

        Commits on successful block exit, rolls back on exception.
        """
        with self.engine.begin() as conn:
            yield conn

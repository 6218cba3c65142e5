"""SQLite database access shared by durable stores.

Responsibilities:
- Build a SQLAlchemy engine for a file path or an in-memory database.
- Enforce foreign keys so history rows cascade with their translation.
- Serialize sessions across worker threads.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .schema import Base


IN_MEMORY_URL = "sqlite://"


def sqlite_url(path: str | Path | None) -> str:
    """Return a SQLite URL for a file path, or the in-memory URL for `None`/`:memory:`."""

    if path is None or str(path) == ":memory:":
        return IN_MEMORY_URL
    return f"sqlite:///{Path(path).expanduser()}"


def _enable_foreign_keys(dbapi_connection: Any, _connection_record: Any) -> None:
    """Turn on SQLite foreign key enforcement for each new connection."""

    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Engine, session factory, and lock for one SQLite database."""

    def __init__(self, url: str = IN_MEMORY_URL, *, echo: bool = False) -> None:
        """Create the engine; in-memory databases share a single connection."""

        engine_kwargs: dict[str, Any] = {
            "echo": echo,
            "connect_args": {"check_same_thread": False},
        }
        if url == IN_MEMORY_URL:
            engine_kwargs["poolclass"] = StaticPool
        self.url = url
        self.engine: Engine = create_engine(url, **engine_kwargs)
        event.listen(self.engine, "connect", _enable_foreign_keys)
        self._session_factory = sessionmaker(self.engine, expire_on_commit=False)
        self._lock = threading.RLock()

    @classmethod
    def from_path(cls, path: str | Path | None) -> Database:
        """Open a database at `path`, creating parent directories and tables."""

        if path is not None and str(path) != ":memory:":
            Path(path).expanduser().parent.mkdir(parents=True, exist_ok=True)
        database = cls(sqlite_url(path))
        database.create_schema()
        return database

    def create_schema(self) -> None:
        """Create all tables that do not exist yet."""

        Base.metadata.create_all(self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session inside one committed-or-rolled-back transaction."""

        with self._lock:
            with self._session_factory() as session:
                with session.begin():
                    yield session

    def dispose(self) -> None:
        """Release pooled connections."""

        self.engine.dispose()

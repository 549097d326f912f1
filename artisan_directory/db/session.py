"""Database handle opened at startup and closed at shutdown."""

from __future__ import annotations

import logging
from collections.abc import Generator, Iterator
from contextlib import contextmanager
from typing import Any

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _is_memory_sqlite(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or url.rstrip("/").endswith(":"))


class Store:
    """Owns the engine and session factory for one database."""

    def __init__(self, database_url: str, *, echo: bool = False) -> None:
        self.database_url = database_url
        self.echo = echo
        self._engine: Engine | None = None
        self._sessionmaker: sessionmaker[Session] | None = None

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Store is not open")
        return self._engine

    def open(self) -> Store:
        """Create the engine; calling it on an open store is a no-op."""

        if self._engine is not None:
            return self

        options: dict[str, Any] = {"echo": self.echo}
        is_sqlite = self.database_url.startswith("sqlite")
        if is_sqlite:
            options["connect_args"] = {"check_same_thread": False}
            if _is_memory_sqlite(self.database_url):
                options["poolclass"] = StaticPool
        else:
            options["pool_pre_ping"] = True

        engine = create_engine(self.database_url, **options)
        if is_sqlite:
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)

        self._engine = engine
        self._sessionmaker = sessionmaker(bind=engine, autoflush=False)
        logger.info("store opened", extra={"dialect": engine.dialect.name})
        return self

    def close(self) -> None:
        """Dispose of pooled connections; safe to call more than once."""

        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        logger.info("store closed")

    def create_all(self) -> None:
        """Create every table directly (tests and local development)."""

        from artisan_directory.db.base import Base

        Base.metadata.create_all(bind=self.engine)

    def new_session(self) -> Session:
        if self._sessionmaker is None:
            raise RuntimeError("Store is not open")
        return self._sessionmaker()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Provide a transactional scope around a series of operations."""

        db = self.new_session()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


def get_db(request: Request) -> Generator[Session, None, None]:
    """Yield a session bound to the application's store."""

    store: Store = request.app.state.store
    with store.session() as db:
        yield db

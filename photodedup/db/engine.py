from __future__ import annotations

import logging

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from photodedup.core.config import Settings
from photodedup.db.models import Base

logger = logging.getLogger(__name__)

_SQLITE_PRAGMAS = (
    "PRAGMA journal_mode=WAL;",
    "PRAGMA foreign_keys=ON;",
    # deletion batches and scans may write while an analysis reads
    "PRAGMA busy_timeout=5000;",
)


def _apply_sqlite_pragmas(dbapi_connection, _connection_record) -> None:  # type: ignore[no-untyped-def]
    cursor = dbapi_connection.cursor()
    for pragma in _SQLITE_PRAGMAS:
        cursor.execute(pragma)
    cursor.close()


class LibraryDatabase:
    """Store behind :class:`~photodedup.library.service.LibraryService`.

    Owns one engine and its session factory. Whoever builds the library opens
    the database once and closes it on shutdown; nothing is cached at module
    level, so separate state roots never share an engine.
    """

    def __init__(self, database_url: str):
        self.url = database_url
        sqlite = database_url.startswith("sqlite")
        self.engine: Engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False} if sqlite else {},
        )
        if sqlite:
            event.listen(self.engine, "connect", _apply_sqlite_pragmas)
        self.session_factory: sessionmaker[Session] = sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
        )

    @classmethod
    def open(cls, settings: Settings) -> "LibraryDatabase":
        database = cls(settings.effective_database_url)
        database.create_schema()
        return database

    def create_schema(self) -> None:
        Base.metadata.create_all(bind=self.engine)
        logger.debug("Library schema ready at %s", self.engine.url.render_as_string(hide_password=True))

    def close(self) -> None:
        self.engine.dispose()

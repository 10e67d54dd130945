from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List

from sqlalchemy import Engine, create_engine, event, insert, select
from sqlalchemy.engine import Connection
from sqlalchemy.orm import sessionmaker

from secalert.lib.config import DatabaseConfig

from .tables import alerts, schema_migrations


logger = logging.getLogger("secalert.db")

MigrationFn = Callable[[Connection], None]

# Applied in version order; a version is recorded once it has run.
_MIGRATIONS: Dict[str, MigrationFn] = {}


def migration(version: str) -> Callable[[MigrationFn], MigrationFn]:
    def register(upgrade: MigrationFn) -> MigrationFn:
        if version in _MIGRATIONS:
            raise ValueError(f"Migration '{version}' already registered")
        _MIGRATIONS[version] = upgrade
        return upgrade

    return register


def pending_migrations(applied: set[str]) -> List[str]:
    return [version for version in sorted(_MIGRATIONS) if version not in applied]


def _enable_wal(dbapi_connection, _connection_record) -> None:  # type: ignore[override]
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()


def create_sqlite_engine(config: DatabaseConfig, *, echo: bool = False) -> Engine:
    if (config.engine or "sqlite").lower() != "sqlite":
        raise ValueError(f"Unsupported database engine '{config.engine}'")

    directory = Path(config.path)
    directory.mkdir(parents=True, exist_ok=True)
    engine = create_engine(
        f"sqlite:///{directory / config.name}",
        echo=echo,
        # The lifecycle lock serialises writers; dispatch may run in worker threads.
        connect_args={"check_same_thread": False},
    )
    event.listen(engine, "connect", _enable_wal)
    return engine


def migrate(engine: Engine) -> List[str]:
    """Bring the schema up to date and return the versions applied now."""
    with engine.begin() as connection:
        schema_migrations.create(connection, checkfirst=True)
        applied = set(connection.execute(select(schema_migrations.c.version)).scalars())
        versions = pending_migrations(applied)
        for version in versions:
            _MIGRATIONS[version](connection)
            connection.execute(
                insert(schema_migrations).values(version=version, applied_at=datetime.now(timezone.utc))
            )
    if versions:
        logger.info("Applied database migrations: %s", ", ".join(versions))
    return versions


def initialize_database(config: DatabaseConfig, *, echo: bool = False) -> Engine:
    engine = create_sqlite_engine(config, echo=echo)
    migrate(engine)
    return engine


def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@migration("0001_alerts")
def _create_alerts(connection: Connection) -> None:
    alerts.create(connection, checkfirst=True)

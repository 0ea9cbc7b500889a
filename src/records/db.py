"""Database settings, engine construction and schema bootstrap."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Connection, Engine, create_engine, event, insert, select
from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from sqla_rebac.session import transaction_scope

from records.schema import GLOBAL_ORG, ROOT_USER, metadata, organizations, users

__all__ = [
    "DatabaseSettings",
    "create_async_records_engine",
    "create_records_engine",
    "init_db",
]

logger = logging.getLogger("records.db")

_REQUIRED = ("DB_USER", "DB_PASS", "DB_NAME", "DB_HOST", "DB_PORT", "DB_SSL")


@dataclass(frozen=True, slots=True)
class DatabaseSettings:
    """PostgreSQL connection settings.

    Attributes:
        user: Database role.
        password: Password of the role.
        name: Database name.
        host: Server host.
        port: Server port.
        sslmode: libpq ``sslmode`` (``disable``, ``require``, ...).
    """

    user: str
    password: str
    name: str
    host: str
    port: int
    sslmode: str

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> DatabaseSettings:
        """Read ``DB_USER``, ``DB_PASS``, ``DB_NAME``, ``DB_HOST``, ``DB_PORT`` and ``DB_SSL``.

        Raises:
            ValueError: If a variable is unset or empty, or the port is
                not an integer.
        """
        env = os.environ if environ is None else environ
        missing = [key for key in _REQUIRED if not env.get(key)]
        if missing:
            raise ValueError(f"Environment variable(s) not set: {', '.join(missing)}")
        try:
            port = int(env["DB_PORT"])
        except ValueError:
            raise ValueError(f"DB_PORT must be an integer, got {env['DB_PORT']!r}") from None
        return cls(
            user=env["DB_USER"],
            password=env["DB_PASS"],
            name=env["DB_NAME"],
            host=env["DB_HOST"],
            port=port,
            sslmode=env["DB_SSL"],
        )

    def url(self, drivername: str = "postgresql+psycopg") -> URL:
        return URL.create(
            drivername,
            username=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.name,
            query={"sslmode": self.sslmode},
        )


def _configure_sqlite_connection(dbapi_conn: Any, _: Any) -> None:
    # The driver issues BEGIN itself; _begin_sqlite_transaction takes that over.
    dbapi_conn.isolation_level = None
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


def _begin_sqlite_transaction(conn: Connection) -> None:
    conn.exec_driver_sql("BEGIN")


def create_records_engine(url: str | URL | DatabaseSettings, **kwargs: Any) -> Engine:
    """Create the application engine.

    SQLite connections get foreign-key enforcement, which the schema's
    ``ON DELETE CASCADE`` clauses rely on, and emit ``BEGIN`` when a
    transaction starts so that a check and the write it guards, and any
    SAVEPOINT, run inside one real transaction.

    Example::

        engine = create_records_engine(DatabaseSettings.from_env())
    """
    if isinstance(url, DatabaseSettings):
        url = url.url()
    engine = create_engine(url, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _configure_sqlite_connection)
        event.listen(engine, "begin", _begin_sqlite_transaction)
    return engine


def create_async_records_engine(url: str | URL | DatabaseSettings, **kwargs: Any) -> AsyncEngine:
    """Async counterpart of :func:`create_records_engine`.

    Example::

        engine = create_async_records_engine("sqlite+aiosqlite:///records.db")
    """
    if isinstance(url, DatabaseSettings):
        url = url.url()
    engine = create_async_engine(url, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _configure_sqlite_connection)
        event.listen(engine.sync_engine, "begin", _begin_sqlite_transaction)
    return engine


def init_db(engine: Engine) -> None:
    """Create the schema and seed the global organization and root user.

    Safe to run against an initialized database.
    """
    metadata.create_all(engine)
    with transaction_scope(engine, operation="init_db") as conn:
        if conn.execute(
            select(organizations.c.name).where(organizations.c.name == GLOBAL_ORG)
        ).first() is None:
            conn.execute(insert(organizations).values(name=GLOBAL_ORG))
            logger.info("Created global organization %r", GLOBAL_ORG)
        if conn.execute(
            select(users.c.username).where(users.c.username == ROOT_USER)
        ).first() is None:
            conn.execute(insert(users).values(username=ROOT_USER, org=GLOBAL_ORG, role="admin"))
            logger.info("Created bootstrap user %r", ROOT_USER)

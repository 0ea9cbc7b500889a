"""AsyncConnectionScope: the async counterpart of ConnectionScope."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from types import TracebackType
from typing import Concatenate, ParamSpec, TypeVar

from sqlalchemy import Connection
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from sqla_rebac._audit import log_data_access_failure
from sqla_rebac.exceptions import DataAccessError

__all__ = ["AsyncConnectionScope"]

P = ParamSpec("P")
T = TypeVar("T")


class AsyncConnectionScope:
    """Acquire one ``AsyncConnection`` and guarantee its release.

    Rollback and release are shielded from cancellation: a request that
    is cancelled or times out mid-transaction still rolls back before the
    connection goes back to the pool.

    Example::

        async with AsyncConnectionScope(async_engine, operation="list users") as scope:
            rows = await scope.run_sync(load_rows)
    """

    def __init__(self, bind: AsyncEngine | AsyncConnection, *, operation: str = "query") -> None:
        self._bind = bind
        self._operation = operation
        self._owned = isinstance(bind, AsyncEngine)
        self._connection: AsyncConnection | None = None

    async def __aenter__(self) -> AsyncConnectionScope:
        if isinstance(self._bind, AsyncEngine):
            try:
                self._connection = await self._bind.connect()
            except SQLAlchemyError as exc:
                raise self._data_error(exc) from exc
        else:
            self._connection = self._bind
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        try:
            await asyncio.shield(self._release())
        except SQLAlchemyError as cleanup_exc:
            if exc is None:
                raise self._data_error(cleanup_exc) from cleanup_exc
            log_data_access_failure(f"{self._operation} (cleanup)", cleanup_exc)
        if isinstance(exc, SQLAlchemyError):
            raise self._data_error(exc) from exc

    @property
    def connection(self) -> AsyncConnection:
        if self._connection is None:
            raise RuntimeError("AsyncConnectionScope is not active; use it with 'async with'")
        return self._connection

    async def run_sync(
        self,
        fn: Callable[Concatenate[Connection, P], T],
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> T:
        """Run a sync function against the underlying sync ``Connection``."""
        return await self.connection.run_sync(fn, *args, **kwargs)

    async def _release(self) -> None:
        conn = self._connection
        self._connection = None
        if conn is None:
            return
        try:
            if conn.in_transaction():
                await conn.rollback()
        finally:
            if self._owned:
                await conn.close()

    def _data_error(self, exc: SQLAlchemyError) -> DataAccessError:
        log_data_access_failure(self._operation, exc)
        return DataAccessError(f"Database error during {self._operation}")

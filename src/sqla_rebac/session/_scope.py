"""ConnectionScope: scoped connection acquisition with explicit transactions."""

from __future__ import annotations

import contextlib
from collections.abc import Generator, Mapping
from types import TracebackType
from typing import Any

from sqlalchemy import Connection, CursorResult, Engine, Executable
from sqlalchemy.engine import NestedTransaction, RootTransaction
from sqlalchemy.exc import SQLAlchemyError

from sqla_rebac._audit import log_data_access_failure
from sqla_rebac.exceptions import DataAccessError

__all__ = ["ConnectionScope", "transaction_scope"]


class ConnectionScope:
    """Acquire one connection and guarantee its release on every exit path.

    Given an ``Engine``, the scope checks a connection out of the pool on
    entry and returns it on exit.  Given a caller-owned ``Connection``, the
    scope borrows it and leaves it open; :meth:`begin` then opens a
    SAVEPOINT if the caller already has a transaction running.

    On exit, a transaction that was neither committed nor rolled back is
    rolled back before the connection is released.  ``SQLAlchemyError``
    escaping the block is logged and re-raised as ``DataAccessError``.

    Example::

        with ConnectionScope(engine, operation="create user") as scope:
            scope.begin()
            scope.execute(insert(users).values(username="alice", org="acme", role="member"))
            scope.commit()
    """

    def __init__(self, bind: Engine | Connection, *, operation: str = "query") -> None:
        self._bind = bind
        self._operation = operation
        self._owned = isinstance(bind, Engine)
        self._connection: Connection | None = None
        self._transaction: RootTransaction | NestedTransaction | None = None

    def __enter__(self) -> ConnectionScope:
        if isinstance(self._bind, Engine):
            try:
                self._connection = self._bind.connect()
            except SQLAlchemyError as exc:
                raise self._data_error(exc) from exc
        else:
            self._connection = self._bind
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        try:
            self._release()
        except SQLAlchemyError as cleanup_exc:
            if exc is None:
                raise self._data_error(cleanup_exc) from cleanup_exc
            log_data_access_failure(f"{self._operation} (cleanup)", cleanup_exc)
        if isinstance(exc, SQLAlchemyError):
            raise self._data_error(exc) from exc

    @property
    def connection(self) -> Connection:
        if self._connection is None:
            raise RuntimeError("ConnectionScope is not active; use it as a context manager")
        return self._connection

    @property
    def in_transaction(self) -> bool:
        return self._transaction is not None and self._transaction.is_active

    def begin(self) -> None:
        """Start a transaction, or a SAVEPOINT inside the caller's transaction."""
        if self.in_transaction:
            raise RuntimeError("ConnectionScope already has an open transaction")
        conn = self.connection
        try:
            if conn.in_transaction():
                self._transaction = conn.begin_nested()
            else:
                self._transaction = conn.begin()
        except SQLAlchemyError as exc:
            raise self._data_error(exc) from exc

    def commit(self) -> None:
        transaction = self._require_transaction()
        try:
            transaction.commit()
        except SQLAlchemyError as exc:
            raise self._data_error(exc) from exc
        finally:
            self._transaction = None

    def rollback(self) -> None:
        transaction = self._require_transaction()
        try:
            transaction.rollback()
        except SQLAlchemyError as exc:
            raise self._data_error(exc) from exc
        finally:
            self._transaction = None

    def execute(
        self, statement: Executable, parameters: Mapping[str, Any] | None = None
    ) -> CursorResult[Any]:
        """Execute *statement*, raising ``DataAccessError`` on failure.

        The open transaction, if any, is left for the scope to roll back.
        """
        try:
            return self.connection.execute(statement, parameters)
        except SQLAlchemyError as exc:
            raise self._data_error(exc) from exc

    def _require_transaction(self) -> RootTransaction | NestedTransaction:
        if self._transaction is None:
            raise RuntimeError("ConnectionScope has no open transaction")
        return self._transaction

    def _release(self) -> None:
        try:
            if self._transaction is not None and self._transaction.is_active:
                self._transaction.rollback()
        finally:
            self._transaction = None
            if self._owned and self._connection is not None:
                self._connection.close()
            self._connection = None

    def _data_error(self, exc: SQLAlchemyError) -> DataAccessError:
        log_data_access_failure(self._operation, exc)
        return DataAccessError(f"Database error during {self._operation}")


@contextlib.contextmanager
def transaction_scope(
    bind: Engine | Connection, *, operation: str = "transaction"
) -> Generator[Connection, None, None]:
    """Run the block in one transaction, committing only if it completes.

    Example::

        with transaction_scope(engine, operation="seed") as conn:
            conn.execute(insert(organizations).values(name="_"))
    """
    with ConnectionScope(bind, operation=operation) as scope:
        scope.begin()
        yield scope.connection
        scope.commit()

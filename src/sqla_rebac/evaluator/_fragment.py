"""PredicateFragment: an opaque SQL boolean bound to one column reference."""

from __future__ import annotations

from typing import Any

from sqlalchemy import Boolean, Column, ColumnElement, literal_column

from sqla_rebac.exceptions import FragmentReuseError

__all__ = ["PredicateFragment"]


def _column_ref(column: Column[Any]) -> str:
    table = getattr(column, "table", None)
    if table is None:
        return column.name
    return f"{table.name}.{column.name}"


class PredicateFragment:
    """A boolean SQL expression supplied by the evaluator for one statement.

    The SQL text is trusted: the evaluator has already inlined and escaped
    every value it contains.  It is never parsed or modified here, and it
    is embedded with ``literal_column`` so that text resembling a bind
    parameter inside a quoted value stays literal.

    A fragment is single-use.  It may reference correlated subqueries that
    are only meaningful inside the statement it was compiled for, so
    :meth:`embed` refuses a second call.

    Attributes:
        column_ref: The ``table.column`` reference the SQL was compiled against.
        sql: The boolean SQL expression.
        action: The action the fragment authorizes (for logging).
        resource_type: The resource type the fragment ranges over.

    Example::

        fragment = evaluator.compile_list_condition(bob, "read", "User", "users.username")
        stmt = select(users).where(fragment.embed(users.c.username))
    """

    __slots__ = ("action", "column_ref", "resource_type", "sql", "_embedded")

    def __init__(
        self, *, column_ref: str, sql: str, action: str = "", resource_type: str = ""
    ) -> None:
        self.column_ref = column_ref
        self.sql = sql
        self.action = action
        self.resource_type = resource_type
        self._embedded = False

    @property
    def embedded(self) -> bool:
        """True once the fragment has been placed into a statement."""
        return self._embedded

    def embed(self, column: Column[Any] | None = None) -> ColumnElement[bool]:
        """Return the fragment as a boolean SQL element, consuming it.

        Args:
            column: The column the statement ranges over.  When given, it
                must match :attr:`column_ref`.

        Raises:
            FragmentReuseError: If already embedded, or compiled for a
                different column.
        """
        if self._embedded:
            raise FragmentReuseError(
                f"Fragment for {self.action!r} on {self.resource_type} was already embedded; "
                "compile a new one for each statement"
            )
        if column is not None and _column_ref(column) != self.column_ref:
            raise FragmentReuseError(
                f"Fragment was compiled for {self.column_ref!r}, "
                f"not {_column_ref(column)!r}"
            )
        self._embedded = True
        return literal_column(f"({self.sql})", Boolean())

    def __repr__(self) -> str:
        state = "embedded" if self._embedded else "fresh"
        return (
            f"PredicateFragment({self.resource_type}.{self.action} "
            f"on {self.column_ref}, {state})"
        )

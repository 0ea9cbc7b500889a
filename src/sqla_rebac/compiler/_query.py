"""Embed predicate fragments into SELECT, UPDATE and DELETE statements."""

from __future__ import annotations

from typing import Any, TypeVar

from sqlalchemy import Column, ColumnElement, Delete, Select, Update

from sqla_rebac.evaluator._fragment import PredicateFragment

__all__ = ["authorize_statement", "permission_column"]

S = TypeVar("S", Select[Any], Update, Delete)


def authorize_statement(stmt: S, fragment: PredicateFragment, column: Column[Any]) -> S:
    """Restrict *stmt* to rows satisfying *fragment*.

    The fragment is checked against *column* and consumed; it cannot be
    embedded into another statement afterwards.

    Example::

        read = evaluator.compile_list_condition(bob, "read", "User", "users.username")
        stmt = authorize_statement(select(users), read, users.c.username)
    """
    return stmt.where(fragment.embed(column))


def permission_column(
    fragment: PredicateFragment, column: Column[Any], label: str
) -> ColumnElement[bool]:
    """Project *fragment* as a labelled boolean column evaluated per row.

    Example::

        edit = evaluator.compile_list_condition(bob, "edit_role", "User", "users.username")
        stmt = select(users, permission_column(edit, users.c.username, "edit_role"))
    """
    return fragment.embed(column).label(label)

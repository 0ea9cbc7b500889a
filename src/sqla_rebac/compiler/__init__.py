"""Compiler: transforms policy documents into SQL conditions."""

from sqla_rebac.compiler._expression import (
    Derivation,
    build_condition,
    condition_clauses,
    derive,
    render_condition,
)
from sqla_rebac.compiler._query import authorize_statement, permission_column
from sqla_rebac.compiler._relationship import traverse_relation

__all__ = [
    "Derivation",
    "authorize_statement",
    "build_condition",
    "condition_clauses",
    "derive",
    "permission_column",
    "render_condition",
    "traverse_relation",
]

"""Relation traversal: follow has_relation facts with IN subqueries."""

from __future__ import annotations

from typing import Any

from sqlalchemy import ColumnElement, false, select
from sqlalchemy.sql.elements import False_

from sqla_rebac._types import Subject
from sqla_rebac.exceptions import PolicyCompilationError
from sqla_rebac.policy._document import PolicyDocument
from sqla_rebac.policy._facts import FactConfig

__all__ = ["traverse_relation"]


def traverse_relation(
    policy: PolicyDocument,
    facts: FactConfig,
    subject: Subject,
    resource_type: str,
    relation: str,
    roles: frozenset[str],
    target: ColumnElement[Any],
    path: tuple[tuple[str, frozenset[str]], ...],
) -> ColumnElement[bool]:
    """Condition for "*subject* holds one of *roles* on the resource related to *target*".

    The related resource's own condition is compiled recursively against
    the relation fact's second column, so role implications and further
    relations on the related type apply.

    Example::

        # "read" if "member" on "parent", for User rows:
        traverse_relation(policy, facts, bob, "User", "parent",
                          frozenset({"member"}), users.c.username, ())
        # users.username IN (
        #   SELECT anon_1.username FROM (SELECT username, org FROM users) AS anon_1
        #   WHERE anon_1.org IN (SELECT ... has_role(bob, member|admin, org) ...))
    """
    from sqla_rebac.compiler._expression import build_condition

    block = policy.block(resource_type)
    related = block.relations.get(relation)
    if related is None:
        raise PolicyCompilationError(
            f"Relation {relation!r} is not declared on resource {resource_type!r}"
        )

    rel = facts.relation_subquery(resource_type, relation, related)
    from_col, to_col = tuple(rel.c)
    inner = build_condition(policy, facts, subject, related, roles, to_col, path)
    if isinstance(inner, False_):
        return false()
    return target.in_(select(from_col).where(inner))

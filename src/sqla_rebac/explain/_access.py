"""explain_permission() and explain_access(): show how a grant is derived."""

from __future__ import annotations

from typing import Any

from sqlalchemy import ColumnElement, Connection, literal, literal_column, select

from sqla_rebac._types import Resource, Subject
from sqla_rebac.compiler._expression import (
    Derivation,
    condition_clauses,
    derive,
    render_condition,
)
from sqla_rebac.evaluator._local import LocalPolicyEvaluator
from sqla_rebac.explain._models import AccessExplanation, GrantPath, PermissionExplanation
from sqla_rebac.session._scope import ConnectionScope

__all__ = ["explain_access", "explain_permission"]


def _derivation_and_clauses(
    evaluator: LocalPolicyEvaluator,
    subject: Subject,
    action: str,
    resource_type: str,
    target: ColumnElement[Any],
) -> tuple[Derivation, list[tuple[str, ColumnElement[bool]]]]:
    if not evaluator.policy.declares(resource_type, action):
        return Derivation(resource_type=resource_type), []
    derivation = derive(evaluator.policy, resource_type, [action])
    clauses = condition_clauses(
        evaluator.policy, evaluator.facts, subject, resource_type, [action], target
    )
    return derivation, clauses


def explain_permission(
    evaluator: LocalPolicyEvaluator,
    subject: Subject,
    action: str,
    resource_type: str,
    *,
    column_ref: str = "resource.id",
) -> PermissionExplanation:
    """Explain how *subject* could hold *action* on rows of *resource_type*.

    Args:
        evaluator: The local evaluator whose policy and facts to explain.
        subject: The subject the condition is compiled for.
        action: The permission to explain.
        resource_type: The resource type.
        column_ref: Column reference the SQL is rendered against.

    Raises:
        PolicyCompilationError: If *action* is not declared for the type.

    Example::

        explanation = explain_permission(evaluator, bob, "edit_role", "User",
                                         column_ref="users.username")
        print(explanation)
    """
    target = literal_column(column_ref)
    combined = evaluator.condition(subject, action, resource_type, target)
    derivation, clauses = _derivation_and_clauses(evaluator, subject, action, resource_type, target)
    paths = [
        GrantPath(description=label, sql=render_condition(clause, evaluator.dialect))
        for label, clause in clauses
    ]
    return PermissionExplanation(
        subject_repr=str(subject),
        action=action,
        resource_type=resource_type,
        local_roles=sorted(derivation.local_roles),
        related_roles={k: sorted(v) for k, v in sorted(derivation.related.items())},
        global_roles=sorted(derivation.global_roles),
        attributes=sorted(derivation.attributes),
        rules=[rule.describe() for rule in derivation.rules],
        paths=paths,
        condition_sql=render_condition(combined, evaluator.dialect),
        deny_by_default=not paths,
    )


def explain_access(
    evaluator: LocalPolicyEvaluator,
    subject: Subject,
    action: str,
    resource: Resource,
    *,
    connection: Connection | None = None,
) -> AccessExplanation:
    """Explain why *subject* can or cannot perform *action* on *resource*.

    Each grant path is evaluated on its own, so the explanation shows
    which of them hold.  Evaluation runs on *connection* when given, on a
    connection from the evaluator's engine otherwise.

    Example::

        print(explain_access(evaluator, alice, "create_user", Resource("Organization", "acme")))
    """
    facts = evaluator.facts
    target = literal(resource.id, facts.id_type(resource.type))
    # Raises for undeclared actions unless configured to deny.
    evaluator.condition(subject, action, resource.type, target)
    _, clauses = _derivation_and_clauses(evaluator, subject, action, resource.type, target)

    def evaluate(conn: Connection) -> list[GrantPath]:
        paths: list[GrantPath] = []
        for label, clause in clauses:
            matched = conn.execute(select(literal_column("1")).where(clause)).first() is not None
            paths.append(
                GrantPath(
                    description=label,
                    sql=render_condition(clause, evaluator.dialect),
                    matched=matched,
                )
            )
        return paths

    if connection is not None:
        paths = evaluate(connection)
    else:
        engine = evaluator.engine
        if engine is None:
            raise TypeError("explain_access() needs a connection when the evaluator has no engine")
        with ConnectionScope(engine, operation="explain access") as scope:
            paths = evaluate(scope.connection)

    return AccessExplanation(
        subject_repr=str(subject),
        action=action,
        resource_type=resource.type,
        resource_id=resource.id,
        allowed=any(p.matched for p in paths),
        deny_by_default=not paths,
        paths=paths,
    )

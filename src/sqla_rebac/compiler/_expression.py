"""Policy compilation: derive how a grant is obtained and build its condition."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from sqlalchemy import ColumnElement, false, literal, literal_column, or_, select
from sqlalchemy.engine import Dialect
from sqlalchemy.sql.elements import False_

from sqla_rebac._types import GLOBAL, Subject
from sqla_rebac.exceptions import PolicyCompilationError
from sqla_rebac.policy._base import Rule
from sqla_rebac.policy._document import PolicyDocument
from sqla_rebac.policy._facts import FactConfig

__all__ = [
    "Derivation",
    "build_condition",
    "condition_clauses",
    "derive",
    "render_condition",
]


@dataclass(frozen=True, slots=True)
class Derivation:
    """Every way an actor can obtain a set of grants on one resource type.

    Attributes:
        resource_type: The resource type the grants are on.
        local_roles: Roles on the resource itself that confer the grants.
        related: Relation name to roles on the related resource.
        global_roles: Global roles that confer the grants.
        attributes: Resource attributes that confer the grants.
        rules: The rules that contributed, in discovery order.
    """

    resource_type: str
    local_roles: frozenset[str] = frozenset()
    related: Mapping[str, frozenset[str]] = field(default_factory=lambda: MappingProxyType({}))
    global_roles: frozenset[str] = frozenset()
    attributes: frozenset[str] = frozenset()
    rules: tuple[Rule, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.local_roles or self.related or self.global_roles or self.attributes)


def derive(policy: PolicyDocument, resource_type: str, grants: Iterable[str]) -> Derivation:
    """Expand *grants* through the same-resource role implications.

    Same-resource rules (``"member" if "admin"``) are followed to a fixed
    point; rules that leave the resource (relations, global roles,
    attributes) are collected for the caller to compile.

    Example::

        d = derive(policy, "Organization", ["create_user"])
        d.local_roles   # frozenset({"admin"})
        d.global_roles  # frozenset({"admin"})
    """
    block = policy.block(resource_type)
    pending = list(grants)
    seen: set[str] = set()
    local: set[str] = set()
    related: dict[str, set[str]] = {}
    global_roles: set[str] = set()
    attributes: set[str] = set()
    rules: list[Rule] = []

    while pending:
        name = pending.pop()
        if name in seen:
            continue
        seen.add(name)
        if name in block.roles:
            local.add(name)
        for rule in block.rules_granting(name):
            rules.append(rule)
            if rule.attribute is not None:
                attributes.add(rule.attribute)
            elif rule.global_role is not None:
                global_roles.add(rule.global_role)
            elif rule.on is not None:
                related.setdefault(rule.on, set()).add(rule.role)  # type: ignore[arg-type]
            else:
                pending.append(rule.role)  # type: ignore[arg-type]

    return Derivation(
        resource_type=resource_type,
        local_roles=frozenset(local),
        related=MappingProxyType({k: frozenset(v) for k, v in related.items()}),
        global_roles=frozenset(global_roles),
        attributes=frozenset(attributes),
        rules=tuple(rules),
    )


def _subject_literal(
    policy: PolicyDocument, facts: FactConfig, subject: Subject
) -> ColumnElement[Any]:
    if subject.type != policy.actor_type:
        raise PolicyCompilationError(
            f"Policy declares actors of type {policy.actor_type!r}, got {subject.type!r}"
        )
    return literal(subject.id, facts.id_type(policy.actor_type))


def _global_role_clause(
    policy: PolicyDocument, facts: FactConfig, subject: Subject, roles: frozenset[str]
) -> ColumnElement[bool]:
    g = facts.global_role_subquery(policy.actor_type)
    actor_col, role_col = tuple(g.c)
    return (
        select(literal_column("1"))
        .select_from(g)
        .where(actor_col == _subject_literal(policy, facts, subject), role_col.in_(sorted(roles)))
        .exists()
    )


def condition_clauses(
    policy: PolicyDocument,
    facts: FactConfig,
    subject: Subject,
    resource_type: str,
    grants: Iterable[str],
    target: ColumnElement[Any],
    _path: tuple[tuple[str, frozenset[str]], ...] = (),
) -> list[tuple[str, ColumnElement[bool]]]:
    """Every way of obtaining *grants* on *target*, one labelled clause each.

    The clauses are OR-ed by :func:`build_condition`; explain reports them
    individually.
    """
    key = (resource_type, frozenset(grants))
    if key in _path:
        # A relation cycle cannot grant anything the outer level does not.
        return []
    derivation = derive(policy, resource_type, key[1])
    clauses: list[tuple[str, ColumnElement[bool]]] = []

    if derivation.local_roles:
        roles = ", ".join(sorted(derivation.local_roles))
        if resource_type == GLOBAL:
            clauses.append(
                (
                    f"global role {roles}",
                    _global_role_clause(policy, facts, subject, derivation.local_roles),
                )
            )
        else:
            f = facts.role_subquery(policy.actor_type, resource_type)
            actor_col, role_col, resource_col = tuple(f.c)
            clauses.append(
                (
                    f"role {roles} on {resource_type}",
                    target.in_(
                        select(resource_col).where(
                            actor_col == _subject_literal(policy, facts, subject),
                            role_col.in_(sorted(derivation.local_roles)),
                        )
                    ),
                )
            )

    if derivation.global_roles:
        clauses.append(
            (
                f"global role {', '.join(sorted(derivation.global_roles))}",
                _global_role_clause(policy, facts, subject, derivation.global_roles),
            )
        )

    if derivation.related:
        from sqla_rebac.compiler._relationship import traverse_relation

        for relation in sorted(derivation.related):
            related_roles = derivation.related[relation]
            clause = traverse_relation(
                policy,
                facts,
                subject,
                resource_type,
                relation,
                related_roles,
                target,
                _path + (key,),
            )
            if not isinstance(clause, False_):
                clauses.append((f"role {', '.join(sorted(related_roles))} on {relation}", clause))

    for attribute in sorted(derivation.attributes):
        a = facts.attribute_subquery(attribute, resource_type)
        (id_col,) = tuple(a.c)
        clauses.append((f"is_{attribute}", target.in_(select(id_col))))

    return clauses


def build_condition(
    policy: PolicyDocument,
    facts: FactConfig,
    subject: Subject,
    resource_type: str,
    grants: Iterable[str],
    target: ColumnElement[Any],
    _path: tuple[tuple[str, frozenset[str]], ...] = (),
) -> ColumnElement[bool]:
    """Build the boolean condition "*subject* holds one of *grants* on *target*".

    *target* is the expression holding the resource id: a column reference
    for list conditions, a bound literal for point checks.

    Returns ``false()`` when the policy offers no way to obtain the grants.
    """
    clauses = condition_clauses(policy, facts, subject, resource_type, grants, target, _path)
    if not clauses:
        return false()
    return or_(*(clause for _, clause in clauses))


def render_condition(expr: ColumnElement[bool], dialect: Dialect) -> str:
    """Render *expr* as SQL text for *dialect* with all values inlined.

    Inlined values go through the dialect's literal processors, which
    quote and escape them; the result contains no bind parameters.
    """
    return str(expr.compile(dialect=dialect, compile_kwargs={"literal_binds": True}))

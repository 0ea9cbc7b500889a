"""Batch guarded mutation: one predicate, one statement, all or nothing.

The batch is authorized by the same list fragment a read would use: the
statement only touches rows the subject holds *action* on.  Success is
decided by comparing the number of affected rows with the number of
requested targets.  Anything short of equality, whether from a target the
subject never had rights on or from a role revoked between compilation
and execution, rolls the whole transaction back.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy import (
    Connection,
    ColumnElement,
    Delete,
    Engine,
    Update,
    case,
    cast,
    column,
    delete,
    literal,
    update,
    values,
)
from sqlalchemy.engine import Dialect

from sqla_rebac._audit import log_batch_outcome
from sqla_rebac._types import Subject, Target
from sqla_rebac.config._config import AuthzConfig, get_global_config
from sqla_rebac.evaluator._protocol import PolicyEvaluator
from sqla_rebac.exceptions import AuthorizationError, InvalidBatchError
from sqla_rebac.policy._registry import ResourceMapping, ResourceRegistry, get_default_registry
from sqla_rebac.session._scope import ConnectionScope

__all__ = ["guarded_batch_delete", "guarded_batch_update"]

logger = logging.getLogger("sqla_rebac")


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


def _check_targets(targets: Iterable[Target], config: AuthzConfig) -> tuple[Target, ...]:
    batch = tuple(targets)
    if not batch:
        raise InvalidBatchError("Batch mutation requires at least one target")
    if config.max_batch_size is not None and len(batch) > config.max_batch_size:
        raise InvalidBatchError(
            f"Batch of {len(batch)} targets exceeds max_batch_size={config.max_batch_size}"
        )
    seen: set[Any] = set()
    for target in batch:
        if target.identity in seen:
            raise InvalidBatchError(f"Duplicate target identity {target.identity!r} in batch")
        seen.add(target.identity)
    return batch


def _value_keys(
    mapping: ResourceMapping, batch: tuple[Target, ...], apply: Mapping[str, Any]
) -> tuple[str, ...]:
    keys = tuple(sorted(batch[0].values))
    for target in batch[1:]:
        if tuple(sorted(target.values)) != keys:
            raise InvalidBatchError("Every target in a batch must set the same columns")
    columns = set(mapping.table.c.keys())
    for name in (*keys, *apply):
        if name not in columns:
            raise InvalidBatchError(f"{mapping.table.name} has no column {name!r}")
        if name == mapping.identity.name:
            raise InvalidBatchError("A batch update cannot change the identity column")
    overlap = set(keys) & set(apply)
    if overlap:
        raise InvalidBatchError(f"Columns set both per target and for all: {sorted(overlap)!r}")
    if not keys and not apply:
        raise InvalidBatchError("Batch update sets no columns")
    return keys


# ---------------------------------------------------------------------------
# Statement construction
# ---------------------------------------------------------------------------


def _per_target_values(
    mapping: ResourceMapping,
    batch: tuple[Target, ...],
    keys: tuple[str, ...],
    dialect: Dialect,
) -> tuple[dict[str, ColumnElement[Any]], ColumnElement[bool] | None]:
    """SET expressions for per-target values, plus a join condition if any.

    PostgreSQL gets ``UPDATE ... FROM (VALUES ...)`` joined on the identity
    column, with each value cast to its column's type.  Other dialects get
    one ``CASE identity WHEN ... END`` per column.
    """
    table = mapping.table
    identity = mapping.identity
    if not keys:
        return {}, None

    if dialect.name == "postgresql":
        supplied = values(
            column(identity.name, identity.type),
            *(column(k, table.c[k].type) for k in keys),
            name="batch_values",
        ).data([(t.identity, *(t.values[k] for k in keys)) for t in batch])
        assignments = {k: cast(supplied.c[k], table.c[k].type) for k in keys}
        return assignments, identity == supplied.c[identity.name]

    assignments = {
        k: case(
            {t.identity: literal(t.values[k], table.c[k].type) for t in batch},
            value=identity,
            else_=table.c[k],
        )
        for k in keys
    }
    return assignments, None


def _restrict(
    stmt: Update | Delete,
    mapping: ResourceMapping,
    subject: Subject,
    action: str,
    target_type: str,
    batch: tuple[Target, ...],
    *,
    evaluator: PolicyEvaluator,
    exclude_self: bool,
) -> Update | Delete:
    identity = mapping.identity
    fragment = evaluator.compile_list_condition(subject, action, target_type, mapping.column_ref)
    stmt = stmt.where(identity.in_([t.identity for t in batch]))
    if exclude_self and target_type == subject.type:
        stmt = stmt.where(identity != subject.id)
    return stmt.where(fragment.embed(identity))


@dataclass(frozen=True, slots=True)
class _BatchPlan:
    subject: Subject
    action: str
    target_type: str
    statement: Update | Delete
    requested: int
    config: AuthzConfig


def _plan_update(
    bind: Engine | Connection | Dialect,
    subject: Subject,
    action: str,
    target_type: str,
    targets: Iterable[Target],
    *,
    evaluator: PolicyEvaluator,
    resources: ResourceRegistry | None,
    apply: Mapping[str, Any] | None,
    exclude_self: bool,
    config: AuthzConfig | None,
) -> _BatchPlan:
    cfg = config if config is not None else get_global_config()
    mapping = (resources if resources is not None else get_default_registry()).lookup(target_type)
    batch = _check_targets(targets, cfg)
    constant = dict(apply or {})
    keys = _value_keys(mapping, batch, constant)
    dialect = bind if isinstance(bind, Dialect) else bind.dialect

    assignments, join = _per_target_values(mapping, batch, keys, dialect)
    stmt = update(mapping.table).values({**assignments, **constant})
    if join is not None:
        stmt = stmt.where(join)
    stmt = _restrict(
        stmt,
        mapping,
        subject,
        action,
        target_type,
        batch,
        evaluator=evaluator,
        exclude_self=exclude_self,
    )
    return _BatchPlan(subject, action, target_type, stmt, len(batch), cfg)


def _plan_delete(
    subject: Subject,
    action: str,
    target_type: str,
    targets: Iterable[Target],
    *,
    evaluator: PolicyEvaluator,
    resources: ResourceRegistry | None,
    exclude_self: bool,
    config: AuthzConfig | None,
) -> _BatchPlan:
    cfg = config if config is not None else get_global_config()
    mapping = (resources if resources is not None else get_default_registry()).lookup(target_type)
    batch = _check_targets(targets, cfg)
    stmt = _restrict(
        delete(mapping.table),
        mapping,
        subject,
        action,
        target_type,
        batch,
        evaluator=evaluator,
        exclude_self=exclude_self,
    )
    return _BatchPlan(subject, action, target_type, stmt, len(batch), cfg)


def _execute_batch(bind: Engine | Connection, plan: _BatchPlan) -> int:
    with ConnectionScope(bind, operation=f"batch {plan.action} {plan.target_type}") as scope:
        scope.begin()
        applied = scope.execute(plan.statement).rowcount
        if applied != plan.requested:
            scope.rollback()
            log_batch_outcome(
                subject=plan.subject,
                action=plan.action,
                resource_type=plan.target_type,
                requested=plan.requested,
                applied=applied,
            )
            raise AuthorizationError(
                subject=plan.subject,
                action=plan.action,
                resource_type=plan.target_type,
            )
        scope.commit()
    if plan.config.log_policy_decisions:
        log_batch_outcome(
            subject=plan.subject,
            action=plan.action,
            resource_type=plan.target_type,
            requested=plan.requested,
            applied=applied,
        )
    return applied


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def guarded_batch_update(
    bind: Engine | Connection,
    subject: Subject,
    action: str,
    target_type: str,
    targets: Iterable[Target],
    *,
    evaluator: PolicyEvaluator,
    resources: ResourceRegistry | None = None,
    apply: Mapping[str, Any] | None = None,
    exclude_self: bool = False,
    config: AuthzConfig | None = None,
) -> int:
    """Update every target the subject may *action*, or none of them.

    Each target supplies its own new values; *apply* sets columns to the
    same value on every target.  The list fragment is compiled before a
    connection is acquired, and the update is one statement.

    Args:
        bind: Engine to check a connection out of, or a caller's connection.
        subject: The requester.
        action: The permission required on every target.
        target_type: Registered resource type of the targets.
        targets: Rows to update, with unique identities.
        evaluator: Supplies the list fragment.
        resources: Resource registry; the default registry otherwise.
        apply: Column values applied to every target.
        exclude_self: Never touch the subject's own row.  A batch naming
            the subject then fails the count comparison.
        config: Per-call configuration.

    Returns:
        The number of rows updated, equal to the number of targets.

    Raises:
        InvalidBatchError: Empty, duplicate, oversized or malformed batch.
        AuthorizationError: Fewer rows matched than were requested; nothing
            was written.
        DataAccessError: The statement failed; nothing was written.

    Example::

        guarded_batch_update(
            engine, bob, "edit_role", "User",
            [Target("alice", {"role": "admin"}), Target("carol", {"role": "member"})],
            evaluator=evaluator, exclude_self=True,
        )
    """
    plan = _plan_update(
        bind,
        subject,
        action,
        target_type,
        targets,
        evaluator=evaluator,
        resources=resources,
        apply=apply,
        exclude_self=exclude_self,
        config=config,
    )
    return _execute_batch(bind, plan)


def guarded_batch_delete(
    bind: Engine | Connection,
    subject: Subject,
    action: str,
    target_type: str,
    targets: Iterable[Target],
    *,
    evaluator: PolicyEvaluator,
    resources: ResourceRegistry | None = None,
    exclude_self: bool = False,
    config: AuthzConfig | None = None,
) -> int:
    """Delete every target the subject may *action*, or none of them.

    Same contract as :func:`guarded_batch_update`; target values are ignored.

    Example::

        guarded_batch_delete(engine, bob, "delete", "User", [Target("alice")],
                             evaluator=evaluator, exclude_self=True)
    """
    plan = _plan_delete(
        subject,
        action,
        target_type,
        targets,
        evaluator=evaluator,
        resources=resources,
        exclude_self=exclude_self,
        config=config,
    )
    return _execute_batch(bind, plan)

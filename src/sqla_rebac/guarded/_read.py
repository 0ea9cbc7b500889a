"""Authorized reads: filter rows by "read" and annotate them with permissions."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from sqlalchemy import Connection, ColumnElement, Engine, Select, select

from sqla_rebac._types import Subject
from sqla_rebac.compiler._query import authorize_statement, permission_column
from sqla_rebac.config._config import AuthzConfig, get_global_config
from sqla_rebac.evaluator._protocol import PolicyEvaluator
from sqla_rebac.exceptions import IntegrityError
from sqla_rebac.policy._registry import ResourceMapping, ResourceRegistry, get_default_registry
from sqla_rebac.session._scope import ConnectionScope

__all__ = ["AuthorizedListing", "PermissionVector", "list_with_permissions"]

logger = logging.getLogger("sqla_rebac")

READ = "read"


@dataclass(frozen=True, slots=True)
class PermissionVector:
    """One readable row plus the subject's extra permissions on it.

    Attributes:
        identity: The row's identity column value.
        fields: Column name to value for every column of the table.
        permissions: Extra permission name to whether the subject holds it.

    Example::

        row["username"]          # "alice"
        row.allows("edit_role")  # False
    """

    identity: Any
    fields: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    permissions: Mapping[str, bool] = field(default_factory=lambda: MappingProxyType({}))

    def __getitem__(self, name: str) -> Any:
        return self.fields[name]

    def allows(self, permission: str) -> bool:
        return self.permissions.get(permission, False)


@dataclass(frozen=True, slots=True)
class AuthorizedListing:
    """Rows the subject may read, with the subject's own row split out.

    ``this_subject`` is only set when the listing was requested with
    ``extract_self=True``; in that case ``rows`` never contains it.
    """

    rows: tuple[PermissionVector, ...] = ()
    this_subject: PermissionVector | None = None

    def __iter__(self) -> Iterator[PermissionVector]:
        return iter(self.rows)

    def __len__(self) -> int:
        return len(self.rows)

    def identities(self) -> list[Any]:
        return [row.identity for row in self.rows]


# ---------------------------------------------------------------------------
# Planning (no I/O) and execution
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class _ListingPlan:
    subject: Subject
    mapping: ResourceMapping
    statement: Select[Any]
    labels: Mapping[str, str]
    extract_self: bool


def _plan_listing(
    subject: Subject,
    resource_type: str,
    extra_permissions: Sequence[str],
    *,
    evaluator: PolicyEvaluator,
    resources: ResourceRegistry | None,
    extract_self: bool,
    order_by: Sequence[ColumnElement[Any]] | None,
) -> _ListingPlan:
    mapping = (resources if resources is not None else get_default_registry()).lookup(
        resource_type
    )
    extras = tuple(extra_permissions)
    if len(set(extras)) != len(extras):
        raise ValueError(f"Duplicate extra permissions requested: {extras!r}")
    if extract_self and subject.type != resource_type:
        raise ValueError(
            f"Cannot extract {subject.type} subject from a listing of {resource_type}"
        )

    # Every fragment is compiled before a connection is held.
    read = evaluator.compile_list_condition(subject, READ, resource_type, mapping.column_ref)
    labels = {permission: f"_perm_{i}" for i, permission in enumerate(extras)}
    projected = [
        permission_column(
            evaluator.compile_list_condition(
                subject, permission, resource_type, mapping.column_ref
            ),
            mapping.identity,
            labels[permission],
        )
        for permission in extras
    ]

    stmt = authorize_statement(select(mapping.table, *projected), read, mapping.identity)
    if order_by:
        stmt = stmt.order_by(*order_by)
    else:
        stmt = stmt.order_by(mapping.identity)
    return _ListingPlan(
        subject=subject,
        mapping=mapping,
        statement=stmt,
        labels=MappingProxyType(labels),
        extract_self=extract_self,
    )


def _execute_listing(bind: Engine | Connection, plan: _ListingPlan) -> AuthorizedListing:
    table = plan.mapping.table
    with ConnectionScope(bind, operation=f"list {plan.mapping.resource_type}") as scope:
        rows = scope.execute(plan.statement).mappings().all()

    vectors = [
        PermissionVector(
            identity=row[plan.mapping.identity.name],
            fields=MappingProxyType({c.name: row[c.name] for c in table.c}),
            permissions=MappingProxyType(
                {permission: bool(row[label]) for permission, label in plan.labels.items()}
            ),
        )
        for row in rows
    ]

    if not plan.extract_self:
        return AuthorizedListing(rows=tuple(vectors))

    own = [v for v in vectors if v.identity == plan.subject.id]
    if len(own) != 1:
        raise IntegrityError(
            f"{plan.subject} does not appear exactly once in its own "
            f"{plan.mapping.resource_type} listing"
        )
    return AuthorizedListing(
        rows=tuple(v for v in vectors if v.identity != plan.subject.id),
        this_subject=own[0],
    )


def list_with_permissions(
    bind: Engine | Connection,
    subject: Subject,
    resource_type: str,
    extra_permissions: Sequence[str] = (),
    *,
    evaluator: PolicyEvaluator,
    resources: ResourceRegistry | None = None,
    extract_self: bool = False,
    order_by: Sequence[ColumnElement[Any]] | None = None,
    config: AuthzConfig | None = None,
) -> AuthorizedListing:
    """List the rows of *resource_type* that *subject* may read.

    One ``SELECT`` is issued.  The ``read`` fragment restricts its rows and
    every extra permission is projected as a boolean column computed per
    row, so the listing and its permission vectors are one snapshot.

    Args:
        bind: Engine to check a connection out of, or a caller's connection.
        subject: The requester.
        resource_type: Registered resource type to list.
        extra_permissions: Permissions to evaluate for every listed row.
        evaluator: Supplies the predicate fragments.
        resources: Resource registry; the default registry otherwise.
        extract_self: Split the subject's own row out as ``this_subject``.
        order_by: Ordering; the identity column by default.
        config: Per-call configuration.

    Raises:
        PolicyCompilationError: If the evaluator cannot compile a permission.
        IntegrityError: If ``extract_self`` is set and the subject cannot
            read its own row.
        DataAccessError: If the query fails.

    Example::

        listing = list_with_permissions(
            engine, bob, "User", ["edit_role", "delete"],
            evaluator=evaluator, extract_self=True,
        )
        for row in listing:
            print(row["username"], row.allows("edit_role"))
    """
    cfg = config if config is not None else get_global_config()
    plan = _plan_listing(
        subject,
        resource_type,
        extra_permissions,
        evaluator=evaluator,
        resources=resources,
        extract_self=extract_self,
        order_by=order_by,
    )
    listing = _execute_listing(bind, plan)
    if cfg.log_policy_decisions:
        logger.info(
            "Listed %d %s row(s) readable by %s", len(listing.rows), resource_type, subject
        )
    return listing

"""Async guarded operations: the sync algorithms run on an AsyncConnection.

Planning (fragment compilation and statement construction) happens before
the connection is acquired, exactly as in the sync path.  Execution runs
the sync executor through ``AsyncConnection.run_sync`` inside an
``AsyncConnectionScope``, which rolls back and releases the connection
even when the awaiting task is cancelled.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any, TypeVar

from sqlalchemy import Connection, ColumnElement
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from sqla_rebac._types import Resource, Subject, Target
from sqla_rebac.config._config import AuthzConfig, get_global_config
from sqla_rebac.evaluator._protocol import PolicyEvaluator
from sqla_rebac.guarded._batch import _execute_batch, _plan_delete, _plan_update
from sqla_rebac.guarded._mutate import guarded_mutate
from sqla_rebac.guarded._read import AuthorizedListing, _execute_listing, _plan_listing
from sqla_rebac.policy._registry import ResourceRegistry
from sqla_rebac.session._async_scope import AsyncConnectionScope

__all__ = [
    "guarded_batch_delete_async",
    "guarded_batch_update_async",
    "guarded_mutate_async",
    "list_with_permissions_async",
]

logger = logging.getLogger("sqla_rebac")

T = TypeVar("T")


async def list_with_permissions_async(
    bind: AsyncEngine | AsyncConnection,
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
    """Async variant of :func:`~sqla_rebac.guarded.list_with_permissions`.

    Example::

        listing = await list_with_permissions_async(
            async_engine, bob, "User", ["edit_role"], evaluator=evaluator
        )
    """
    plan = _plan_listing(
        subject,
        resource_type,
        extra_permissions,
        evaluator=evaluator,
        resources=resources,
        extract_self=extract_self,
        order_by=order_by,
    )
    async with AsyncConnectionScope(bind, operation=f"list {resource_type}") as scope:
        listing = await scope.run_sync(_execute_listing, plan)
    cfg = config if config is not None else get_global_config()
    if cfg.log_policy_decisions:
        logger.info(
            "Listed %d %s row(s) readable by %s", len(listing.rows), resource_type, subject
        )
    return listing


async def guarded_mutate_async(
    bind: AsyncEngine | AsyncConnection,
    subject: Subject,
    action: str,
    resource: Resource,
    mutation: Callable[[Connection], T],
    *,
    evaluator: PolicyEvaluator,
    config: AuthzConfig | None = None,
) -> T:
    """Async variant of :func:`~sqla_rebac.guarded.guarded_mutate`.

    *mutation* is a sync callable; it receives the sync facade of the
    async connection.

    The point check runs inside ``run_sync`` on the event loop thread, so it
    must not block. That holds for :class:`LocalPolicyEvaluator`, whose check is
    a statement on the same connection. An evaluator that makes a blocking
    network call stalls the event loop for the length of that call.
    """
    async with AsyncConnectionScope(bind, operation=f"{action} {resource.type}") as scope:
        return await scope.run_sync(
            guarded_mutate,
            subject,
            action,
            resource,
            mutation,
            evaluator=evaluator,
            config=config,
        )


async def guarded_batch_update_async(
    bind: AsyncEngine | AsyncConnection,
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
    """Async variant of :func:`~sqla_rebac.guarded.guarded_batch_update`."""
    plan = _plan_update(
        bind.dialect,
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
    async with AsyncConnectionScope(bind, operation=f"batch {action} {target_type}") as scope:
        return await scope.run_sync(_execute_batch, plan)


async def guarded_batch_delete_async(
    bind: AsyncEngine | AsyncConnection,
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
    """Async variant of :func:`~sqla_rebac.guarded.guarded_batch_delete`."""
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
    async with AsyncConnectionScope(bind, operation=f"batch {action} {target_type}") as scope:
        return await scope.run_sync(_execute_batch, plan)

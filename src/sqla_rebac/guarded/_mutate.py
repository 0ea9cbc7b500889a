"""Single-entity guarded mutation: check and mutate in one transaction."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy import Connection, Engine

from sqla_rebac._types import Resource, Subject
from sqla_rebac.config._config import AuthzConfig, get_global_config
from sqla_rebac.evaluator._protocol import PolicyEvaluator
from sqla_rebac.exceptions import AuthorizationError
from sqla_rebac.session._scope import ConnectionScope

__all__ = ["guarded_mutate"]

logger = logging.getLogger("sqla_rebac")

T = TypeVar("T")


def guarded_mutate(
    bind: Engine | Connection,
    subject: Subject,
    action: str,
    resource: Resource,
    mutation: Callable[[Connection], T],
    *,
    evaluator: PolicyEvaluator,
    config: AuthzConfig | None = None,
) -> T:
    """Authorize *action* on *resource*, then run *mutation*, atomically.

    The check runs on the connection that will perform the mutation, inside
    its transaction, so a denial and a write can never straddle two
    snapshots.  On denial the transaction is rolled back and *mutation* is
    never called.

    Args:
        bind: Engine to check a connection out of, or a caller's connection.
        subject: The requester.
        action: The action to authorize.
        resource: The resource the action targets.
        mutation: Callable receiving the connection; its return value is
            returned after commit.
        evaluator: Answers the point check.
        config: Per-call configuration.

    Raises:
        AuthorizationError: If the check is denied.
        EvaluatorUnavailable: If the evaluator cannot be reached.
        DataAccessError: If any statement fails; the transaction is rolled back.

    Example::

        def insert_user(conn: Connection) -> None:
            conn.execute(insert(users).values(username="carol", org="acme", role="member"))

        guarded_mutate(engine, root, "create_user", Resource("Organization", "acme"),
                       insert_user, evaluator=evaluator)
    """
    cfg = config if config is not None else get_global_config()
    with ConnectionScope(bind, operation=f"{action} {resource.type}") as scope:
        scope.begin()
        if not evaluator.check(subject, action, resource, connection=scope.connection):
            scope.rollback()
            raise AuthorizationError(
                subject=subject,
                action=action,
                resource_type=resource.type,
                resource_id=resource.id,
            )
        result = mutation(scope.connection)
        scope.commit()
    if cfg.log_policy_decisions:
        logger.info("Guarded %s on %s by %s committed", action, resource, subject)
    return result

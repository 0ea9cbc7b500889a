"""Point checks: can() and authorize() for single resources."""

from __future__ import annotations

from sqlalchemy import Connection

from sqla_rebac._types import Resource, Subject
from sqla_rebac.evaluator._protocol import PolicyEvaluator
from sqla_rebac.exceptions import AuthorizationError

__all__ = ["can", "authorize"]


def can(
    evaluator: PolicyEvaluator,
    subject: Subject,
    action: str,
    resource: Resource,
    *,
    connection: Connection | None = None,
) -> bool:
    """Check if *subject* can perform *action* on *resource*.

    Args:
        evaluator: The policy evaluator to ask.
        subject: The actor performing the action.
        action: The action string (e.g., ``"read"``, ``"delete"``).
        resource: The resource the action targets.
        connection: Connection to evaluate on, so that the check sees
            the caller's uncommitted writes.

    Returns:
        ``True`` if access is granted, ``False`` if denied.

    Example::

        if can(evaluator, bob, "read", Resource("Document", 7)):
            ...
    """
    return evaluator.check(subject, action, resource, connection=connection)


def authorize(
    evaluator: PolicyEvaluator,
    subject: Subject,
    action: str,
    resource: Resource,
    *,
    connection: Connection | None = None,
    message: str | None = None,
) -> None:
    """Assert that *subject* can perform *action* on *resource*.

    Raises:
        AuthorizationError: If the check is denied.

    Example::

        authorize(evaluator, bob, "delete", Resource("User", "alice"))
    """
    if not can(evaluator, subject, action, resource, connection=connection):
        raise AuthorizationError(
            subject=subject,
            action=action,
            resource_type=resource.type,
            resource_id=resource.id,
            message=message,
        )

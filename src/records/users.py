"""User management: authorized listing, creation, deletion and role edits."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from sqlalchemy import Connection, Engine, delete, insert

from sqla_rebac import (
    AuthorizationError,
    AuthorizedListing,
    AuthzError,
    InvalidBatchError,
    Resource,
    Target,
    guarded_batch_update,
    guarded_mutate,
    list_with_permissions,
)
from sqla_rebac.session import AuthorizationContext

from records.result import Result
from records.schema import organization_role, users

__all__ = [
    "USER_PERMISSIONS",
    "create_user",
    "delete_user",
    "edit_users_role_by_username",
    "get_readable_users_with_permissions",
]

logger = logging.getLogger("records.users")

# Permissions reported for every readable user.
USER_PERMISSIONS = ("edit_role", "delete")


def get_readable_users_with_permissions(
    bind: Engine | Connection, ctx: AuthorizationContext
) -> AuthorizedListing:
    """List the users the requester may read, with ``edit_role`` and ``delete`` flags.

    The requester's own row is returned separately as ``this_subject`` so
    that it can never be offered for management.

    Raises:
        IntegrityError: If the requester cannot read their own user.
        DataAccessError: If the query fails.
    """
    try:
        return list_with_permissions(
            bind,
            ctx.subject,
            "User",
            USER_PERMISSIONS,
            evaluator=ctx.evaluator,
            resources=ctx.resources,
            extract_self=True,
            config=ctx.config,
        )
    except AuthzError:
        logger.error("Listing users for %s failed", ctx.subject)
        raise


def create_user(
    bind: Engine | Connection,
    ctx: AuthorizationContext,
    *,
    username: str,
    org: str,
    role: str,
) -> Result[str]:
    """Create *username* in *org* with *role*; requires ``create_user`` on the org.

    Reports failures in the result instead of raising.

    Example::

        result = create_user(engine, ctx, username="carol", org="acme", role="member")
        assert result.success, result.error
    """
    if role not in organization_role.enums:
        return Result.fail(f"invalid role {role!r}")

    def _insert(conn: Connection) -> None:
        conn.execute(insert(users).values(username=username, org=org, role=role))

    try:
        guarded_mutate(
            bind,
            ctx.subject,
            "create_user",
            Resource("Organization", org),
            _insert,
            evaluator=ctx.evaluator,
            config=ctx.config,
        )
    except AuthorizationError:
        return Result.fail(f"not permitted to create user in Organization {org}")
    except AuthzError as exc:
        logger.warning("create_user %r by %s failed: %s", username, ctx.subject, exc)
        return Result.fail(str(exc))
    logger.info("%s created user %r in %r", ctx.subject, username, org)
    return Result.ok(username)


def delete_user(bind: Engine | Connection, ctx: AuthorizationContext, username: str) -> None:
    """Delete *username*; requires ``delete`` on that user.

    Users never delete themselves, whatever the policy grants.

    Raises:
        AuthorizationError: If not permitted, or *username* is the requester.
        DataAccessError: If the delete fails.
    """
    if username == ctx.subject.id:
        raise AuthorizationError(
            subject=ctx.subject,
            action="delete",
            resource_type="User",
            resource_id=username,
            message="users cannot delete themselves",
        )

    def _delete(conn: Connection) -> None:
        conn.execute(delete(users).where(users.c.username == username))

    try:
        guarded_mutate(
            bind,
            ctx.subject,
            "delete",
            Resource("User", username),
            _delete,
            evaluator=ctx.evaluator,
            config=ctx.config,
        )
    except AuthzError:
        logger.error("Deleting user %r by %s failed", username, ctx.subject)
        raise


def edit_users_role_by_username(
    bind: Engine | Connection,
    ctx: AuthorizationContext,
    updates: Mapping[str, str],
) -> int:
    """Set the role of every user in *updates*, or of none of them.

    Requires ``edit_role`` on every listed user.  The requester is never
    among the users edited; naming them fails the whole batch.

    Raises:
        InvalidBatchError: If *updates* is empty or names an unknown role.
        AuthorizationError: If any user is not editable by the requester.
        DataAccessError: If the update fails.

    Example::

        edit_users_role_by_username(engine, ctx, {"alice": "admin", "carol": "member"})
    """
    invalid = sorted(r for r in set(updates.values()) if r not in organization_role.enums)
    if invalid:
        raise InvalidBatchError(f"invalid role(s) {invalid!r}")

    try:
        return guarded_batch_update(
            bind,
            ctx.subject,
            "edit_role",
            "User",
            [Target(username, {"role": role}) for username, role in updates.items()],
            evaluator=ctx.evaluator,
            resources=ctx.resources,
            exclude_self=True,
            config=ctx.config,
        )
    except AuthzError:
        logger.error("Editing roles of %s by %s failed", sorted(updates), ctx.subject)
        raise

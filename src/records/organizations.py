"""Organizations: creation and the organizations a requester can act on."""

from __future__ import annotations

import logging

from sqlalchemy import Connection, Engine, insert, select

from sqla_rebac import AuthorizationError, AuthzError, Resource, guarded_mutate
from sqla_rebac.compiler import authorize_statement
from sqla_rebac.session import AuthorizationContext, ConnectionScope

from records.result import Result
from records.schema import GLOBAL_ORG, organization_role, organizations

__all__ = ["create_organization", "get_create_user_orgs", "get_org_roles"]

logger = logging.getLogger("records.organizations")


def create_organization(
    bind: Engine | Connection, ctx: AuthorizationContext, name: str
) -> Result[str]:
    """Create organization *name*; requires the global ``create_org`` permission."""
    if name == GLOBAL_ORG:
        return Result.fail(f"organization name {name!r} is reserved")

    def _insert(conn: Connection) -> None:
        conn.execute(insert(organizations).values(name=name))

    try:
        guarded_mutate(
            bind,
            ctx.subject,
            "create_org",
            Resource.global_(),
            _insert,
            evaluator=ctx.evaluator,
            config=ctx.config,
        )
    except AuthorizationError:
        return Result.fail("not permitted to create organizations")
    except AuthzError as exc:
        logger.warning("create_organization %r by %s failed: %s", name, ctx.subject, exc)
        return Result.fail(str(exc))
    logger.info("%s created organization %r", ctx.subject, name)
    return Result.ok(name)


def get_create_user_orgs(bind: Engine | Connection, ctx: AuthorizationContext) -> list[str]:
    """Names of the organizations in which the requester may create users."""
    mapping = ctx.resources.lookup("Organization")
    fragment = ctx.evaluator.compile_list_condition(
        ctx.subject, "create_user", "Organization", mapping.column_ref
    )
    stmt = authorize_statement(
        select(organizations.c.name).order_by(organizations.c.name),
        fragment,
        organizations.c.name,
    )
    with ConnectionScope(bind, operation="list create_user organizations") as scope:
        return list(scope.execute(stmt).scalars())


def get_org_roles() -> list[str]:
    """The assignable organization roles, in ascending order of privilege."""
    return list(organization_role.enums)

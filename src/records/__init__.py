"""records: a multi-organization user and document store built on sqla-rebac.

Every service takes a bind (engine or connection) and an
:class:`~sqla_rebac.session.AuthorizationContext` naming the requester.

Example::

    from records import build_context, create_records_engine, init_db

    engine = create_records_engine("sqlite:///records.db")
    init_db(engine)
    ctx = build_context(engine, "root")
    create_organization(engine, ctx, "acme")
"""

from __future__ import annotations

from sqlalchemy import Engine

from sqla_rebac import LocalPolicyEvaluator, Subject
from sqla_rebac.policy import ResourceRegistry
from sqla_rebac.session import AuthorizationContext

from records.db import (
    DatabaseSettings,
    create_async_records_engine,
    create_records_engine,
    init_db,
)
from records.documents import (
    DOCUMENT_PERMISSIONS,
    create_document,
    delete_document,
    get_readable_documents_with_permissions,
    set_document_public,
    share_document,
)
from records.organizations import create_organization, get_create_user_orgs, get_org_roles
from records.policy import build_facts, build_policy, register_resources, verify_role_enums
from records.result import Result
from records.users import (
    USER_PERMISSIONS,
    create_user,
    delete_user,
    edit_users_role_by_username,
    get_readable_users_with_permissions,
)

__all__ = [
    "DOCUMENT_PERMISSIONS",
    "DatabaseSettings",
    "Result",
    "USER_PERMISSIONS",
    "build_context",
    "build_evaluator",
    "build_facts",
    "build_policy",
    "create_document",
    "create_organization",
    "create_async_records_engine",
    "create_records_engine",
    "create_user",
    "delete_document",
    "delete_user",
    "edit_users_role_by_username",
    "get_create_user_orgs",
    "get_org_roles",
    "get_readable_documents_with_permissions",
    "get_readable_users_with_permissions",
    "init_db",
    "register_resources",
    "set_document_public",
    "share_document",
    "verify_role_enums",
]


def build_evaluator(engine: Engine) -> LocalPolicyEvaluator:
    """The records policy evaluated against *engine*'s database.

    Raises:
        PolicyCompilationError: If the schema's role enums drifted from the policy.
    """
    policy = build_policy()
    verify_role_enums(policy)
    return LocalPolicyEvaluator(policy, build_facts(), engine=engine)


def build_context(
    engine: Engine,
    username: str,
    *,
    evaluator: LocalPolicyEvaluator | None = None,
    resources: ResourceRegistry | None = None,
) -> AuthorizationContext:
    """Authorization context for *username*, with the records tables registered."""
    return AuthorizationContext(
        subject=Subject("User", username),
        evaluator=evaluator if evaluator is not None else build_evaluator(engine),
        resources=register_resources(resources if resources is not None else ResourceRegistry()),
    )

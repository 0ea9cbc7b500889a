"""Authorization policy of the records application and its fact mapping.

Global roles are derived from the :data:`~records.schema.GLOBAL_ORG`
organization: a user holding ``admin`` there is an administrator of every
organization.  Any user placed in that organization gets its role
globally, which makes membership of ``_`` far more powerful than
membership of any other organization.
"""

from __future__ import annotations

from sqlalchemy import Integer, String, Text, cast, select, true

from sqla_rebac.exceptions import PolicyCompilationError
from sqla_rebac.policy import (
    FactConfig,
    FactQuery,
    PolicyDocument,
    ResourceRegistry,
    get_default_registry,
    load_policy,
)

from records.schema import (
    GLOBAL_ORG,
    document_role,
    document_user_roles,
    documents,
    organization_role,
    organizations,
    users,
)

__all__ = [
    "POLICY_YAML",
    "build_facts",
    "build_policy",
    "register_resources",
    "verify_role_enums",
]

POLICY_YAML = """
actor: User
resources:
  global:
    roles: [admin]
    permissions: [create_org]
    rules:
      - {grant: create_org, role: admin}

  Organization:
    roles: [member, admin]
    permissions: [read, create_user, create_document, list_users]
    rules:
      - {grant: member, role: admin}
      - {grant: admin, global_role: admin}
      - {grant: read, role: member}
      - {grant: list_users, role: member}
      - {grant: create_document, role: member}
      - {grant: create_user, role: admin}

  User:
    permissions: [read, edit_role, delete]
    relations: {parent: Organization}
    rules:
      - {grant: read, role: member, "on": parent}
      - {grant: edit_role, role: admin, "on": parent}
      - {grant: delete, role: admin, "on": parent}

  Document:
    roles: [viewer, editor, manager, owner]
    permissions: [read, edit, manage_share, set_public, delete]
    relations: {belongs_to: Organization}
    rules:
      - {grant: viewer, role: editor}
      - {grant: editor, role: manager}
      - {grant: manager, role: owner}
      - {grant: owner, role: admin, "on": belongs_to}
      - {grant: viewer, role: member, "on": belongs_to}
      - {grant: read, role: viewer}
      - {grant: read, attribute: public}
      - {grant: edit, role: editor}
      - {grant: manage_share, role: manager}
      - {grant: set_public, role: manager}
      - {grant: delete, role: owner}
"""


def build_policy() -> PolicyDocument:
    return load_policy(POLICY_YAML)


def build_facts() -> FactConfig:
    """Fact queries over :mod:`records.schema`, portable across dialects."""
    return FactConfig(
        roles={
            "Organization": FactQuery(
                select(users.c.username, cast(users.c.role, String), users.c.org)
            ),
            "Document": FactQuery(
                select(
                    document_user_roles.c.username,
                    cast(document_user_roles.c.role, String),
                    document_user_roles.c.document_id,
                )
            ),
        },
        global_roles=FactQuery(
            select(users.c.username, cast(users.c.role, String))
            .where(users.c.org == GLOBAL_ORG)
            .distinct()
        ),
        relations={
            ("User", "parent", "Organization"): FactQuery(select(users.c.username, users.c.org)),
            ("Document", "belongs_to", "Organization"): FactQuery(
                select(documents.c.id, documents.c.org)
            ),
        },
        attributes={
            ("public", "Document"): FactQuery(
                select(documents.c.id).where(documents.c.public.is_(true()))
            ),
        },
        sql_types={"User": Text(), "Organization": Text(), "Document": Integer()},
    )


def register_resources(registry: ResourceRegistry | None = None) -> ResourceRegistry:
    """Register the application's tables; the default registry when none is given."""
    target = registry if registry is not None else get_default_registry()
    target.register("Organization", organizations, organizations.c.name)
    target.register("User", users, users.c.username)
    target.register("Document", documents, documents.c.id)
    return target


def verify_role_enums(policy: PolicyDocument | None = None) -> None:
    """Check that the schema's role enums list exactly the policy's roles.

    Raises:
        PolicyCompilationError: Naming each enum that drifted.
    """
    doc = policy if policy is not None else build_policy()
    problems = []
    for enum, resource_type in (
        (organization_role, "Organization"),
        (document_role, "Document"),
    ):
        declared = set(doc.roles_of(resource_type))
        stored = set(enum.enums)
        if declared != stored:
            problems.append(
                f"{enum.name} has {sorted(stored)!r}, policy declares {sorted(declared)!r} "
                f"for {resource_type}"
            )
    if problems:
        raise PolicyCompilationError("Role enums out of sync: " + "; ".join(problems))

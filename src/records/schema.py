"""Relational schema of the records application."""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    Enum,
    ForeignKey,
    Integer,
    MetaData,
    Table,
    Text,
    UniqueConstraint,
    false,
)

__all__ = [
    "GLOBAL_ORG",
    "ROOT_USER",
    "document_role",
    "document_user_roles",
    "documents",
    "metadata",
    "organization_role",
    "organizations",
    "users",
]

# Roles held in this organization are also held globally.
GLOBAL_ORG = "_"

# Bootstrap administrator seeded into GLOBAL_ORG.
ROOT_USER = "root"

metadata = MetaData()

# Kept in step with the roles the policy declares; see records.policy.verify_role_enums.
organization_role = Enum("member", "admin", name="organization_role")
document_role = Enum("viewer", "editor", "manager", "owner", name="document_role")

organizations = Table(
    "organizations",
    metadata,
    Column("name", Text, primary_key=True),
)

# One organization and one organization role per user.
users = Table(
    "users",
    metadata,
    Column("username", Text, primary_key=True),
    Column("org", Text, ForeignKey("organizations.name"), nullable=False),
    Column("role", organization_role, nullable=False),
)

documents = Table(
    "documents",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("org", Text, ForeignKey("organizations.name"), nullable=False),
    Column("title", Text, nullable=False),
    Column("public", Boolean, nullable=False, server_default=false()),
    UniqueConstraint("org", "id", name="documents_org_id_key"),
)

document_user_roles = Table(
    "document_user_roles",
    metadata,
    Column(
        "document_id",
        Integer,
        ForeignKey("documents.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "username",
        Text,
        ForeignKey("users.username", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("role", document_role, nullable=False),
)

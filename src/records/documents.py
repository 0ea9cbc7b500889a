"""Documents: creation, authorized listing, sharing, publication and deletion."""

from __future__ import annotations

import logging

from sqlalchemy import Connection, Engine, delete, insert, update

from sqla_rebac import (
    AuthorizationError,
    AuthorizedListing,
    AuthzError,
    Resource,
    guarded_mutate,
    list_with_permissions,
)
from sqla_rebac.session import AuthorizationContext

from records.result import Result
from records.schema import document_role, document_user_roles, documents

__all__ = [
    "DOCUMENT_PERMISSIONS",
    "create_document",
    "delete_document",
    "get_readable_documents_with_permissions",
    "set_document_public",
    "share_document",
]

logger = logging.getLogger("records.documents")

DOCUMENT_PERMISSIONS = ("edit", "manage_share", "set_public", "delete")


def create_document(
    bind: Engine | Connection, ctx: AuthorizationContext, *, org: str, title: str
) -> Result[int]:
    """Create a document in *org* owned by the requester; requires ``create_document``.

    Example::

        result = create_document(engine, ctx, org="acme", title="Roadmap")
        doc_id = result.value
    """

    def _insert(conn: Connection) -> int:
        doc_id = conn.execute(
            insert(documents).values(org=org, title=title).returning(documents.c.id)
        ).scalar_one()
        conn.execute(
            insert(document_user_roles).values(
                document_id=doc_id, username=ctx.subject.id, role="owner"
            )
        )
        return doc_id

    try:
        doc_id = guarded_mutate(
            bind,
            ctx.subject,
            "create_document",
            Resource("Organization", org),
            _insert,
            evaluator=ctx.evaluator,
            config=ctx.config,
        )
    except AuthorizationError:
        return Result.fail(f"not permitted to create documents in Organization {org}")
    except AuthzError as exc:
        logger.warning("create_document in %r by %s failed: %s", org, ctx.subject, exc)
        return Result.fail(str(exc))
    logger.info("%s created document %d in %r", ctx.subject, doc_id, org)
    return Result.ok(doc_id)


def get_readable_documents_with_permissions(
    bind: Engine | Connection, ctx: AuthorizationContext
) -> AuthorizedListing:
    """List readable documents, each with its :data:`DOCUMENT_PERMISSIONS` flags."""
    return list_with_permissions(
        bind,
        ctx.subject,
        "Document",
        DOCUMENT_PERMISSIONS,
        evaluator=ctx.evaluator,
        resources=ctx.resources,
        config=ctx.config,
    )


def set_document_public(
    bind: Engine | Connection, ctx: AuthorizationContext, doc_id: int, public: bool
) -> None:
    """Publish or unpublish a document; requires ``set_public``.

    Raises:
        AuthorizationError: If not permitted.
    """

    def _update(conn: Connection) -> None:
        conn.execute(update(documents).where(documents.c.id == doc_id).values(public=public))

    guarded_mutate(
        bind,
        ctx.subject,
        "set_public",
        Resource("Document", doc_id),
        _update,
        evaluator=ctx.evaluator,
        config=ctx.config,
    )


def share_document(
    bind: Engine | Connection,
    ctx: AuthorizationContext,
    doc_id: int,
    *,
    username: str,
    role: str,
) -> Result[str]:
    """Give *username* *role* on a document, replacing any role they held.

    Requires ``manage_share`` on the document.
    """
    if role not in document_role.enums:
        return Result.fail(f"invalid role {role!r}")

    def _share(conn: Connection) -> None:
        conn.execute(
            delete(document_user_roles).where(
                document_user_roles.c.document_id == doc_id,
                document_user_roles.c.username == username,
            )
        )
        conn.execute(
            insert(document_user_roles).values(document_id=doc_id, username=username, role=role)
        )

    try:
        guarded_mutate(
            bind,
            ctx.subject,
            "manage_share",
            Resource("Document", doc_id),
            _share,
            evaluator=ctx.evaluator,
            config=ctx.config,
        )
    except AuthorizationError:
        return Result.fail(f"not permitted to share Document {doc_id}")
    except AuthzError as exc:
        logger.warning("share_document %d by %s failed: %s", doc_id, ctx.subject, exc)
        return Result.fail(str(exc))
    return Result.ok(role)


def delete_document(bind: Engine | Connection, ctx: AuthorizationContext, doc_id: int) -> None:
    """Delete a document and its role grants; requires ``delete``.

    Raises:
        AuthorizationError: If not permitted.
    """

    def _delete(conn: Connection) -> None:
        conn.execute(delete(document_user_roles).where(document_user_roles.c.document_id == doc_id))
        conn.execute(delete(documents).where(documents.c.id == doc_id))

    guarded_mutate(
        bind,
        ctx.subject,
        "delete",
        Resource("Document", doc_id),
        _delete,
        evaluator=ctx.evaluator,
        config=ctx.config,
    )

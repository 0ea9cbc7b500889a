"""FastAPI dependencies for sqla-rebac authorization."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from fastapi import Depends, Request
from sqlalchemy import Connection, Engine

from sqla_rebac._checks import authorize
from sqla_rebac._types import Resource, Subject
from sqla_rebac.evaluator._protocol import PolicyEvaluator
from sqla_rebac.guarded._read import AuthorizedListing, list_with_permissions
from sqla_rebac.session._context import AuthorizationContext

__all__ = [
    "AuthzListDep",
    "RequirePermission",
    "get_authz_context",
    "get_bind",
    "get_evaluator",
    "get_subject",
]


# ---------------------------------------------------------------------------
# Sentinel dependency functions for DI-based configuration
# ---------------------------------------------------------------------------


def get_subject(request: Request) -> Subject:
    """Sentinel dependency; override via ``app.dependency_overrides[get_subject]``.

    Raises ``NotImplementedError`` if not overridden, ensuring the
    application resolves the authenticated subject itself.

    Example::

        from sqla_rebac.integrations.fastapi import get_subject

        app.dependency_overrides[get_subject] = current_user_subject
    """
    raise NotImplementedError(
        "Override get_subject via app.dependency_overrides[get_subject]."
    )


def get_bind(request: Request) -> Engine | Connection:
    """Sentinel dependency; override via ``app.dependency_overrides[get_bind]``.

    Example::

        app.dependency_overrides[get_bind] = lambda: engine
    """
    raise NotImplementedError("Override get_bind via app.dependency_overrides[get_bind].")


def get_evaluator(request: Request) -> PolicyEvaluator:
    """Sentinel dependency; override via ``app.dependency_overrides[get_evaluator]``.

    Example::

        app.dependency_overrides[get_evaluator] = lambda: evaluator
    """
    raise NotImplementedError(
        "Override get_evaluator via app.dependency_overrides[get_evaluator]."
    )


def get_authz_context(
    subject: Subject = Depends(get_subject),
    evaluator: PolicyEvaluator = Depends(get_evaluator),
) -> AuthorizationContext:
    """Bundle the request's subject and evaluator into an ``AuthorizationContext``."""
    return AuthorizationContext(subject=subject, evaluator=evaluator)


# ---------------------------------------------------------------------------
# Dependency builders
# ---------------------------------------------------------------------------


def _make_listing_dependency(
    resource_type: str,
    extra_permissions: Sequence[str],
    *,
    extract_self: bool,
) -> Callable[..., AuthorizedListing]:
    def _resolve(
        ctx: AuthorizationContext = Depends(get_authz_context),
        bind: Engine | Connection = Depends(get_bind),
    ) -> AuthorizedListing:
        return list_with_permissions(
            bind,
            ctx.subject,
            resource_type,
            extra_permissions,
            evaluator=ctx.evaluator,
            resources=ctx.resources,
            extract_self=extract_self,
            config=ctx.config,
        )

    return _resolve


def AuthzListDep(  # noqa: N802
    resource_type: str,
    extra_permissions: Sequence[str] = (),
    *,
    extract_self: bool = False,
) -> Any:
    """FastAPI dependency resolving an authorized listing.

    Returns a ``Depends()`` instance that lists every row of
    *resource_type* the subject may read, with a permission vector per
    row.

    Args:
        resource_type: Registered resource type to list.
        extra_permissions: Permissions evaluated per row.
        extract_self: Split the subject's own row out.

    Example::

        @app.get("/users")
        def list_users(listing: AuthorizedListing = AuthzListDep("User", ["edit_role"])):
            return [{"username": r["username"], "edit": r.allows("edit_role")} for r in listing]
    """
    return Depends(
        _make_listing_dependency(resource_type, tuple(extra_permissions), extract_self=extract_self)
    )


def RequirePermission(  # noqa: N802
    action: str,
    resource_type: str,
    *,
    id_param: str,
    id_type: Callable[[str], Any] = str,
) -> Any:
    """FastAPI dependency performing a point check against a path parameter.

    *id_type* converts the path parameter to the resource id type.
    Resolves to the checked ``Resource``; a denial raises
    ``AuthorizationError``, which :func:`install_error_handlers` turns
    into a 403.

    Example::

        @app.get("/documents/{doc_id}")
        def get_document(doc: Resource = RequirePermission(
            "read", "Document", id_param="doc_id", id_type=int
        )):
            ...
    """

    def _resolve(
        request: Request,
        ctx: AuthorizationContext = Depends(get_authz_context),
    ) -> Resource:
        resource = Resource(resource_type, id_type(request.path_params[id_param]))
        authorize(ctx.evaluator, ctx.subject, action, resource)
        return resource

    return Depends(_resolve)

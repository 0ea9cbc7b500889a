"""FastAPI integration for sqla-rebac."""

from __future__ import annotations

try:
    import fastapi as _fastapi_check  # noqa: F401  # pyright: ignore[reportUnusedImport]

    del _fastapi_check
except ImportError as exc:
    raise ImportError(
        "FastAPI integration requires fastapi. Install it with: pip install sqla-rebac[fastapi]"
    ) from exc

from sqla_rebac.integrations.fastapi._dependencies import (
    AuthzListDep,
    RequirePermission,
    get_authz_context,
    get_bind,
    get_evaluator,
    get_subject,
)
from sqla_rebac.integrations.fastapi._errors import install_error_handlers

__all__ = [
    "AuthzListDep",
    "RequirePermission",
    "get_authz_context",
    "get_bind",
    "get_evaluator",
    "get_subject",
    "install_error_handlers",
]

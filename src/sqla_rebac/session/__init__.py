"""Session module for sqla-rebac: connection and transaction scoping."""

from __future__ import annotations

from sqla_rebac.session._async_scope import AsyncConnectionScope
from sqla_rebac.session._context import AuthorizationContext
from sqla_rebac.session._scope import ConnectionScope, transaction_scope

__all__ = [
    "AsyncConnectionScope",
    "AuthorizationContext",
    "ConnectionScope",
    "transaction_scope",
]

"""Explain mode: structured insight into how permissions are derived."""

from sqla_rebac.explain._access import explain_access, explain_permission
from sqla_rebac.explain._models import AccessExplanation, GrantPath, PermissionExplanation

__all__ = [
    "AccessExplanation",
    "GrantPath",
    "PermissionExplanation",
    "explain_access",
    "explain_permission",
]

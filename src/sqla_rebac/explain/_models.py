"""Data models for explain output."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

__all__ = [
    "AccessExplanation",
    "GrantPath",
    "PermissionExplanation",
]


@dataclass(frozen=True, slots=True)
class GrantPath:
    """One way a permission can be obtained.

    Attributes:
        description: Human-readable path (e.g. ``"role admin on parent"``).
        sql: The path's condition, compiled with literal values.
        matched: For access explanations, whether the path holds for the
            resource; ``None`` for permission explanations.
    """

    description: str
    sql: str
    matched: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable dictionary."""
        return {"description": self.description, "sql": self.sql, "matched": self.matched}


@dataclass(frozen=True, slots=True)
class PermissionExplanation:
    """How a permission on a resource type is derived for a subject.

    Attributes:
        subject_repr: String representation of the subject.
        action: The permission being explained.
        resource_type: The resource type.
        local_roles: Roles on the resource itself that confer the permission.
        related_roles: Relation name to roles on the related resource.
        global_roles: Global roles that confer the permission.
        attributes: Resource attributes that confer the permission.
        rules: Descriptions of the rules that were followed.
        paths: Per-path compiled conditions.
        condition_sql: The combined condition, as a list fragment would carry it.
        deny_by_default: True if no path can grant the permission.
    """

    subject_repr: str
    action: str
    resource_type: str
    local_roles: list[str]
    related_roles: dict[str, list[str]]
    global_roles: list[str]
    attributes: list[str]
    rules: list[str]
    paths: list[GrantPath]
    condition_sql: str
    deny_by_default: bool

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable dictionary."""
        return {
            "subject_repr": self.subject_repr,
            "action": self.action,
            "resource_type": self.resource_type,
            "local_roles": list(self.local_roles),
            "related_roles": {k: list(v) for k, v in self.related_roles.items()},
            "global_roles": list(self.global_roles),
            "attributes": list(self.attributes),
            "rules": list(self.rules),
            "paths": [p.to_dict() for p in self.paths],
            "condition_sql": self.condition_sql,
            "deny_by_default": self.deny_by_default,
        }

    def __str__(self) -> str:
        """Return a human-readable multi-line explanation."""
        lines: list[str] = []
        lines.append(f"Permission {self.action!r} on {self.resource_type}")
        lines.append(f"  Subject: {self.subject_repr}")
        if self.deny_by_default:
            lines.append("  DENY BY DEFAULT (no rule grants this permission)")
            return "\n".join(lines)
        lines.append("  Rules:")
        for rule in self.rules:
            lines.append(f"    - {rule}")
        lines.append("  Paths:")
        for path in self.paths:
            lines.append(f"    - {path.description}")
            lines.append(f"      SQL: {path.sql}")
        lines.append(f"  Combined SQL: {self.condition_sql}")
        return "\n".join(lines)


@dataclass(frozen=True, slots=True)
class AccessExplanation:
    """Why a subject can or cannot perform an action on one resource.

    Attributes:
        subject_repr: String representation of the subject.
        action: The action being checked.
        resource_type: The resource type.
        resource_id: The resource id.
        allowed: Whether access is allowed overall.
        deny_by_default: True if no path can grant the action.
        paths: Per-path results.
    """

    subject_repr: str
    action: str
    resource_type: str
    resource_id: Any
    allowed: bool
    deny_by_default: bool
    paths: list[GrantPath]

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable dictionary."""
        return {
            "subject_repr": self.subject_repr,
            "action": self.action,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "allowed": self.allowed,
            "deny_by_default": self.deny_by_default,
            "paths": [p.to_dict() for p in self.paths],
        }

    def __str__(self) -> str:
        """Return a human-readable multi-line explanation."""
        verdict = "ALLOWED" if self.allowed else "DENIED"
        lines: list[str] = []
        lines.append(f"Access Check: {verdict}")
        lines.append(f"  Subject: {self.subject_repr}")
        lines.append(f"  Action: {self.action}")
        lines.append(f"  Resource: {self.resource_type} ({self.resource_id!r})")
        lines.append("")
        if self.deny_by_default:
            lines.append("  DENY BY DEFAULT (no rule grants this action)")
        else:
            lines.append("  Path Results:")
            for p in self.paths:
                status = "MATCH" if p.matched else "NO MATCH"
                lines.append(f"    - {p.description} [{status}]")
                lines.append(f"      SQL: {p.sql}")
        return "\n".join(lines)

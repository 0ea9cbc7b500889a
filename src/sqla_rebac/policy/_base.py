"""Rule and ResourceBlock dataclasses: the declarative policy vocabulary."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from sqla_rebac.exceptions import PolicyCompilationError

__all__ = ["ResourceBlock", "Rule"]


@dataclass(frozen=True, slots=True)
class Rule:
    """Grants a role or permission on a resource when a condition holds.

    Exactly one condition kind must be given:

    - ``role``: the actor holds ``role`` on this resource, or on the
      resource reached through relation ``on`` when it is set;
    - ``global_role``: the actor holds a global role;
    - ``attribute``: the resource has a boolean attribute (``is_<attr>``).

    Attributes:
        grant: The role or permission granted on the resource.
        role: Role the actor must hold.
        on: Relation name leading to the resource that holds ``role``.
        global_role: Global role the actor must hold.
        attribute: Boolean attribute of the resource.

    Example::

        Rule("read", role="member", on="parent")   # "read" if "member" on "parent"
        Rule("admin", global_role="admin")         # "admin" if global "admin"
        Rule("read", attribute="public")           # "read" if is_public(resource)
    """

    grant: str
    role: str | None = None
    on: str | None = None
    global_role: str | None = None
    attribute: str | None = None

    def __post_init__(self) -> None:
        kinds = [k for k in (self.role, self.global_role, self.attribute) if k is not None]
        if len(kinds) != 1:
            raise PolicyCompilationError(
                f"Rule for {self.grant!r} must have exactly one of role, global_role "
                f"or attribute, got {len(kinds)}"
            )
        if self.on is not None and self.role is None:
            raise PolicyCompilationError(
                f"Rule for {self.grant!r} names relation {self.on!r} without a role"
            )

    def describe(self) -> str:
        """One-line rendering, used in logs and explanations."""
        if self.attribute is not None:
            return f"{self.grant!r} if is_{self.attribute}(resource)"
        if self.global_role is not None:
            return f"{self.grant!r} if global {self.global_role!r}"
        if self.on is not None:
            return f"{self.grant!r} if {self.role!r} on {self.on!r}"
        return f"{self.grant!r} if {self.role!r}"


@dataclass(frozen=True, slots=True)
class ResourceBlock:
    """Roles, permissions, relations and rules declared for one resource type.

    Attributes:
        name: The resource type name (e.g. ``"Organization"``).
        roles: Role names that can be assigned on this type.
        permissions: Permission names that can be checked on this type.
        relations: Relation name to related resource type.
        rules: Rules granting roles and permissions on this type.
    """

    name: str
    roles: tuple[str, ...] = ()
    permissions: tuple[str, ...] = ()
    relations: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    rules: tuple[Rule, ...] = ()

    def declares(self, name: str) -> bool:
        """Return True if *name* is a role or permission of this block."""
        return name in self.roles or name in self.permissions

    def rules_granting(self, name: str) -> list[Rule]:
        """All rules whose grant is *name*, in declaration order."""
        return [r for r in self.rules if r.grant == name]

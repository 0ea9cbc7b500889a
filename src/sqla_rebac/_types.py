"""Shared value types and type aliases for sqla-rebac."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

__all__ = [
    "GLOBAL",
    "OnUndeclaredAction",
    "Resource",
    "Subject",
    "Target",
]

# Valid values for AuthzConfig.on_undeclared_action.
OnUndeclaredAction = Literal["raise", "deny"]

# Resource type name of the global pseudo-resource.
GLOBAL = "global"


@dataclass(frozen=True, slots=True)
class Subject:
    """An actor identity, immutable for the lifetime of a request.

    Example::

        alice = Subject("User", "alice")
        assert str(alice) == "User 'alice'"
    """

    type: str
    id: str | int

    def __str__(self) -> str:
        return f"{self.type} {self.id!r}"


@dataclass(frozen=True, slots=True)
class Resource:
    """A typed, identified entity that permissions are checked against.

    Example::

        acme = Resource("Organization", "acme")
    """

    type: str
    id: str | int

    def __str__(self) -> str:
        return f"{self.type} {self.id!r}"

    @classmethod
    def global_(cls) -> Resource:
        """The global pseudo-resource used for global permissions."""
        return cls(GLOBAL, "")


@dataclass(frozen=True, slots=True)
class Target:
    """One row addressed by a batch mutation.

    Attributes:
        identity: Value of the target table's identity column.
        values: Column name to new value.  Ignored by batch deletes.

    Example::

        Target("alice", {"role": "admin"})
    """

    identity: str | int
    values: Mapping[str, Any] = field(default_factory=dict)

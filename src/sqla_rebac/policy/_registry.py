"""ResourceRegistry: maps policy resource types onto tables."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Column, Table

from sqla_rebac.exceptions import PolicyCompilationError

__all__ = ["ResourceMapping", "ResourceRegistry", "get_default_registry"]


@dataclass(frozen=True, slots=True)
class ResourceMapping:
    """Where rows of one resource type live.

    Attributes:
        resource_type: The policy's resource type name (e.g. ``"User"``).
        table: The table holding the rows.
        identity: The column whose value is the resource id.
    """

    resource_type: str
    table: Table
    identity: Column[Any]

    @property
    def column_ref(self) -> str:
        """The ``table.column`` reference fragments are compiled against."""
        return f"{self.table.name}.{self.identity.name}"


class ResourceRegistry:
    """Registry that maps resource type names to tables and identity columns.

    Thread-safe for reads after startup. Append-only during registration.

    Example::

        registry = ResourceRegistry()
        registry.register("User", users, users.c.username)
        registry.lookup("User").column_ref  # "users.username"
    """

    def __init__(self) -> None:
        self._mappings: dict[str, ResourceMapping] = {}

    def register(self, resource_type: str, table: Table, identity: Column[Any]) -> ResourceMapping:
        """Register *table* as the storage of *resource_type*.

        Raises:
            ValueError: If *identity* is not a column of *table*, or the
                type is already registered with a different table.
        """
        if identity.table is not table:
            raise ValueError(f"{identity!r} is not a column of table {table.name!r}")
        existing = self._mappings.get(resource_type)
        if existing is not None:
            if existing.table is table and existing.identity is identity:
                return existing
            raise ValueError(f"Resource type {resource_type!r} is already registered")
        mapping = ResourceMapping(resource_type=resource_type, table=table, identity=identity)
        self._mappings[resource_type] = mapping
        return mapping

    def lookup(self, resource_type: str) -> ResourceMapping:
        """Return the mapping for *resource_type*.

        Raises:
            PolicyCompilationError: If the type was never registered.
        """
        try:
            return self._mappings[resource_type]
        except KeyError:
            raise PolicyCompilationError(
                f"No table registered for resource type {resource_type!r}"
            ) from None

    def has_resource(self, resource_type: str) -> bool:
        return resource_type in self._mappings

    def registered_types(self) -> set[str]:
        return set(self._mappings)

    def clear(self) -> None:
        """Remove all registrations. Primarily useful in test teardown."""
        self._mappings.clear()


# Module-level default registry (singleton).
_default_registry = ResourceRegistry()


def get_default_registry() -> ResourceRegistry:
    """Return the global default (singleton) resource registry.

    This is the registry guarded operations use when no explicit
    ``resources=`` registry is given.
    """
    return _default_registry

"""Fact-correlation configuration: maps abstract policy facts onto SQL.

The policy speaks of ``has_role``, ``has_relation`` and ``is_<attribute>``.
Each of those facts is answered by a query against the application schema
whose columns line up positionally with the fact's arguments:

==========================================  ==============================
Fact                                        Columns
==========================================  ==============================
``has_role(Actor, String, T)``              actor id, role name, T id
``has_role(Actor, String)`` (global)        actor id, role name
``has_relation(T, relation, U)``            T id, U id
``is_<attribute>(T)``                       T id
==========================================  ==============================
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from sqlalchemy import Select, String, column, text
from sqlalchemy.sql.elements import TextClause
from sqlalchemy.sql.selectable import Subquery
from sqlalchemy.types import TypeEngine

from sqla_rebac.exceptions import PolicyCompilationError

__all__ = ["FactConfig", "FactQuery"]


@dataclass(frozen=True, slots=True)
class FactQuery:
    """A query answering one fact, with positional result columns.

    Either a SQLAlchemy ``Select`` (column names and types come from the
    statement) or raw SQL text with the result column names declared.

    Example::

        FactQuery(select(users.c.username, users.c.role, users.c.org))
        FactQuery.from_sql("SELECT username, org FROM users", "username", "org")
    """

    query: Select[Any] | TextClause
    columns: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if isinstance(self.query, TextClause) and not self.columns:
            raise PolicyCompilationError(
                "Fact queries given as SQL text must declare their result columns"
            )

    @classmethod
    def from_sql(cls, sql: str, *columns: str) -> FactQuery:
        return cls(text(sql), tuple(columns))

    @property
    def arity(self) -> int:
        if isinstance(self.query, TextClause):
            return len(self.columns)
        return len(self.query.selected_columns)

    def subquery(self, types: Sequence[TypeEngine[Any] | None] = ()) -> Subquery:
        """Wrap the query as an anonymous derived table.

        *types* assigns SQL types to text-query columns positionally; it is
        ignored for ``Select`` queries, which carry their own types.
        """
        if isinstance(self.query, TextClause):
            cols = [
                column(name, types[i] if i < len(types) and types[i] is not None else None)
                for i, name in enumerate(self.columns)
            ]
            return self.query.columns(*cols).subquery()
        return self.query.subquery()


@dataclass(frozen=True, slots=True)
class FactConfig:
    """All fact queries for one policy, plus the type map for entity ids.

    Attributes:
        roles: Resource type to its ``has_role(Actor, String, T)`` query.
        global_roles: The ``has_role(Actor, String)`` query, if any.
        relations: ``(T, relation, U)`` to its ``has_relation`` query.
        attributes: ``(attribute, T)`` to its ``is_<attribute>`` query.
        sql_types: Entity type name to the SQL type of its identifiers.
    """

    roles: Mapping[str, FactQuery] = field(default_factory=lambda: MappingProxyType({}))
    global_roles: FactQuery | None = None
    relations: Mapping[tuple[str, str, str], FactQuery] = field(
        default_factory=lambda: MappingProxyType({})
    )
    attributes: Mapping[tuple[str, str], FactQuery] = field(
        default_factory=lambda: MappingProxyType({})
    )
    sql_types: Mapping[str, TypeEngine[Any]] = field(default_factory=lambda: MappingProxyType({}))

    def id_type(self, entity_type: str) -> TypeEngine[Any] | None:
        return self.sql_types.get(entity_type)

    def role_subquery(self, actor_type: str, resource_type: str) -> Subquery:
        fact = self.roles.get(resource_type)
        if fact is None:
            raise PolicyCompilationError(f"No has_role fact configured for {resource_type}")
        return self._checked(
            fact,
            f"has_role({actor_type}, String, {resource_type})",
            (self.id_type(actor_type), String(), self.id_type(resource_type)),
        )

    def global_role_subquery(self, actor_type: str) -> Subquery:
        if self.global_roles is None:
            raise PolicyCompilationError("No has_role fact configured for global roles")
        return self._checked(
            self.global_roles,
            f"has_role({actor_type}, String)",
            (self.id_type(actor_type), String()),
        )

    def relation_subquery(self, resource_type: str, relation: str, related: str) -> Subquery:
        fact = self.relations.get((resource_type, relation, related))
        if fact is None:
            raise PolicyCompilationError(
                f"No has_relation fact configured for {resource_type} {relation} {related}"
            )
        return self._checked(
            fact,
            f"has_relation({resource_type}, {relation}, {related})",
            (self.id_type(resource_type), self.id_type(related)),
        )

    def attribute_subquery(self, attribute: str, resource_type: str) -> Subquery:
        fact = self.attributes.get((attribute, resource_type))
        if fact is None:
            raise PolicyCompilationError(
                f"No is_{attribute} fact configured for {resource_type}"
            )
        return self._checked(
            fact, f"is_{attribute}({resource_type})", (self.id_type(resource_type),)
        )

    @staticmethod
    def _checked(
        fact: FactQuery, signature: str, types: tuple[TypeEngine[Any] | None, ...]
    ) -> Subquery:
        if fact.arity != len(types):
            raise PolicyCompilationError(
                f"Fact {signature} expects {len(types)} column(s), query returns {fact.arity}"
            )
        return fact.subquery(types)

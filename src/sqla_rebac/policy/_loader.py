"""Load policy documents and fact-correlation configuration from YAML.

Fact files use the signature syntax of local-authorization configs::

    facts:
      has_role(User:_, String:_, Organization:_):
        query: SELECT username, role, org FROM users
        columns: [username, role, org]
      has_relation(User:_, parent, Organization:_):
        query: SELECT username, org FROM users
        columns: [username, org]
      is_public(Document:_):
        query: SELECT id FROM documents WHERE public
        columns: [id]

    sql_types:
      User: TEXT
      Organization: TEXT
      Document: NUMERIC
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml
from sqlalchemy import types as sqltypes
from sqlalchemy.types import TypeEngine

from sqla_rebac.exceptions import PolicyCompilationError
from sqla_rebac.policy._document import PolicyDocument
from sqla_rebac.policy._facts import FactConfig, FactQuery

__all__ = ["load_facts", "load_policy", "parse_facts"]

_SIGNATURE_RE = re.compile(r"^\s*(?P<name>\w+)\s*\((?P<args>[^)]*)\)\s*$")

_SQL_TYPES: dict[str, type[TypeEngine[Any]]] = {
    "TEXT": sqltypes.Text,
    "VARCHAR": sqltypes.String,
    "STRING": sqltypes.String,
    "INTEGER": sqltypes.Integer,
    "INT": sqltypes.Integer,
    "BIGINT": sqltypes.BigInteger,
    "NUMERIC": sqltypes.Numeric,
    "UUID": sqltypes.Uuid,
    "BOOLEAN": sqltypes.Boolean,
}


def _read(source: str | Path) -> Any:
    if isinstance(source, Path):
        source = source.read_text(encoding="utf-8")
    try:
        return yaml.safe_load(source)
    except yaml.YAMLError as exc:
        raise PolicyCompilationError(f"Could not parse YAML: {exc}") from exc


def load_policy(source: str | Path) -> PolicyDocument:
    """Load a :class:`PolicyDocument` from a YAML string or file path."""
    data = _read(source)
    if not isinstance(data, Mapping):
        raise PolicyCompilationError("Policy YAML must be a mapping")
    return PolicyDocument.from_mapping(data)


def load_facts(source: str | Path) -> FactConfig:
    """Load a :class:`FactConfig` from a YAML string or file path."""
    data = _read(source)
    if not isinstance(data, Mapping):
        raise PolicyCompilationError("Fact YAML must be a mapping")
    return parse_facts(data)


def _entity(arg: str) -> str:
    # "Organization:_" -> "Organization"
    return arg.split(":", 1)[0].strip()


def _sql_type(name: str) -> TypeEngine[Any]:
    try:
        return _SQL_TYPES[name.upper()]()
    except KeyError:
        raise PolicyCompilationError(f"Unknown SQL type {name!r} in sql_types") from None


def parse_facts(data: Mapping[str, Any]) -> FactConfig:
    """Build a :class:`FactConfig` from already-parsed YAML data."""
    roles: dict[str, FactQuery] = {}
    relations: dict[tuple[str, str, str], FactQuery] = {}
    attributes: dict[tuple[str, str], FactQuery] = {}
    global_roles: FactQuery | None = None

    for signature, body in (data.get("facts") or {}).items():
        match = _SIGNATURE_RE.match(signature)
        if match is None:
            raise PolicyCompilationError(f"Malformed fact signature {signature!r}")
        if not isinstance(body, Mapping) or "query" not in body:
            raise PolicyCompilationError(f"Fact {signature!r} has no query")
        name = match["name"]
        args = [a.strip() for a in match["args"].split(",")]
        fact = FactQuery.from_sql(str(body["query"]).strip(), *body.get("columns", ()))

        if name == "has_role" and len(args) == 3:
            roles[_entity(args[2])] = fact
        elif name == "has_role" and len(args) == 2:
            global_roles = fact
        elif name == "has_relation" and len(args) == 3:
            relations[(_entity(args[0]), args[1], _entity(args[2]))] = fact
        elif name.startswith("is_") and len(args) == 1:
            attributes[(name[len("is_") :], _entity(args[0]))] = fact
        else:
            raise PolicyCompilationError(f"Unsupported fact signature {signature!r}")

    sql_types = {k: _sql_type(v) for k, v in (data.get("sql_types") or {}).items()}
    return FactConfig(
        roles=MappingProxyType(roles),
        global_roles=global_roles,
        relations=MappingProxyType(relations),
        attributes=MappingProxyType(attributes),
        sql_types=MappingProxyType(sql_types),
    )

"""Policy configuration: documents, fact correlation and resource mapping."""

from sqla_rebac.policy._base import ResourceBlock, Rule
from sqla_rebac.policy._document import PolicyDocument, validate_policy
from sqla_rebac.policy._facts import FactConfig, FactQuery
from sqla_rebac.policy._loader import load_facts, load_policy, parse_facts
from sqla_rebac.policy._registry import ResourceMapping, ResourceRegistry, get_default_registry

__all__ = [
    "FactConfig",
    "FactQuery",
    "PolicyDocument",
    "ResourceBlock",
    "ResourceMapping",
    "ResourceRegistry",
    "Rule",
    "get_default_registry",
    "load_facts",
    "load_policy",
    "parse_facts",
    "validate_policy",
]

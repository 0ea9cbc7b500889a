"""PolicyDocument: the declarative policy consumed as static configuration."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from sqla_rebac._types import GLOBAL
from sqla_rebac.exceptions import PolicyCompilationError
from sqla_rebac.policy._base import ResourceBlock, Rule

if TYPE_CHECKING:
    from sqla_rebac.policy._facts import FactConfig

__all__ = ["PolicyDocument", "validate_policy"]


def _rule_fields(raw: Mapping[Any, Any]) -> dict[str, Any]:
    # YAML 1.1 reads a bare `on` key as the boolean True.
    return {("on" if key is True else key): value for key, value in raw.items()}


@dataclass(frozen=True, slots=True)
class PolicyDocument:
    """A set of resource blocks plus the actor type they apply to.

    The ``global`` block, when present, declares global roles and
    permissions.  Global roles are consumed by rules of other blocks
    through ``Rule(global_role=...)``.

    Example::

        policy = PolicyDocument.from_blocks(
            ResourceBlock("global", roles=("admin",)),
            ResourceBlock(
                "Organization",
                roles=("member", "admin"),
                permissions=("read",),
                rules=(
                    Rule("member", role="admin"),
                    Rule("admin", global_role="admin"),
                    Rule("read", role="member"),
                ),
            ),
        )
    """

    blocks: Mapping[str, ResourceBlock] = field(default_factory=lambda: MappingProxyType({}))
    actor_type: str = "User"

    @classmethod
    def from_blocks(cls, *blocks: ResourceBlock, actor_type: str = "User") -> PolicyDocument:
        """Build a document from blocks, rejecting duplicate type names."""
        by_name: dict[str, ResourceBlock] = {}
        for block in blocks:
            if block.name in by_name:
                raise PolicyCompilationError(f"Resource {block.name!r} is declared twice")
            by_name[block.name] = block
        return cls(blocks=MappingProxyType(by_name), actor_type=actor_type)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> PolicyDocument:
        """Build a document from plain data, as loaded from YAML or JSON.

        Expected shape::

            actor: User
            resources:
              Organization:
                roles: [member, admin]
                permissions: [read]
                relations: {}
                rules:
                  - {grant: member, role: admin}
                  - {grant: read, role: member}

        A bare ``on:`` key, which YAML reads as ``True``, is taken as ``"on"``.
        """
        resources = data.get("resources")
        if not isinstance(resources, Mapping):
            raise PolicyCompilationError("Policy document must contain a 'resources' mapping")
        blocks = []
        for name, body in resources.items():
            body = body or {}
            try:
                rules = tuple(Rule(**_rule_fields(raw)) for raw in body.get("rules", ()))
            except (TypeError, AttributeError) as exc:
                raise PolicyCompilationError(f"Invalid rule in resource {name!r}: {exc}") from exc
            blocks.append(
                ResourceBlock(
                    name=name,
                    roles=tuple(body.get("roles", ())),
                    permissions=tuple(body.get("permissions", ())),
                    relations=MappingProxyType(dict(body.get("relations", {}))),
                    rules=rules,
                )
            )
        return cls.from_blocks(*blocks, actor_type=data.get("actor", "User"))

    @property
    def global_block(self) -> ResourceBlock | None:
        return self.blocks.get(GLOBAL)

    def block(self, resource_type: str) -> ResourceBlock:
        """Return the block for *resource_type*.

        Raises:
            PolicyCompilationError: If the type is not declared.
        """
        try:
            return self.blocks[resource_type]
        except KeyError:
            raise PolicyCompilationError(
                f"Resource type {resource_type!r} is not declared in the policy"
            ) from None

    def declares(self, resource_type: str, name: str) -> bool:
        """Return True if *name* is a role or permission of *resource_type*."""
        block = self.blocks.get(resource_type)
        return block is not None and block.declares(name)

    def roles_of(self, resource_type: str) -> tuple[str, ...]:
        block = self.blocks.get(resource_type)
        return block.roles if block is not None else ()

    def validate(self, facts: FactConfig | None = None) -> None:
        """Check internal consistency, and consistency with *facts* if given.

        Every rule must grant a declared role or permission, and every
        condition must reference declared roles and relations.  With
        *facts*, every role assignment, relation and attribute the policy
        relies on must have a fact query.

        Raises:
            PolicyCompilationError: Listing every problem found.
        """
        problems = list(self._problems())
        if facts is not None:
            problems.extend(self._fact_problems(facts))
        if problems:
            raise PolicyCompilationError("Invalid policy: " + "; ".join(problems))

    def _problems(self) -> Iterable[str]:
        global_roles = self.global_block.roles if self.global_block is not None else ()
        for block in self.blocks.values():
            for related in block.relations.values():
                if related not in self.blocks:
                    yield f"{block.name} relates to undeclared resource {related!r}"
            for rule in block.rules:
                if not block.declares(rule.grant):
                    yield f"{block.name} rule grants undeclared {rule.grant!r}"
                if rule.global_role is not None and rule.global_role not in global_roles:
                    yield f"{block.name} rule uses undeclared global role {rule.global_role!r}"
                if rule.role is None:
                    continue
                if rule.on is None:
                    if rule.role not in block.roles:
                        yield f"{block.name} rule uses undeclared role {rule.role!r}"
                    continue
                related = block.relations.get(rule.on)
                if related is None:
                    yield f"{block.name} rule uses undeclared relation {rule.on!r}"
                elif rule.role not in self.roles_of(related):
                    yield f"{block.name} rule uses role {rule.role!r} not declared on {related}"

    def _fact_problems(self, facts: FactConfig) -> Iterable[str]:
        for block in self.blocks.values():
            if block.name == GLOBAL:
                if block.roles and facts.global_roles is None:
                    yield "no has_role fact for global roles"
                continue
            if block.roles and block.name not in facts.roles:
                yield f"no has_role fact for {block.name}"
            for rule in block.rules:
                if rule.on is not None:
                    related = block.relations.get(rule.on)
                    key = (block.name, rule.on, related)
                    if related is not None and key not in facts.relations:
                        yield f"no has_relation fact for {block.name} {rule.on} {related}"
                if (
                    rule.attribute is not None
                    and (rule.attribute, block.name) not in facts.attributes
                ):
                    yield f"no is_{rule.attribute} fact for {block.name}"


def validate_policy(policy: PolicyDocument, facts: FactConfig | None = None) -> None:
    """Validate *policy*, and its fact configuration when given.

    Example::

        validate_policy(load_policy("policy.yaml"), load_facts("facts.yaml"))
    """
    policy.validate(facts)

"""Tests for the records policy, fact mapping and resource registration."""

from __future__ import annotations

import pytest
from sqlalchemy import Enum, Engine

import records.policy as records_policy
from records import build_context, build_evaluator
from records.policy import build_facts, build_policy, register_resources, verify_role_enums
from sqla_rebac import Resource, Subject, can
from sqla_rebac.exceptions import PolicyCompilationError
from sqla_rebac.policy import ResourceRegistry, get_default_registry
from sqla_rebac.testing import policy_matrix


class TestPolicy:
    def test_validates_against_facts(self) -> None:
        build_policy().validate(build_facts())

    def test_every_permission_reachable(self) -> None:
        matrix = policy_matrix(build_policy())
        assert matrix.uncovered == []

    def test_role_enums_in_sync(self) -> None:
        verify_role_enums()

    def test_role_enum_drift(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(
            records_policy,
            "organization_role",
            Enum("member", "admin", "auditor", name="organization_role"),
        )
        with pytest.raises(PolicyCompilationError, match="organization_role"):
            verify_role_enums()


class TestGlobalOrganization:
    def test_membership_of_global_org_is_global(self, engine: Engine) -> None:
        evaluator = build_evaluator(engine)
        root = Subject("User", "root")
        assert can(evaluator, root, "create_org", Resource.global_())
        assert can(evaluator, root, "edit_role", Resource("User", "erin"))

    def test_org_admin_is_not_global(self, engine: Engine) -> None:
        evaluator = build_evaluator(engine)
        assert not can(evaluator, Subject("User", "bob"), "create_org", Resource.global_())


class TestRegistration:
    def test_register_into_fresh_registry(self) -> None:
        registry = register_resources(ResourceRegistry())
        assert registry.lookup("User").column_ref == "users.username"
        assert registry.lookup("Document").column_ref == "documents.id"

    def test_registering_twice_is_harmless(self) -> None:
        registry = register_resources(ResourceRegistry())
        assert register_resources(registry) is registry

    def test_build_context_uses_given_registry(self, engine: Engine) -> None:
        registry = ResourceRegistry()
        ctx = build_context(engine, "bob", resources=registry)
        assert ctx.resources is registry
        assert ctx.subject == Subject("User", "bob")
        assert registry.has_resource("Organization")

    def test_build_context_leaves_default_registry_alone(
        self, engine: Engine, isolated_authz_state
    ) -> None:
        ctx = build_context(engine, "bob")
        assert ctx.resources is not get_default_registry()
        assert ctx.resources.has_resource("User")
        assert not get_default_registry().has_resource("User")

"""Tests for list_with_permissions()."""

from __future__ import annotations

import logging

import pytest
from sqlalchemy import Engine, event

from records.schema import documents, users
from sqla_rebac import (
    AuthzConfig,
    LocalPolicyEvaluator,
    PermissionVector,
    Subject,
    list_with_permissions,
)
from sqla_rebac.exceptions import IntegrityError, PolicyCompilationError
from sqla_rebac.policy import ResourceRegistry
from sqla_rebac.testing import (
    RecordingEvaluator,
    StaticEvaluator,
    assert_listed,
    assert_not_listed,
    make_anonymous,
)


TRANSACTION_CONTROL = ("BEGIN", "SAVEPOINT", "RELEASE", "COMMIT", "ROLLBACK")


@pytest.fixture()
def statements(engine: Engine) -> list[str]:
    seen: list[str] = []

    @event.listens_for(engine, "before_cursor_execute")
    def _record(conn, cursor, statement, parameters, context, executemany):  # type: ignore[no-untyped-def]
        if not statement.lstrip().upper().startswith(TRANSACTION_CONTROL):
            seen.append(statement)

    return seen


class TestUserListing:
    def test_admin_sees_org_and_can_manage(
        self,
        engine: Engine,
        evaluator: LocalPolicyEvaluator,
        registry: ResourceRegistry,
        bob: Subject,
    ) -> None:
        listing = list_with_permissions(
            engine,
            bob,
            "User",
            ["edit_role", "delete"],
            evaluator=evaluator,
            resources=registry,
            extract_self=True,
        )
        assert_listed(listing, ["alice", "carol"], exact=True)
        assert listing.this_subject is not None
        assert listing.this_subject.identity == "bob"
        for row in listing:
            assert row.allows("edit_role")
            assert row.allows("delete")
            assert row["org"] == "acme"

    def test_member_sees_org_without_management(
        self,
        engine: Engine,
        evaluator: LocalPolicyEvaluator,
        registry: ResourceRegistry,
        alice: Subject,
    ) -> None:
        listing = list_with_permissions(
            engine,
            alice,
            "User",
            ["edit_role", "delete"],
            evaluator=evaluator,
            resources=registry,
            extract_self=True,
        )
        assert listing.identities() == ["bob", "carol"]
        assert all(not row.allows("edit_role") for row in listing)
        assert all(not row.allows("delete") for row in listing)
        assert_not_listed(listing, ["alice", "dave", "erin", "root"])

    def test_global_admin_sees_everyone(
        self,
        engine: Engine,
        evaluator: LocalPolicyEvaluator,
        registry: ResourceRegistry,
        root: Subject,
    ) -> None:
        listing = list_with_permissions(
            engine, root, "User", ["edit_role"], evaluator=evaluator, resources=registry
        )
        assert listing.identities() == ["alice", "bob", "carol", "dave", "erin", "root"]
        assert all(row.allows("edit_role") for row in listing)
        assert listing.this_subject is None

    def test_self_missing_is_integrity_error(
        self, engine: Engine, evaluator: LocalPolicyEvaluator, registry: ResourceRegistry
    ) -> None:
        with pytest.raises(IntegrityError, match="exactly once"):
            list_with_permissions(
                engine,
                make_anonymous(),
                "User",
                evaluator=evaluator,
                resources=registry,
                extract_self=True,
            )

    def test_extract_self_needs_subject_type(
        self,
        engine: Engine,
        evaluator: LocalPolicyEvaluator,
        registry: ResourceRegistry,
        bob: Subject,
    ) -> None:
        with pytest.raises(ValueError, match="Cannot extract"):
            list_with_permissions(
                engine, bob, "Document", evaluator=evaluator, resources=registry, extract_self=True
            )

    def test_duplicate_extra_permissions(
        self,
        engine: Engine,
        evaluator: LocalPolicyEvaluator,
        registry: ResourceRegistry,
        bob: Subject,
    ) -> None:
        with pytest.raises(ValueError, match="Duplicate"):
            list_with_permissions(
                engine, bob, "User", ["delete", "delete"], evaluator=evaluator, resources=registry
            )

    def test_unregistered_type(
        self, engine: Engine, evaluator: LocalPolicyEvaluator, bob: Subject
    ) -> None:
        with pytest.raises(PolicyCompilationError, match="No table registered"):
            list_with_permissions(
                engine, bob, "User", evaluator=evaluator, resources=ResourceRegistry()
            )

    def test_undeclared_extra_permission(
        self,
        engine: Engine,
        evaluator: LocalPolicyEvaluator,
        registry: ResourceRegistry,
        bob: Subject,
    ) -> None:
        with pytest.raises(PolicyCompilationError, match="not declared"):
            list_with_permissions(
                engine, bob, "User", ["publish"], evaluator=evaluator, resources=registry
            )

    def test_custom_order(
        self,
        engine: Engine,
        evaluator: LocalPolicyEvaluator,
        registry: ResourceRegistry,
        bob: Subject,
    ) -> None:
        listing = list_with_permissions(
            engine,
            bob,
            "User",
            evaluator=evaluator,
            resources=registry,
            order_by=[users.c.username.desc()],
        )
        assert listing.identities() == ["carol", "bob", "alice"]


class TestDocumentListing:
    PERMISSIONS = ["edit", "manage_share", "set_public", "delete"]

    def _listing(self, engine, evaluator, registry, username):  # type: ignore[no-untyped-def]
        return list_with_permissions(
            engine,
            Subject("User", username),
            "Document",
            self.PERMISSIONS,
            evaluator=evaluator,
            resources=registry,
        )

    def test_member_reads_shared_and_public(
        self, engine: Engine, evaluator: LocalPolicyEvaluator, registry: ResourceRegistry
    ) -> None:
        listing = self._listing(engine, evaluator, registry, "alice")
        assert listing.identities() == [1, 2, 3]
        assert not any(row.allows(p) for row in listing for p in self.PERMISSIONS)

    def test_owner_vector(
        self, engine: Engine, evaluator: LocalPolicyEvaluator, registry: ResourceRegistry
    ) -> None:
        listing = self._listing(engine, evaluator, registry, "dave")
        by_id = {row.identity: row for row in listing}
        assert sorted(by_id) == [2, 3]
        assert all(by_id[3].allows(p) for p in self.PERMISSIONS)
        assert not any(by_id[2].allows(p) for p in self.PERMISSIONS)
        assert by_id[2]["title"] == "Acme handbook"

    def test_outsider_sees_public_only(
        self, engine: Engine, evaluator: LocalPolicyEvaluator, registry: ResourceRegistry
    ) -> None:
        listing = self._listing(engine, evaluator, registry, "erin")
        assert listing.identities() == [2, 3]
        assert listing.rows[0].permissions == dict.fromkeys(self.PERMISSIONS, False)


class TestSnapshot:
    def test_one_statement(
        self,
        engine: Engine,
        evaluator: LocalPolicyEvaluator,
        registry: ResourceRegistry,
        bob: Subject,
        statements: list[str],
    ) -> None:
        list_with_permissions(
            engine, bob, "User", ["edit_role", "delete"], evaluator=evaluator, resources=registry
        )
        assert len(statements) == 1
        assert statements[0].lstrip().upper().startswith("SELECT")

    def test_fragments_compiled_before_query(
        self,
        engine: Engine,
        evaluator: LocalPolicyEvaluator,
        registry: ResourceRegistry,
        bob: Subject,
        statements: list[str],
    ) -> None:
        executed_at_compile: list[int] = []
        recorder = RecordingEvaluator(
            evaluator, after_compile=lambda fragment: executed_at_compile.append(len(statements))
        )
        list_with_permissions(
            engine, bob, "User", ["edit_role", "delete"], evaluator=recorder, resources=registry
        )
        assert [c[1] for c in recorder.compiled] == ["read", "edit_role", "delete"]
        assert executed_at_compile == [0, 0, 0]
        assert all(c[3].embedded for c in recorder.compiled)

    def test_static_evaluator_fragment(
        self, engine: Engine, registry: ResourceRegistry, bob: Subject
    ) -> None:
        listing = list_with_permissions(
            engine,
            bob,
            "Document",
            ["edit"],
            evaluator=StaticEvaluator(list_sql="documents.public = 1"),
            resources=registry,
        )
        assert listing.identities() == [2]
        assert listing.rows[0].allows("edit")

    def test_logs_listing(
        self,
        engine: Engine,
        evaluator: LocalPolicyEvaluator,
        registry: ResourceRegistry,
        bob: Subject,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        with caplog.at_level(logging.INFO, logger="sqla_rebac"):
            list_with_permissions(
                engine,
                bob,
                "User",
                evaluator=evaluator,
                resources=registry,
                config=AuthzConfig(log_policy_decisions=True),
            )
        assert "Listed 3 User row(s) readable by User 'bob'" in caplog.text


class TestPermissionVector:
    def test_accessors(self) -> None:
        row = PermissionVector(
            identity=7, fields={"id": 7, "title": "Plan"}, permissions={"edit": True}
        )
        assert row["title"] == "Plan"
        assert row.allows("edit")
        assert not row.allows("delete")
        with pytest.raises(KeyError):
            row["missing"]

    def test_document_columns_present(
        self,
        engine: Engine,
        evaluator: LocalPolicyEvaluator,
        registry: ResourceRegistry,
        bob: Subject,
    ) -> None:
        listing = list_with_permissions(
            engine, bob, "Document", evaluator=evaluator, resources=registry
        )
        assert set(listing.rows[0].fields) == set(documents.c.keys())

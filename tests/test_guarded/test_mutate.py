"""Tests for guarded_mutate()."""

from __future__ import annotations

import logging

import pytest
from sqlalchemy import Connection, Engine, insert, select

from records.schema import organizations, users
from sqla_rebac import AuthzConfig, LocalPolicyEvaluator, Resource, Subject, guarded_mutate
from sqla_rebac.exceptions import AuthorizationError, DataAccessError, EvaluatorUnavailable
from sqla_rebac.testing import RecordingEvaluator, StaticEvaluator

ACME = Resource("Organization", "acme")


def _user_exists(engine: Engine, username: str) -> bool:
    with engine.connect() as conn:
        return (
            conn.execute(select(users.c.username).where(users.c.username == username)).first()
            is not None
        )


def _insert_user(username: str, org: str = "acme"):  # type: ignore[no-untyped-def]
    def mutation(conn: Connection) -> str:
        conn.execute(insert(users).values(username=username, org=org, role="member"))
        return username

    return mutation


class TestGuardedMutate:
    def test_global_admin_creates_user(
        self, engine: Engine, evaluator: LocalPolicyEvaluator, root: Subject
    ) -> None:
        result = guarded_mutate(
            engine, root, "create_user", ACME, _insert_user("zoe"), evaluator=evaluator
        )
        assert result == "zoe"
        assert _user_exists(engine, "zoe")

    def test_denied_member_writes_nothing(
        self, engine: Engine, evaluator: LocalPolicyEvaluator, alice: Subject
    ) -> None:
        called: list[Connection] = []

        def mutation(conn: Connection) -> None:
            called.append(conn)

        with pytest.raises(AuthorizationError) as exc_info:
            guarded_mutate(engine, alice, "create_user", ACME, mutation, evaluator=evaluator)
        assert called == []
        assert exc_info.value.resource_id == "acme"
        assert exc_info.value.action == "create_user"

    def test_check_runs_on_mutation_connection(
        self, engine: Engine, evaluator: LocalPolicyEvaluator, bob: Subject
    ) -> None:
        recorder = RecordingEvaluator(evaluator)
        seen: list[Connection] = []

        def mutation(conn: Connection) -> None:
            seen.append(conn)

        guarded_mutate(engine, bob, "create_user", ACME, mutation, evaluator=recorder)
        assert recorder.checks == [(bob, "create_user", ACME, True)]
        assert len(seen) == 1

    def test_sql_failure_rolls_back(
        self, engine: Engine, evaluator: LocalPolicyEvaluator, bob: Subject
    ) -> None:
        def mutation(conn: Connection) -> None:
            conn.execute(insert(users).values(username="zoe", org="acme", role="member"))
            conn.execute(insert(users).values(username="bob", org="acme", role="member"))

        with pytest.raises(DataAccessError, match="create_user Organization"):
            guarded_mutate(engine, bob, "create_user", ACME, mutation, evaluator=evaluator)
        assert not _user_exists(engine, "zoe")

    def test_foreign_key_enforced(
        self, engine: Engine, evaluator: LocalPolicyEvaluator, root: Subject
    ) -> None:
        with pytest.raises(DataAccessError):
            guarded_mutate(
                engine,
                root,
                "create_user",
                ACME,
                _insert_user("zoe", org="initech"),
                evaluator=evaluator,
            )
        assert not _user_exists(engine, "zoe")

    def test_evaluator_unavailable(self, engine: Engine, bob: Subject) -> None:
        with pytest.raises(EvaluatorUnavailable):
            guarded_mutate(
                engine,
                bob,
                "create_user",
                ACME,
                _insert_user("zoe"),
                evaluator=StaticEvaluator(unavailable=True),
            )
        assert not _user_exists(engine, "zoe")

    def test_check_sees_caller_transaction(
        self, engine: Engine, evaluator: LocalPolicyEvaluator
    ) -> None:
        # zoe only becomes an admin inside the caller's uncommitted transaction.
        zoe = Subject("User", "zoe")
        with engine.connect() as conn:
            with conn.begin():
                conn.execute(insert(organizations).values(name="initech"))
                conn.execute(insert(users).values(username="zoe", org="initech", role="admin"))
                guarded_mutate(
                    conn,
                    zoe,
                    "create_user",
                    Resource("Organization", "initech"),
                    _insert_user("yuri", org="initech"),
                    evaluator=evaluator,
                )
        assert _user_exists(engine, "yuri")

    def test_denial_inside_caller_transaction_keeps_outer_work(
        self, engine: Engine, evaluator: LocalPolicyEvaluator, alice: Subject
    ) -> None:
        with engine.connect() as conn:
            with conn.begin():
                conn.execute(insert(organizations).values(name="initech"))
                with pytest.raises(AuthorizationError):
                    guarded_mutate(
                        conn, alice, "create_user", ACME, _insert_user("zoe"), evaluator=evaluator
                    )
        with engine.connect() as conn:
            names = set(conn.execute(select(organizations.c.name)).scalars())
        assert "initech" in names
        assert not _user_exists(engine, "zoe")

    def test_logs_commit(
        self,
        engine: Engine,
        evaluator: LocalPolicyEvaluator,
        bob: Subject,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        with caplog.at_level(logging.INFO, logger="sqla_rebac"):
            guarded_mutate(
                engine,
                bob,
                "create_user",
                ACME,
                _insert_user("zoe"),
                evaluator=evaluator,
                config=AuthzConfig(log_policy_decisions=True),
            )
        assert "Guarded create_user on Organization 'acme' by User 'bob' committed" in caplog.text

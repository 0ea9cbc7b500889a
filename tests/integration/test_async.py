"""Async integration tests: the guarded operations over aiosqlite."""

from __future__ import annotations

import asyncio

import pytest
import pytest_asyncio
from sqlalchemy import Connection, Engine, insert, select, text
from sqlalchemy.ext.asyncio import AsyncEngine

from records.db import create_async_records_engine
from records.schema import documents, users
from sqla_rebac import (
    AsyncConnectionScope,
    LocalPolicyEvaluator,
    Resource,
    Subject,
    Target,
    guarded_batch_delete_async,
    guarded_batch_update_async,
    guarded_mutate_async,
    list_with_permissions_async,
)
from sqla_rebac.exceptions import AuthorizationError, DataAccessError
from sqla_rebac.policy import FactConfig, PolicyDocument, ResourceRegistry

SLOW_QUERY = (
    "WITH RECURSIVE n(x) AS (SELECT 1 UNION ALL SELECT x + 1 FROM n WHERE x < 5000000) "
    "SELECT count(*) FROM n"
)

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture()
async def async_engine(engine: Engine, db_url: str):
    """Async engine over the seeded database file of the ``engine`` fixture."""
    eng = create_async_records_engine(db_url.replace("sqlite://", "sqlite+aiosqlite://", 1))
    yield eng
    await eng.dispose()


@pytest.fixture()
def async_evaluator(
    async_engine: AsyncEngine, policy: PolicyDocument, facts: FactConfig
) -> LocalPolicyEvaluator:
    return LocalPolicyEvaluator(policy, facts, dialect=async_engine.dialect)


def _roles(engine: Engine) -> dict[str, str]:
    with engine.connect() as conn:
        return {r.username: r.role for r in conn.execute(select(users.c.username, users.c.role))}


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestListAsync:
    async def test_admin_listing(
        self,
        async_engine: AsyncEngine,
        async_evaluator: LocalPolicyEvaluator,
        registry: ResourceRegistry,
        bob: Subject,
    ) -> None:
        listing = await list_with_permissions_async(
            async_engine,
            bob,
            "User",
            ["edit_role", "delete"],
            evaluator=async_evaluator,
            resources=registry,
            extract_self=True,
        )
        assert listing.identities() == ["alice", "carol"]
        assert listing.this_subject is not None
        assert all(row.allows("delete") for row in listing)

    async def test_documents_on_borrowed_connection(
        self,
        async_engine: AsyncEngine,
        async_evaluator: LocalPolicyEvaluator,
        registry: ResourceRegistry,
    ) -> None:
        async with async_engine.connect() as conn:
            listing = await list_with_permissions_async(
                conn,
                Subject("User", "erin"),
                "Document",
                ["edit"],
                evaluator=async_evaluator,
                resources=registry,
            )
            assert not conn.closed
        assert listing.identities() == [2, 3]

    async def test_concurrent_listings(
        self,
        async_engine: AsyncEngine,
        async_evaluator: LocalPolicyEvaluator,
        registry: ResourceRegistry,
    ) -> None:
        listings = await asyncio.gather(
            *(
                list_with_permissions_async(
                    async_engine,
                    Subject("User", name),
                    "User",
                    evaluator=async_evaluator,
                    resources=registry,
                )
                for name in ("bob", "dave", "root")
            )
        )
        assert [len(listing) for listing in listings] == [3, 2, 6]


class TestMutateAsync:
    async def test_admin_creates_user(
        self,
        engine: Engine,
        async_engine: AsyncEngine,
        async_evaluator: LocalPolicyEvaluator,
        bob: Subject,
    ) -> None:
        def mutation(conn: Connection) -> str:
            conn.execute(insert(users).values(username="zoe", org="acme", role="member"))
            return "zoe"

        result = await guarded_mutate_async(
            async_engine,
            bob,
            "create_user",
            Resource("Organization", "acme"),
            mutation,
            evaluator=async_evaluator,
        )
        assert result == "zoe"
        assert "zoe" in _roles(engine)

    async def test_denied(
        self,
        engine: Engine,
        async_engine: AsyncEngine,
        async_evaluator: LocalPolicyEvaluator,
        alice: Subject,
    ) -> None:
        def mutation(conn: Connection) -> None:
            conn.execute(insert(users).values(username="zoe", org="acme", role="member"))

        with pytest.raises(AuthorizationError):
            await guarded_mutate_async(
                async_engine,
                alice,
                "create_user",
                Resource("Organization", "acme"),
                mutation,
                evaluator=async_evaluator,
            )
        assert "zoe" not in _roles(engine)

    async def test_timeout_rolls_back_and_releases(
        self,
        engine: Engine,
        async_engine: AsyncEngine,
        async_evaluator: LocalPolicyEvaluator,
        bob: Subject,
    ) -> None:
        def mutation(conn: Connection) -> None:
            conn.execute(insert(users).values(username="zoe", org="acme", role="member"))
            conn.execute(text(SLOW_QUERY))

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(
                guarded_mutate_async(
                    async_engine,
                    bob,
                    "create_user",
                    Resource("Organization", "acme"),
                    mutation,
                    evaluator=async_evaluator,
                ),
                timeout=0.05,
            )
        assert async_engine.sync_engine.pool.checkedout() == 0
        assert "zoe" not in _roles(engine)


class TestBatchAsync:
    async def test_update(
        self,
        engine: Engine,
        async_engine: AsyncEngine,
        async_evaluator: LocalPolicyEvaluator,
        registry: ResourceRegistry,
        bob: Subject,
    ) -> None:
        updated = await guarded_batch_update_async(
            async_engine,
            bob,
            "edit_role",
            "User",
            [Target("alice", {"role": "admin"}), Target("carol", {"role": "admin"})],
            evaluator=async_evaluator,
            resources=registry,
            exclude_self=True,
        )
        assert updated == 2
        assert _roles(engine)["carol"] == "admin"

    async def test_partial_update_rolls_back(
        self,
        engine: Engine,
        async_engine: AsyncEngine,
        async_evaluator: LocalPolicyEvaluator,
        registry: ResourceRegistry,
        bob: Subject,
    ) -> None:
        before = _roles(engine)
        with pytest.raises(AuthorizationError):
            await guarded_batch_update_async(
                async_engine,
                bob,
                "edit_role",
                "User",
                [Target("alice", {"role": "admin"}), Target("erin", {"role": "admin"})],
                evaluator=async_evaluator,
                resources=registry,
            )
        assert _roles(engine) == before

    async def test_delete(
        self,
        engine: Engine,
        async_engine: AsyncEngine,
        async_evaluator: LocalPolicyEvaluator,
        registry: ResourceRegistry,
        dave: Subject,
    ) -> None:
        deleted = await guarded_batch_delete_async(
            async_engine,
            dave,
            "delete",
            "Document",
            [Target(3)],
            evaluator=async_evaluator,
            resources=registry,
        )
        assert deleted == 1
        with engine.connect() as conn:
            assert set(conn.execute(select(documents.c.id)).scalars()) == {1, 2}


class TestAsyncConnectionScope:
    async def test_sql_error_becomes_data_access_error(self, async_engine: AsyncEngine) -> None:
        with pytest.raises(DataAccessError, match="Database error during lookup"):
            async with AsyncConnectionScope(async_engine, operation="lookup") as scope:
                await scope.connection.execute(text("SELECT * FROM missing_table"))

    async def test_uncommitted_work_rolled_back(
        self, engine: Engine, async_engine: AsyncEngine
    ) -> None:
        async with AsyncConnectionScope(async_engine) as scope:
            await scope.connection.execute(
                insert(users).values(username="zoe", org="acme", role="member")
            )
        assert "zoe" not in _roles(engine)

    async def test_inactive_scope(self, async_engine: AsyncEngine) -> None:
        scope = AsyncConnectionScope(async_engine)
        with pytest.raises(RuntimeError, match="not active"):
            scope.connection

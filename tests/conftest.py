"""Shared test fixtures for sqla-rebac tests.

Every test gets its own SQLite file seeded with two organizations:

=========  =========  ======  ========================================
username   org        role    notes
=========  =========  ======  ========================================
root       ``_``      admin   global administrator
bob        acme       admin
alice      acme       member  viewer of globex document 3 (shared)
carol      acme       member
dave       globex     admin   owner of document 3
erin       globex     member
=========  =========  ======  ========================================

Documents: 1 "Acme plan" (acme, owned by bob), 2 "Acme handbook" (acme,
public), 3 "Globex memo" (globex, owned by dave).
"""

from __future__ import annotations

from collections.abc import Generator

import pytest
from sqlalchemy import Engine, insert

from records.db import create_records_engine, init_db
from records.policy import build_facts, build_policy, register_resources
from records.schema import document_user_roles, documents, organizations, users
from sqla_rebac import LocalPolicyEvaluator, Subject
from sqla_rebac.policy import FactConfig, PolicyDocument, ResourceRegistry
from sqla_rebac.session import AuthorizationContext, transaction_scope
from sqla_rebac.testing._fixtures import (  # noqa: F401
    authz_config,
    isolated_authz_state,
    resource_registry,
)

# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------

SEED_USERS = [
    {"username": "bob", "org": "acme", "role": "admin"},
    {"username": "alice", "org": "acme", "role": "member"},
    {"username": "carol", "org": "acme", "role": "member"},
    {"username": "dave", "org": "globex", "role": "admin"},
    {"username": "erin", "org": "globex", "role": "member"},
]

ALL_USERNAMES = ["root"] + [u["username"] for u in SEED_USERS]


def seed(engine: Engine) -> None:
    with transaction_scope(engine, operation="seed") as conn:
        conn.execute(insert(organizations), [{"name": "acme"}, {"name": "globex"}])
        conn.execute(insert(users), SEED_USERS)
        conn.execute(
            insert(documents),
            [
                {"id": 1, "org": "acme", "title": "Acme plan", "public": False},
                {"id": 2, "org": "acme", "title": "Acme handbook", "public": True},
                {"id": 3, "org": "globex", "title": "Globex memo", "public": False},
            ],
        )
        conn.execute(
            insert(document_user_roles),
            [
                {"document_id": 1, "username": "bob", "role": "owner"},
                {"document_id": 3, "username": "dave", "role": "owner"},
                {"document_id": 3, "username": "alice", "role": "viewer"},
            ],
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def db_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'records.db'}"


@pytest.fixture()
def engine(db_url: str) -> Generator[Engine, None, None]:
    """A seeded SQLite database, one file per test."""
    eng = create_records_engine(db_url)
    init_db(eng)
    seed(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def policy() -> PolicyDocument:
    return build_policy()


@pytest.fixture()
def facts() -> FactConfig:
    return build_facts()


@pytest.fixture()
def evaluator(engine: Engine, policy: PolicyDocument, facts: FactConfig) -> LocalPolicyEvaluator:
    return LocalPolicyEvaluator(policy, facts, engine=engine)


@pytest.fixture()
def registry() -> ResourceRegistry:
    """Fresh registry with the records tables, separate from the default one."""
    return register_resources(ResourceRegistry())


@pytest.fixture()
def bob() -> Subject:
    return Subject("User", "bob")


@pytest.fixture()
def alice() -> Subject:
    return Subject("User", "alice")


@pytest.fixture()
def root() -> Subject:
    return Subject("User", "root")


@pytest.fixture()
def dave() -> Subject:
    return Subject("User", "dave")


@pytest.fixture()
def context_for(evaluator: LocalPolicyEvaluator, registry: ResourceRegistry):
    """Build an ``AuthorizationContext`` for a username."""

    def _make(username: str) -> AuthorizationContext:
        return AuthorizationContext(
            subject=Subject("User", username), evaluator=evaluator, resources=registry
        )

    return _make

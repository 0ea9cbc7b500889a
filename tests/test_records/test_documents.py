"""Tests for the records document services."""

from __future__ import annotations

import pytest
from sqlalchemy import Engine, select

from records.documents import (
    create_document,
    delete_document,
    get_readable_documents_with_permissions,
    set_document_public,
    share_document,
)
from records.schema import document_user_roles, documents
from sqla_rebac.exceptions import AuthorizationError


def _grants(engine: Engine, doc_id: int) -> dict[str, str]:
    with engine.connect() as conn:
        rows = conn.execute(
            select(document_user_roles.c.username, document_user_roles.c.role).where(
                document_user_roles.c.document_id == doc_id
            )
        )
        return {r.username: r.role for r in rows}


def _public(engine: Engine, doc_id: int) -> bool:
    with engine.connect() as conn:
        return conn.execute(select(documents.c.public).where(documents.c.id == doc_id)).scalar_one()


class TestCreateDocument:
    def test_member_creates_and_owns(self, engine: Engine, context_for) -> None:
        result = create_document(engine, context_for("carol"), org="acme", title="Notes")
        assert result.success
        assert result.value == 4
        assert _grants(engine, 4) == {"carol": "owner"}

        listing = get_readable_documents_with_permissions(engine, context_for("carol"))
        row = next(r for r in listing if r.identity == 4)
        assert row.allows("delete")

    def test_outsider_denied(self, engine: Engine, context_for) -> None:
        result = create_document(engine, context_for("erin"), org="acme", title="Notes")
        assert result.error == "not permitted to create documents in Organization acme"
        with engine.connect() as conn:
            assert conn.execute(select(documents.c.id).where(documents.c.id == 4)).first() is None


class TestReadableDocuments:
    def test_org_admin_manages_org_documents(self, engine: Engine, context_for) -> None:
        listing = get_readable_documents_with_permissions(engine, context_for("bob"))
        assert listing.identities() == [1, 2]
        assert all(row.allows("manage_share") for row in listing)

    def test_viewer_share(self, engine: Engine, context_for) -> None:
        listing = get_readable_documents_with_permissions(engine, context_for("alice"))
        by_id = {row.identity: row for row in listing}
        assert by_id[3]["title"] == "Globex memo"
        assert not by_id[3].allows("edit")


class TestShareDocument:
    def test_owner_shares(self, engine: Engine, context_for) -> None:
        result = share_document(engine, context_for("dave"), 3, username="alice", role="editor")
        assert result.success
        assert _grants(engine, 3) == {"dave": "owner", "alice": "editor"}

    def test_viewer_cannot_share(self, engine: Engine, context_for) -> None:
        result = share_document(engine, context_for("alice"), 3, username="carol", role="viewer")
        assert result.error == "not permitted to share Document 3"
        assert "carol" not in _grants(engine, 3)

    def test_invalid_role(self, engine: Engine, context_for) -> None:
        result = share_document(engine, context_for("dave"), 3, username="alice", role="admin")
        assert result.error == "invalid role 'admin'"

    def test_shared_editor_can_edit(self, engine: Engine, context_for) -> None:
        share_document(engine, context_for("bob"), 1, username="carol", role="editor")
        listing = get_readable_documents_with_permissions(engine, context_for("carol"))
        row = next(r for r in listing if r.identity == 1)
        assert row.allows("edit")
        assert not row.allows("manage_share")


class TestPublication:
    def test_manager_publishes(self, engine: Engine, context_for) -> None:
        set_document_public(engine, context_for("dave"), 3, True)
        assert _public(engine, 3) is True

        listing = get_readable_documents_with_permissions(engine, context_for("bob"))
        assert 3 in listing.identities()

    def test_member_denied(self, engine: Engine, context_for) -> None:
        with pytest.raises(AuthorizationError):
            set_document_public(engine, context_for("carol"), 1, True)
        assert _public(engine, 1) is False


class TestDeleteDocument:
    def test_owner_deletes(self, engine: Engine, context_for) -> None:
        delete_document(engine, context_for("dave"), 3)
        assert _grants(engine, 3) == {}
        listing = get_readable_documents_with_permissions(engine, context_for("dave"))
        assert listing.identities() == [2]

    def test_viewer_denied(self, engine: Engine, context_for) -> None:
        with pytest.raises(AuthorizationError):
            delete_document(engine, context_for("alice"), 3)
        assert "dave" in _grants(engine, 3)

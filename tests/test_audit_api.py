"""Tests for the admin audit trail endpoints."""

import pytest

from docvault.models.enums import Role


@pytest.fixture()
def redeemed_twice(client, make_user, make_company, make_document, auth_headers):
    """A document whose PREVIEW token was redeemed, then replayed."""
    owner = make_user()
    document = make_document(make_company(owner), owner)
    token = client.post(
        f"/api/documents/{document.id}/generate-token",
        json={"purpose": "PREVIEW"},
        headers=auth_headers(owner),
    ).json()["token"]
    assert client.get(f"/api/documents/stream/{token}").status_code == 200
    assert client.get(f"/api/documents/stream/{token}").status_code == 404
    return owner, document, token


class TestAuditApi:

    def test_admin_reads_redemption_trail(self, client, make_user, auth_headers, redeemed_twice):
        owner, document, token = redeemed_twice
        admin = make_user(role=Role.ADMIN)

        resp = client.get(f"/api/audit/document/{document.id}", headers=auth_headers(admin))
        assert resp.status_code == 200
        entries = resp.json()

        assert [e["action"] for e in entries] == ["TOKEN_REJECTED", "DOCUMENT_PREVIEWED"]
        rejected, previewed = entries
        assert rejected["status"] == "FAILURE"
        assert rejected["details"]["reason"] == "already_used"
        assert previewed["status"] == "SUCCESS"
        assert previewed["user_id"] == owner.id
        for entry in entries:
            assert entry["details"]["token"] == token[:8] + "..."
            assert token not in str(entry)

    def test_recent_filtered_by_action(self, client, make_user, auth_headers, redeemed_twice):
        admin = make_user(role=Role.SUPER_ADMIN)
        resp = client.get("/api/audit", params={"action": "TOKEN_REJECTED"}, headers=auth_headers(admin))
        assert [e["action"] for e in resp.json()] == ["TOKEN_REJECTED"]

        everything = client.get("/api/audit", params={"limit": 1}, headers=auth_headers(admin)).json()
        assert len(everything) == 1

    @pytest.mark.parametrize("role", [Role.EMPLOYEE, Role.SUPERVISOR, Role.AUDITOR])
    def test_non_admins_are_forbidden(self, client, make_user, auth_headers, role):
        assert client.get("/api/audit", headers=auth_headers(make_user(role=role))).status_code == 403

"""Tests for the token issuance and redemption endpoints."""

import json

import pytest

from docvault.models import AuditLog, DeliveryToken
from docvault.models.enums import PermissionLevel

GENERIC_MESSAGE = "Link is invalid or has expired"


@pytest.fixture()
def setup(make_user, make_company, make_document):
    owner = make_user()
    company = make_company(owner)
    document = make_document(company, owner, name="Q3 report.pdf", data=b"%PDF-1.4 numbers")
    return owner, company, document


def _issue(client, headers, document_id, purpose):
    resp = client.post(
        f"/api/documents/{document_id}/generate-token",
        json={"purpose": purpose},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


class TestGenerateToken:

    def test_response_shape(self, client, setup, auth_headers):
        owner, _, document = setup
        body = _issue(client, auth_headers(owner), document.id, "PREVIEW")

        assert set(body) == {"token", "url", "expiresAt", "purpose", "expiresIn"}
        assert len(body["token"]) == 64
        assert body["url"] == f"http://testserver/api/documents/stream/{body['token']}"
        assert body["purpose"] == "PREVIEW"
        assert body["expiresIn"] == "5 minutes"

    def test_requires_authentication(self, client, setup):
        _, _, document = setup
        resp = client.post(f"/api/documents/{document.id}/generate-token", json={"purpose": "PREVIEW"})
        assert resp.status_code == 401

    def test_forbidden_is_specific(self, client, setup, make_user, auth_headers):
        _, _, document = setup
        resp = client.post(
            f"/api/documents/{document.id}/generate-token",
            json={"purpose": "DOWNLOAD"},
            headers=auth_headers(make_user()),
        )
        assert resp.status_code == 403
        assert resp.json()["error"] == "FORBIDDEN"

    def test_not_found_is_specific(self, client, setup, auth_headers):
        owner, _, _ = setup
        resp = client.post(
            "/api/documents/nope/generate-token",
            json={"purpose": "DOWNLOAD"},
            headers=auth_headers(owner),
        )
        assert resp.status_code == 404
        assert resp.json()["error"] == "DOCUMENT_NOT_FOUND"

    def test_invalid_purpose(self, client, setup, auth_headers):
        owner, _, document = setup
        resp = client.post(
            f"/api/documents/{document.id}/generate-token",
            json={"purpose": "EDIT"},
            headers=auth_headers(owner),
        )
        assert resp.status_code == 422


class TestRedemption:

    def test_preview_streams_inline(self, client, setup, auth_headers):
        owner, _, document = setup
        token = _issue(client, auth_headers(owner), document.id, "PREVIEW")["token"]

        resp = client.get(f"/api/documents/stream/{token}")
        assert resp.status_code == 200
        assert resp.content == b"%PDF-1.4 numbers"
        assert resp.headers["content-type"].startswith("application/pdf")
        assert resp.headers["content-disposition"].startswith("inline;")
        assert "Q3%20report.pdf" in resp.headers["content-disposition"]
        assert resp.headers["cache-control"] == "private, no-cache, no-store, must-revalidate"
        assert resp.headers["pragma"] == "no-cache"
        assert resp.headers["x-content-type-options"] == "nosniff"
        assert resp.headers["x-frame-options"] == "SAMEORIGIN"

    def test_download_is_attachment(self, client, setup, auth_headers):
        owner, _, document = setup
        token = _issue(client, auth_headers(owner), document.id, "DOWNLOAD")["token"]

        resp = client.get(f"/api/documents/download/{token}")
        assert resp.status_code == 200
        assert resp.headers["content-disposition"].startswith("attachment;")
        assert "x-frame-options" not in resp.headers

    def test_needs_no_credentials_but_only_works_once(self, client, setup, auth_headers):
        owner, _, document = setup
        token = _issue(client, auth_headers(owner), document.id, "DOWNLOAD")["token"]

        assert client.get(f"/api/documents/download/{token}").status_code == 200
        second = client.get(f"/api/documents/download/{token}")
        assert second.status_code == 404
        assert second.json()["message"] == GENERIC_MESSAGE

    @pytest.mark.parametrize("token", [
        "short",
        "G" * 64,
        "A" * 64,
        "a" * 63,
        "a" * 65,
    ])
    def test_malformed_tokens_are_rejected_and_audited(self, client, db, token):
        resp = client.get(f"/api/documents/stream/{token}", headers={"User-Agent": "scanner/1.0"})
        assert resp.status_code == 404
        assert resp.json() == {"error": "LINK_UNAVAILABLE", "message": GENERIC_MESSAGE, "details": {}}

        entry = db.query(AuditLog).filter_by(action="TOKEN_REJECTED").one()
        details = json.loads(entry.details)
        assert details == {"token": token[:8] + "...", "purpose": "PREVIEW", "reason": "malformed"}
        assert entry.resource_id is None
        assert entry.user_agent == "scanner/1.0"

    def test_failures_are_indistinguishable(self, client, db, setup, auth_headers):
        owner, _, document = setup
        headers = auth_headers(owner)
        unknown = client.get("/api/documents/download/" + "0" * 64)

        wrong_purpose_token = _issue(client, headers, document.id, "PREVIEW")["token"]
        wrong_purpose = client.get(f"/api/documents/download/{wrong_purpose_token}")

        expired_token = _issue(client, headers, document.id, "DOWNLOAD")["token"]
        row = db.query(DeliveryToken).filter_by(token=expired_token).one()
        row.expires_at = row.expires_at.replace(year=2000)
        db.commit()
        expired = client.get(f"/api/documents/download/{expired_token}")

        bodies = [r.json() for r in (unknown, wrong_purpose, expired)]
        assert {r.status_code for r in (unknown, wrong_purpose, expired)} == {404}
        assert bodies[0] == bodies[1] == bodies[2]

        reasons = sorted(
            json.loads(e.details)["reason"]
            for e in db.query(AuditLog).filter_by(action="TOKEN_REJECTED").all()
        )
        assert reasons == ["expired", "invalid", "purpose_mismatch"]

    def test_wrong_purpose_does_not_consume(self, client, setup, auth_headers):
        owner, _, document = setup
        token = _issue(client, auth_headers(owner), document.id, "PREVIEW")["token"]

        assert client.get(f"/api/documents/download/{token}").status_code == 404
        assert client.get(f"/api/documents/stream/{token}").status_code == 200

    def test_viewer_share_can_preview(
        self, client, setup, make_user, make_company_share, auth_headers
    ):
        _, company, document = setup
        viewer = make_user()
        make_company_share(company, viewer, PermissionLevel.VIEW)

        token = _issue(client, auth_headers(viewer), document.id, "PREVIEW")["token"]
        assert client.get(f"/api/documents/stream/{token}").status_code == 200

        replace = client.post(
            f"/api/documents/{document.id}/replace",
            files={"file": ("new.pdf", b"%PDF-1.4 changed", "application/pdf")},
            headers=auth_headers(viewer),
        )
        assert replace.status_code == 403

    def test_storage_failure_after_redeem(self, client, setup, blob_store, auth_headers):
        owner, _, document = setup
        token = _issue(client, auth_headers(owner), document.id, "DOWNLOAD")["token"]
        blob_store.fail = True

        resp = client.get(f"/api/documents/download/{token}")
        assert resp.status_code == 502
        assert resp.json()["error"] == "STORAGE_ERROR"

    def test_delivery_rate_limit(self, client):
        statuses = [
            client.get("/api/documents/download/" + "1" * 64).status_code
            for _ in range(6)
        ]
        assert statuses[:5] == [404] * 5
        assert statuses[5] == 429

"""Tests for the folder endpoints."""

import pytest

from docvault.models import Folder


@pytest.fixture()
def owner_company(make_user, make_company):
    owner = make_user()
    return owner, make_company(owner)


def _create(client, headers, company_id, name, parent_id=None):
    return client.post(
        "/api/folders",
        json={"company_id": company_id, "name": name, "parent_id": parent_id},
        headers=headers,
    )


class TestFoldersApi:

    def test_create_rename_move_flow(self, client, owner_company, auth_headers):
        owner, company = owner_company
        headers = auth_headers(owner)

        a = _create(client, headers, company.id, "A").json()
        b = _create(client, headers, company.id, "B", a["id"]).json()
        c = _create(client, headers, company.id, "C", b["id"]).json()
        assert c["path"] == "/A/B/C/"

        renamed = client.patch(f"/api/folders/{b['id']}/rename", json={"name": "Archive"}, headers=headers)
        assert renamed.status_code == 200
        assert renamed.json()["path"] == "/A/Archive/"

        tree = client.get(f"/api/folders/company/{company.id}/tree", headers=headers).json()
        assert tree[0]["children"][0]["children"][0]["path"] == "/A/Archive/C/"

        moved = client.patch(f"/api/folders/{c['id']}/move", json={"parent_id": None}, headers=headers)
        assert moved.json()["path"] == "/C/"

    def test_errors_are_specific(self, client, owner_company, auth_headers):
        owner, company = owner_company
        headers = auth_headers(owner)
        a = _create(client, headers, company.id, "A").json()
        b = _create(client, headers, company.id, "B", a["id"]).json()

        bad_name = _create(client, headers, company.id, "x/y")
        assert bad_name.status_code == 400
        assert bad_name.json()["error"] == "INVALID_FOLDER_NAME"

        dup = _create(client, headers, company.id, "A")
        assert dup.status_code == 409
        assert dup.json()["error"] == "DUPLICATE_FOLDER_NAME"

        cycle = client.patch(f"/api/folders/{a['id']}/move", json={"parent_id": b["id"]}, headers=headers)
        assert cycle.status_code == 400
        assert cycle.json()["error"] == "CYCLIC_MOVE"

        missing = client.patch("/api/folders/nope/rename", json={"name": "Z"}, headers=headers)
        assert missing.status_code == 404

    def test_contents_and_delete(self, client, db, owner_company, make_document, auth_headers):
        owner, company = owner_company
        headers = auth_headers(owner)
        a = _create(client, headers, company.id, "A").json()
        b = _create(client, headers, company.id, "B", a["id"]).json()
        make_document(company, owner, folder=db.get(Folder, b["id"]), name="minutes.pdf")

        contents = client.get(
            f"/api/folders/company/{company.id}/contents",
            params={"folder_id": b["id"]},
            headers=headers,
        ).json()
        assert [crumb["name"] for crumb in contents["breadcrumbs"]] == ["A", "B"]
        assert contents["folder"]["id"] == b["id"]
        assert [d["name"] for d in contents["documents"]] == ["minutes.pdf"]

        deleted = client.delete(f"/api/folders/{a['id']}", headers=headers)
        assert deleted.status_code == 200
        assert deleted.json() == {"deleted_folders": 2, "detached_documents": 1}
        assert client.get(f"/api/folders/company/{company.id}/tree", headers=headers).json() == []

        root = client.get(f"/api/folders/company/{company.id}/contents", headers=headers).json()
        assert [d["name"] for d in root["documents"]] == ["minutes.pdf"]

    def test_outsider_cannot_read_tree(self, client, owner_company, make_user, auth_headers):
        _, company = owner_company
        resp = client.get(f"/api/folders/company/{company.id}/tree", headers=auth_headers(make_user()))
        assert resp.status_code == 403


class TestSearch:

    def _search(self, client, headers, company_id, q):
        return client.get(f"/api/folders/company/{company_id}/search", params={"q": q}, headers=headers)

    def test_matches_names_case_insensitively(
        self, client, db, owner_company, make_company, make_folder, make_document, auth_headers,
    ):
        owner, company = owner_company
        headers = auth_headers(owner)
        make_folder(company, "Contracts 2024")
        make_folder(company, "Invoices")
        make_document(company, owner, name="signed-contract.pdf")
        old = make_document(company, owner, name="contract-draft.pdf")
        old.is_latest_version = False
        db.commit()
        make_document(make_company(owner, name="Other"), owner, name="contract.pdf")

        body = self._search(client, headers, company.id, "CONTRACT").json()
        assert [f["name"] for f in body["folders"]] == ["Contracts 2024"]
        assert [d["name"] for d in body["documents"]] == ["signed-contract.pdf"]

    def test_wildcards_are_literal(self, client, owner_company, make_folder, make_document, auth_headers):
        owner, company = owner_company
        headers = auth_headers(owner)
        make_folder(company, "100% done")
        make_folder(company, "1000 items")
        make_document(company, owner, name="q1_report.pdf")
        make_document(company, owner, name="q1-report.pdf")

        assert [f["name"] for f in self._search(client, headers, company.id, "0%").json()["folders"]] == ["100% done"]
        docs = self._search(client, headers, company.id, "q1_").json()["documents"]
        assert [d["name"] for d in docs] == ["q1_report.pdf"]

    def test_blank_query(self, client, owner_company, make_folder, auth_headers):
        owner, company = owner_company
        headers = auth_headers(owner)
        make_folder(company, "Plans")
        assert self._search(client, headers, company.id, "").status_code == 422
        assert self._search(client, headers, company.id, "   ").json() == {"folders": [], "documents": []}

    def test_outsider_cannot_search(self, client, owner_company, make_user, auth_headers):
        _, company = owner_company
        assert self._search(client, auth_headers(make_user()), company.id, "a").status_code == 403

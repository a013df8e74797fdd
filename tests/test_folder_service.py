"""Tests for folder names, materialized paths and subtree cascades."""

import pytest

from docvault.exceptions import (
    CyclicMoveError,
    DuplicateFolderNameError,
    ForbiddenError,
    InvalidFolderNameError,
)
from docvault.models import Document, Folder
from docvault.models.enums import PermissionLevel, Role
from docvault.services.folder_service import (
    FolderService,
    ancestor_paths,
    compute_path,
    rebase_path,
    validate_folder_name,
)


class TestPureHelpers:

    @pytest.mark.parametrize("name", ["Contracts", "2024 Q3", "hr_files", "tax-returns", "عقود", "Verträge", "契約"])
    def test_valid_names(self, name):
        assert validate_folder_name(name) == name

    def test_name_is_trimmed(self):
        assert validate_folder_name("  Invoices ") == "Invoices"

    @pytest.mark.parametrize("name", ["", "   ", "a/b", "../etc", "name.txt", "semi;colon", "new\nline", "x" * 256])
    def test_invalid_names(self, name):
        with pytest.raises(InvalidFolderNameError):
            validate_folder_name(name)

    def test_compute_path(self):
        root = Folder(name="A", path="/A/")
        assert compute_path(None, "A") == "/A/"
        assert compute_path(root, "B") == "/A/B/"

    def test_rebase_path(self):
        assert rebase_path("/A/B/C/", "/A/B/", "/A/X/") == "/A/X/C/"
        with pytest.raises(ValueError):
            rebase_path("/Z/", "/A/", "/B/")

    def test_ancestor_paths(self):
        assert ancestor_paths("/A/B/C/") == ["/A/", "/A/B/", "/A/B/C/"]


@pytest.fixture()
def tree(make_user, make_company, make_folder):
    """Company with /A/B/C/, /A/B/D/, /A/BB/ and /E/."""
    owner = make_user()
    company = make_company(owner)
    a = make_folder(company, "A")
    b = make_folder(company, "B", a)
    c = make_folder(company, "C", b)
    d = make_folder(company, "D", b)
    bb = make_folder(company, "BB", a)
    e = make_folder(company, "E")
    return owner, company, {"A": a, "B": b, "C": c, "D": d, "BB": bb, "E": e}


def _paths(db, company):
    db.expire_all()
    return sorted(f.path for f in db.query(Folder).filter_by(company_id=company.id).all())


class TestCreate:

    def test_create_nested(self, db, tree, as_principal):
        owner, company, folders = tree
        folder = FolderService(db).create_folder(as_principal(owner), company.id, "Reports", folders["C"].id)
        assert folder.path == "/A/B/C/Reports/"
        assert folder.parent_id == folders["C"].id

    def test_duplicate_sibling(self, db, tree, as_principal):
        owner, company, folders = tree
        with pytest.raises(DuplicateFolderNameError):
            FolderService(db).create_folder(as_principal(owner), company.id, "C", folders["B"].id)

    def test_same_name_elsewhere_is_fine(self, db, tree, as_principal):
        owner, company, folders = tree
        folder = FolderService(db).create_folder(as_principal(owner), company.id, "C", folders["E"].id)
        assert folder.path == "/E/C/"

    def test_viewer_cannot_create(self, db, tree, make_user, make_company_share, as_principal):
        _, company, _ = tree
        viewer = make_user()
        make_company_share(company, viewer, PermissionLevel.VIEW)
        with pytest.raises(ForbiddenError):
            FolderService(db).create_folder(as_principal(viewer), company.id, "New")


class TestRename:

    def test_cascade_rewrites_subtree_only(self, db, tree, as_principal):
        owner, company, folders = tree
        renamed = FolderService(db).rename_folder(as_principal(owner), folders["B"].id, "X")

        assert renamed.path == "/A/X/"
        assert renamed.name == "X"
        assert _paths(db, company) == ["/A/", "/A/BB/", "/A/X/", "/A/X/C/", "/A/X/D/", "/E/"]

    def test_rename_to_existing_sibling(self, db, tree, as_principal):
        owner, company, folders = tree
        with pytest.raises(DuplicateFolderNameError):
            FolderService(db).rename_folder(as_principal(owner), folders["B"].id, "BB")
        assert "/A/B/C/" in _paths(db, company)

    def test_invalid_new_name_changes_nothing(self, db, tree, as_principal):
        owner, company, folders = tree
        before = _paths(db, company)
        with pytest.raises(InvalidFolderNameError):
            FolderService(db).rename_folder(as_principal(owner), folders["B"].id, "B/../x")
        assert _paths(db, company) == before

    def test_case_only_prefix_is_not_a_descendant(self, db, make_user, make_company, make_folder, as_principal):
        owner = make_user()
        company = make_company(owner)
        lower = make_folder(company, "a")
        make_folder(company, "inner", lower)
        upper = make_folder(company, "A")
        make_folder(company, "keep", upper)

        FolderService(db).rename_folder(as_principal(owner), lower.id, "z")
        assert _paths(db, company) == ["/A/", "/A/keep/", "/z/", "/z/inner/"]


class TestMove:

    def test_move_cascades(self, db, tree, as_principal):
        owner, company, folders = tree
        moved = FolderService(db).move_folder(as_principal(owner), folders["B"].id, folders["E"].id)

        assert moved.path == "/E/B/"
        assert moved.parent_id == folders["E"].id
        assert _paths(db, company) == ["/A/", "/A/BB/", "/E/", "/E/B/", "/E/B/C/", "/E/B/D/"]

    def test_move_to_root(self, db, tree, as_principal):
        owner, company, folders = tree
        moved = FolderService(db).move_folder(as_principal(owner), folders["C"].id, None)
        assert moved.path == "/C/"
        assert moved.parent_id is None

    @pytest.mark.parametrize("target", ["B", "C", "D"])
    def test_cycle_rejected(self, db, tree, as_principal, target):
        owner, company, folders = tree
        before = _paths(db, company)
        with pytest.raises(CyclicMoveError):
            FolderService(db).move_folder(as_principal(owner), folders["B"].id, folders[target].id)
        assert _paths(db, company) == before

    def test_sibling_with_shared_prefix_is_not_a_cycle(self, db, tree, as_principal):
        owner, company, folders = tree
        moved = FolderService(db).move_folder(as_principal(owner), folders["B"].id, folders["BB"].id)
        assert moved.path == "/A/BB/B/"

    def test_name_clash_at_target(self, db, tree, make_folder, as_principal):
        owner, company, folders = tree
        make_folder(company, "B", folders["E"])
        with pytest.raises(DuplicateFolderNameError):
            FolderService(db).move_folder(as_principal(owner), folders["B"].id, folders["E"].id)


class TestDelete:

    def test_delete_detaches_documents(self, db, tree, make_document, as_principal):
        owner, company, folders = tree
        inner = make_document(company, owner, folder=folders["C"])
        outside = make_document(company, owner, folder=folders["E"])

        result = FolderService(db).delete_folder(as_principal(owner), folders["B"].id)

        assert result == {"deleted_folders": 3, "detached_documents": 1}
        assert _paths(db, company) == ["/A/", "/A/BB/", "/E/"]
        assert db.get(Document, inner.id).folder_id is None
        assert db.get(Document, outside.id).folder_id == folders["E"].id

    def test_supervisor_cannot_delete(self, db, tree, make_user, as_principal):
        _, _, folders = tree
        supervisor = make_user(role=Role.SUPERVISOR)
        with pytest.raises(ForbiddenError):
            FolderService(db).delete_folder(as_principal(supervisor), folders["B"].id)


class TestRead:

    def test_tree(self, db, tree, as_principal):
        owner, company, _ = tree
        roots = FolderService(db).get_tree(as_principal(owner), company.id)
        assert [r.name for r in roots] == ["A", "E"]
        a = roots[0]
        assert sorted(c.name for c in a.children) == ["B", "BB"]
        b = next(c for c in a.children if c.name == "B")
        assert sorted(c.path for c in b.children) == ["/A/B/C/", "/A/B/D/"]

    def test_contents_with_breadcrumbs(self, db, tree, make_document, as_principal):
        owner, company, folders = tree
        make_document(company, owner, folder=folders["B"], name="in-b.pdf")
        make_document(company, owner, name="at-root.pdf")

        contents = FolderService(db).get_contents(as_principal(owner), company.id, folders["B"].id)
        assert [b.name for b in contents.breadcrumbs] == ["A", "B"]
        assert [f.name for f in contents.folders] == ["C", "D"]
        assert [d.name for d in contents.documents] == ["in-b.pdf"]

        root = FolderService(db).get_contents(as_principal(owner), company.id)
        assert root.folder is None
        assert [f.name for f in root.folders] == ["A", "E"]
        assert [d.name for d in root.documents] == ["at-root.pdf"]

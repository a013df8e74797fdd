"""Deep module for the folder tree: create, rename, move, delete, read.

Every folder stores a materialized path (``/A/B/``). Rename and move rewrite
that path on the folder and on every descendant, found with one prefix
query. The rewrite is staged on the loaded rows and committed once, after
the company row has been locked, so a failure anywhere leaves the tree as it
was and two cascades in the same company never interleave.

Public helpers ``validate_folder_name`` and ``compute_path`` are pure.
"""

import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import sqlalchemy.exc
from sqlalchemy.orm import Session

from ..core.auth import Principal
from ..exceptions import CyclicMoveError, DuplicateFolderNameError, InvalidFolderNameError
from ..models import Document, Folder
from ..repositories import CompanyRepository, DocumentRepository, FolderRepository
from ..schemas.folder import Breadcrumb, TreeNode
from . import audit_service
from .permission_service import Action, PermissionResolver

logger = logging.getLogger(__name__)

# Letters of any script, digits, underscore, space and hyphen.
_FOLDER_NAME_RE = re.compile(r"[\w \-]+")
MAX_FOLDER_NAME_LENGTH = 255


def validate_folder_name(name: str) -> str:
    """Return the trimmed name, or raise InvalidFolderNameError."""
    trimmed = (name or "").strip()
    if (
        not trimmed
        or len(trimmed) > MAX_FOLDER_NAME_LENGTH
        or not _FOLDER_NAME_RE.fullmatch(trimmed)
    ):
        raise InvalidFolderNameError(name)
    return trimmed


def compute_path(parent: Optional[Folder], name: str) -> str:
    """``parent.path + name + "/"``, or ``"/" + name + "/"`` at the root."""
    if parent is not None:
        return f"{parent.path}{name}/"
    return f"/{name}/"


def rebase_path(path: str, old_prefix: str, new_prefix: str) -> str:
    """Replace the leading *old_prefix* of *path* with *new_prefix*."""
    if not path.startswith(old_prefix):
        raise ValueError(f"{path!r} is not under {old_prefix!r}")
    return new_prefix + path[len(old_prefix):]


def ancestor_paths(path: str) -> List[str]:
    """``/A/B/C/`` -> ``["/A/", "/A/B/", "/A/B/C/"]``."""
    segments = [s for s in path.split("/") if s]
    return ["/" + "/".join(segments[: i + 1]) + "/" for i in range(len(segments))]


@dataclass
class FolderContents:
    folder: Optional[Folder]
    breadcrumbs: List[Breadcrumb] = field(default_factory=list)
    folders: List[Folder] = field(default_factory=list)
    documents: List[Document] = field(default_factory=list)


@dataclass
class SearchResults:
    folders: List[Folder] = field(default_factory=list)
    documents: List[Document] = field(default_factory=list)


class FolderService:
    """All folder and tree operations behind a simple interface.

    Public methods:
        create_folder  -- validates name, rejects duplicate siblings
        rename_folder  -- cascades the new path to the subtree
        move_folder    -- rejects cycles, then cascades like rename
        delete_folder  -- removes the subtree; documents fall back to the root
        get_tree       -- nested TreeNode list for one company
        get_contents   -- one level of folders and documents plus breadcrumbs
        search         -- folders and latest documents whose name contains a term
    """

    def __init__(self, db: Session, resolver: Optional[PermissionResolver] = None):
        self.db = db
        self.resolver = resolver or PermissionResolver(db)
        self.companies = CompanyRepository(db)
        self.folders = FolderRepository(db)
        self.documents = DocumentRepository(db)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create_folder(
        self,
        principal: Principal,
        company_id: str,
        name: str,
        parent_id: Optional[str] = None,
    ) -> Folder:
        self.resolver.require_company(principal, company_id, Action.WRITE)
        name = validate_folder_name(name)

        self.companies.lock(company_id)
        parent = self.folders.get_in_company(parent_id, company_id) if parent_id else None
        if self.folders.find_sibling(company_id, parent_id, name) is not None:
            self.db.rollback()
            raise DuplicateFolderNameError(name, parent_id)

        folder = Folder(
            id=str(uuid.uuid4()),
            company_id=company_id,
            parent_id=parent.id if parent else None,
            name=name,
            path=compute_path(parent, name),
            created_by_id=principal.user_id,
        )
        self.folders.add(folder)
        self.db.commit()
        self.db.refresh(folder)

        audit_service.log(
            self.db, principal.user_id, "FOLDER_CREATED", "FOLDER", folder.id,
            details={"path": folder.path},
        )
        return folder

    def rename_folder(self, principal: Principal, folder_id: str, new_name: str) -> Folder:
        folder = self.folders.get_by_id(folder_id)
        self.resolver.require_company(principal, folder.company_id, Action.WRITE)
        new_name = validate_folder_name(new_name)

        self.companies.lock(folder.company_id)
        self.db.refresh(folder)
        sibling = self.folders.find_sibling(folder.company_id, folder.parent_id, new_name)
        if sibling is not None and sibling.id != folder.id:
            self.db.rollback()
            raise DuplicateFolderNameError(new_name, folder.parent_id)

        parent = self.folders.get_by_id(folder.parent_id) if folder.parent_id else None
        old_path = folder.path
        self._cascade(folder, parent, new_name)

        audit_service.log(
            self.db, principal.user_id, "FOLDER_RENAMED", "FOLDER", folder.id,
            details={"old_path": old_path, "new_path": folder.path},
        )
        return folder

    def move_folder(
        self, principal: Principal, folder_id: str, new_parent_id: Optional[str]
    ) -> Folder:
        """Move *folder_id* under *new_parent_id* (None = company root).

        Raises CyclicMoveError when the target is the folder itself or any of
        its descendants; nothing is written in that case.
        """
        folder = self.folders.get_by_id(folder_id)
        self.resolver.require_company(principal, folder.company_id, Action.WRITE)

        self.companies.lock(folder.company_id)
        self.db.refresh(folder)
        new_parent = None
        if new_parent_id is not None:
            new_parent = self.folders.get_in_company(new_parent_id, folder.company_id)
            if new_parent.path.startswith(folder.path):
                self.db.rollback()
                raise CyclicMoveError(folder.id, new_parent.id)

        sibling = self.folders.find_sibling(folder.company_id, new_parent_id, folder.name)
        if sibling is not None and sibling.id != folder.id:
            self.db.rollback()
            raise DuplicateFolderNameError(folder.name, new_parent_id)

        old_path = folder.path
        self._cascade(folder, new_parent, folder.name)

        audit_service.log(
            self.db, principal.user_id, "FOLDER_MOVED", "FOLDER", folder.id,
            details={"old_path": old_path, "new_path": folder.path},
        )
        return folder

    def delete_folder(self, principal: Principal, folder_id: str) -> Dict[str, int]:
        """Delete a folder and its whole subtree.

        Documents inside are moved to the company root rather than deleted.
        """
        folder = self.folders.get_by_id(folder_id)
        self.resolver.require_company(principal, folder.company_id, Action.DELETE)

        self.companies.lock(folder.company_id)
        self.db.refresh(folder)
        subtree = self.folders.subtree(folder.company_id, folder.path)
        ids = [f.id for f in subtree]
        path = folder.path
        try:
            detached = (
                self.db.query(Document)
                .filter(Document.folder_id.in_(ids))
                .update({Document.folder_id: None}, synchronize_session=False)
            )
            # Deepest first so no row outlives its parent mid-statement.
            for node in sorted(subtree, key=lambda f: len(f.path), reverse=True):
                self.db.delete(node)
                self.db.flush()
            self.db.commit()
        except sqlalchemy.exc.SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info("Deleted folder subtree %s (%d folders, %d documents detached)", path, len(ids), detached)
        audit_service.log(
            self.db, principal.user_id, "FOLDER_DELETED", "FOLDER", folder_id,
            details={"path": path, "folders": len(ids), "detached_documents": detached},
        )
        return {"deleted_folders": len(ids), "detached_documents": detached}

    def get_tree(self, principal: Principal, company_id: str) -> List[TreeNode]:
        self.resolver.require_company(principal, company_id, Action.READ)
        folders = self.folders.list_for_company(company_id)

        nodes: Dict[str, TreeNode] = {}
        roots: List[TreeNode] = []
        # Ordered by path, so a parent is always built before its children.
        for f in folders:
            node = TreeNode(id=f.id, name=f.name, path=f.path, parent_id=f.parent_id, children=[])
            nodes[f.id] = node
            parent = nodes.get(f.parent_id) if f.parent_id else None
            if parent is None:
                roots.append(node)
            else:
                parent.children.append(node)
        return roots

    def get_contents(
        self, principal: Principal, company_id: str, folder_id: Optional[str] = None
    ) -> FolderContents:
        self.resolver.require_company(principal, company_id, Action.READ)
        folder = self.folders.get_in_company(folder_id, company_id) if folder_id else None

        breadcrumbs: List[Breadcrumb] = []
        if folder is not None:
            by_path = {f.path: f for f in self.folders.by_paths(company_id, ancestor_paths(folder.path))}
            for p in ancestor_paths(folder.path):
                node = by_path.get(p)
                if node is not None:
                    breadcrumbs.append(Breadcrumb(id=node.id, name=node.name, path=node.path))

        return FolderContents(
            folder=folder,
            breadcrumbs=breadcrumbs,
            folders=self.folders.children(company_id, folder_id),
            documents=self.documents.list_for_company(
                company_id, folder_id=folder_id, any_folder=False
            ),
        )

    def search(self, principal: Principal, company_id: str, term: str) -> SearchResults:
        self.resolver.require_company(principal, company_id, Action.READ)
        term = term.strip()
        if not term:
            return SearchResults()
        return SearchResults(
            folders=self.folders.search(company_id, term),
            documents=self.documents.search(company_id, term),
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _cascade(self, folder: Folder, new_parent: Optional[Folder], new_name: str) -> None:
        """Rewrite *folder*'s path and every descendant's in one commit.

        Caller holds the company lock. New paths are computed for the whole
        subtree before any row is touched.
        """
        old_path = folder.path
        new_path = compute_path(new_parent, new_name)
        subtree = self.folders.subtree(folder.company_id, old_path)
        staged = {node.id: rebase_path(node.path, old_path, new_path) for node in subtree}

        try:
            for node in subtree:
                node.path = staged[node.id]
            folder.name = new_name
            folder.parent_id = new_parent.id if new_parent else None
            self.db.commit()
        except sqlalchemy.exc.SQLAlchemyError:
            self.db.rollback()
            raise

        self.db.refresh(folder)
        logger.info(
            "Folder %s moved %s -> %s (%d folders rewritten)",
            folder.id, old_path, new_path, len(subtree),
        )

"""Repository for folder tree queries."""

from typing import List, Optional

from ..models import Folder
from ..exceptions import FolderNotFoundError
from .base import BaseRepository, escape_like


class FolderRepository(BaseRepository[Folder]):
    """Data access layer for folders."""

    model_class = Folder
    not_found_error = FolderNotFoundError

    def get_in_company(self, folder_id: str, company_id: str) -> Folder:
        """Folder by id, required to belong to *company_id*."""
        folder = self.get_by_id(folder_id)
        if folder.company_id != company_id:
            raise FolderNotFoundError(folder_id)
        return folder

    def find_sibling(self, company_id: str, parent_id: Optional[str], name: str) -> Optional[Folder]:
        """Folder with *name* directly under *parent_id* (None = root)."""
        query = self.db.query(Folder).filter(Folder.company_id == company_id, Folder.name == name)
        if parent_id is None:
            query = query.filter(Folder.parent_id.is_(None))
        else:
            query = query.filter(Folder.parent_id == parent_id)
        return query.first()

    def subtree(self, company_id: str, path_prefix: str) -> List[Folder]:
        """Every folder whose path starts with *path_prefix*, including the
        folder that owns the prefix. Ordered shallow to deep."""
        rows = (
            self.db.query(Folder)
            .filter(
                Folder.company_id == company_id,
                Folder.path.like(f"{escape_like(path_prefix)}%", escape="\\"),
            )
            .order_by(Folder.path)
            .all()
        )
        # SQLite's LIKE ignores ASCII case.
        return [f for f in rows if f.path.startswith(path_prefix)]

    def list_for_company(self, company_id: str) -> List[Folder]:
        return (
            self.db.query(Folder)
            .filter(Folder.company_id == company_id)
            .order_by(Folder.path)
            .all()
        )

    def children(self, company_id: str, parent_id: Optional[str]) -> List[Folder]:
        query = self.db.query(Folder).filter(Folder.company_id == company_id)
        if parent_id is None:
            query = query.filter(Folder.parent_id.is_(None))
        else:
            query = query.filter(Folder.parent_id == parent_id)
        return query.order_by(Folder.name).all()

    def by_paths(self, company_id: str, paths: List[str]) -> List[Folder]:
        if not paths:
            return []
        return (
            self.db.query(Folder)
            .filter(Folder.company_id == company_id, Folder.path.in_(paths))
            .all()
        )

    def search(self, company_id: str, term: str, limit: int = 20) -> List[Folder]:
        """Folders whose name contains *term*, case-insensitively."""
        return (
            self.db.query(Folder)
            .filter(
                Folder.company_id == company_id,
                Folder.name.ilike(f"%{escape_like(term)}%", escape="\\"),
            )
            .order_by(Folder.path)
            .limit(limit)
            .all()
        )

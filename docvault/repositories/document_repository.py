"""Document repository for database operations."""

from typing import List, Optional

from ..models import Document
from ..exceptions import DocumentNotFoundError
from .base import BaseRepository, escape_like


class DocumentRepository(BaseRepository[Document]):
    """Repository for document reads and version-chain bookkeeping."""

    model_class = Document
    not_found_error = DocumentNotFoundError

    def list_for_company(
        self,
        company_id: str,
        folder_id: Optional[str] = None,
        latest_only: bool = True,
        skip: int = 0,
        limit: int = 100,
        any_folder: bool = True,
    ) -> List[Document]:
        """List a company's documents, newest first.

        With ``any_folder=False`` only documents directly in *folder_id*
        (``None`` meaning the company root) are returned.
        """
        query = self.db.query(Document).filter(Document.company_id == company_id)
        if not any_folder:
            if folder_id is None:
                query = query.filter(Document.folder_id.is_(None))
            else:
                query = query.filter(Document.folder_id == folder_id)
        if latest_only:
            query = query.filter(Document.is_latest_version.is_(True))
        return (
            query.order_by(Document.uploaded_at.desc(), Document.id)
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_for_update(self, document_id: str) -> Document:
        """Load a document row FOR UPDATE (used when appending a version)."""
        document = (
            self.db.query(Document)
            .filter(Document.id == document_id)
            .with_for_update()
            .first()
        )
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document

    def children_of(self, document_id: str) -> List[Document]:
        """Versions whose parent is *document_id*."""
        return (
            self.db.query(Document)
            .filter(Document.parent_document_id == document_id)
            .all()
        )

    def version_chain(self, document: Document) -> List[Document]:
        """All versions of *document*, walking parent links, newest first."""
        root = document
        seen = {root.id}
        while root.parent_document_id and root.parent_document_id not in seen:
            parent = self.get_by_id_optional(root.parent_document_id)
            if parent is None:
                break
            seen.add(parent.id)
            root = parent

        chain = [root]
        frontier = [root.id]
        while frontier:
            children = (
                self.db.query(Document)
                .filter(Document.parent_document_id.in_(frontier))
                .all()
            )
            children = [c for c in children if c.id not in seen]
            for child in children:
                seen.add(child.id)
            chain.extend(children)
            frontier = [c.id for c in children]

        return sorted(chain, key=lambda d: d.version, reverse=True)

    def storage_keys_for_company(self, company_id: str) -> List[str]:
        """Blob keys of every version in a company."""
        rows = self.db.query(Document.storage_key).filter(Document.company_id == company_id).all()
        return [key for (key,) in rows]

    def search(self, company_id: str, term: str, limit: int = 50) -> List[Document]:
        """Latest versions whose display or original name contains *term*."""
        pattern = f"%{escape_like(term)}%"
        return (
            self.db.query(Document)
            .filter(
                Document.company_id == company_id,
                Document.is_latest_version.is_(True),
                Document.name.ilike(pattern, escape="\\") | Document.original_name.ilike(pattern, escape="\\"),
            )
            .order_by(Document.name, Document.id)
            .limit(limit)
            .all()
        )

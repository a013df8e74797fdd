"""Repositories for company and document shares.

Both share tables have the same shape and differ only in the column that
names the target, so one base class serves both.
"""

from typing import List, Optional, Union

from ..models import CompanyShare, Document, DocumentShare
from ..models.enums import ShareStatus
from ..exceptions import ShareNotFoundError
from .base import BaseRepository

ShareRow = Union[CompanyShare, DocumentShare]


class _ShareRepository(BaseRepository):
    not_found_error = ShareNotFoundError
    target_column: str

    def _target(self):
        return getattr(self.model_class, self.target_column)

    def get_pair(self, target_id: str, user_id: str) -> Optional[ShareRow]:
        """The unique share row for (target, user), whatever its status."""
        return (
            self.db.query(self.model_class)
            .filter(self._target() == target_id, self.model_class.shared_with_user_id == user_id)
            .first()
        )

    def get_active(self, target_id: str, user_id: str) -> Optional[ShareRow]:
        """The ACTIVE share for (target, user), or None.

        Expiry (valid_until) is not filtered here; the resolver decides it
        against its own clock so the boundary is tested in one place.
        """
        return (
            self.db.query(self.model_class)
            .filter(
                self._target() == target_id,
                self.model_class.shared_with_user_id == user_id,
                self.model_class.status == ShareStatus.ACTIVE,
            )
            .first()
        )

    def list_active(self, target_id: str) -> List[ShareRow]:
        return (
            self.db.query(self.model_class)
            .filter(self._target() == target_id, self.model_class.status == ShareStatus.ACTIVE)
            .order_by(self.model_class.created_at.desc())
            .all()
        )

    def list_for_user(self, user_id: str) -> List[ShareRow]:
        """ACTIVE shares granted to *user_id*, newest first."""
        return (
            self.db.query(self.model_class)
            .filter(
                self.model_class.shared_with_user_id == user_id,
                self.model_class.status == ShareStatus.ACTIVE,
            )
            .order_by(self.model_class.created_at.desc())
            .all()
        )


class CompanyShareRepository(_ShareRepository):
    model_class = CompanyShare
    target_column = "company_id"


class DocumentShareRepository(_ShareRepository):
    model_class = DocumentShare
    target_column = "document_id"

    def list_granted_by(self, user_id: str, company_id: Optional[str] = None) -> List[DocumentShare]:
        """ACTIVE document shares *user_id* handed out, optionally within one company."""
        query = (
            self.db.query(DocumentShare)
            .filter(
                DocumentShare.shared_by_user_id == user_id,
                DocumentShare.status == ShareStatus.ACTIVE,
            )
        )
        if company_id is not None:
            query = query.join(Document, Document.id == DocumentShare.document_id).filter(
                Document.company_id == company_id
            )
        return query.order_by(DocumentShare.created_at.desc()).all()

"""Repository for companies."""

from typing import List

from ..models import Company, CompanyShare
from ..models.enums import ShareStatus
from ..exceptions import CompanyNotFoundError
from .base import BaseRepository


class CompanyRepository(BaseRepository[Company]):
    model_class = Company
    not_found_error = CompanyNotFoundError

    def lock(self, company_id: str) -> Company:
        """Load the company row FOR UPDATE.

        Serializes folder-tree cascades within one company on databases that
        honour row locks (PostgreSQL). SQLite ignores the clause; its single
        writer lock gives the same guarantee for the enclosing transaction.
        """
        company = (
            self.db.query(Company)
            .filter(Company.id == company_id)
            .with_for_update()
            .first()
        )
        if company is None:
            raise CompanyNotFoundError(company_id)
        return company

    def list_visible_to(self, user_id: str, include_all: bool = False) -> List[Company]:
        """Companies the user owns or holds an active share on.

        *include_all* is used for roles whose ceiling covers every company.
        """
        query = self.db.query(Company)
        if not include_all:
            shared_ids = (
                self.db.query(CompanyShare.company_id)
                .filter(
                    CompanyShare.shared_with_user_id == user_id,
                    CompanyShare.status == ShareStatus.ACTIVE,
                )
            )
            query = query.filter((Company.owner_id == user_id) | (Company.id.in_(shared_ids)))
        return query.order_by(Company.created_at.desc()).all()

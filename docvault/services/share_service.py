"""Company and document shares: grant, change, revoke.

There is at most one share row per (target, user). Sharing again after a
revoke (or after ``valid_until`` lapsed) reactivates that row with the new
level; sharing while a live share exists is a conflict. Revoking keeps the
row, marked REVOKED, and the resolver treats it as NONE from then on.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.auth import Principal
from ..exceptions import ConflictError, ValidationError
from ..models import CompanyShare, DocumentShare
from ..models.enums import PermissionLevel, ShareStatus
from ..repositories import CompanyShareRepository, DocumentShareRepository
from ..repositories.share_repository import ShareRow
from ..schemas.share import ShareCreate, ShareUpdate
from . import audit_service, auth_service
from .permission_service import Action, PermissionResolver, share_level
from .time_utils import utcnow

logger = logging.getLogger(__name__)


class ShareService:
    def __init__(self, db: Session, resolver: Optional[PermissionResolver] = None):
        self.db = db
        self.resolver = resolver or PermissionResolver(db)
        self.company_shares = CompanyShareRepository(db)
        self.document_shares = DocumentShareRepository(db)

    # -- Company shares ---------------------------------------------------

    def share_company(self, principal: Principal, company_id: str, data: ShareCreate) -> CompanyShare:
        company = self.resolver.require_company(principal, company_id, Action.SHARE)
        return self._grant(
            principal, self.company_shares, CompanyShare, "company_id", company.id, "COMPANY", data
        )

    def list_company_shares(self, principal: Principal, company_id: str) -> List[CompanyShare]:
        self.resolver.require_company(principal, company_id, Action.SHARE)
        return self.company_shares.list_active(company_id)

    def update_company_share(self, principal: Principal, share_id: str, data: ShareUpdate) -> CompanyShare:
        share = self.company_shares.get_by_id(share_id)
        self.resolver.require_company(principal, share.company_id, Action.SHARE)
        return self._update(principal, share, data)

    def revoke_company_share(self, principal: Principal, share_id: str) -> CompanyShare:
        share = self.company_shares.get_by_id(share_id)
        self.resolver.require_company(principal, share.company_id, Action.SHARE)
        return self._revoke(principal, share)

    def list_my_company_shares(self, principal: Principal) -> List[CompanyShare]:
        """Company shares granted to the caller that are still live."""
        now = utcnow()
        return [
            s for s in self.company_shares.list_for_user(principal.user_id)
            if share_level(s, now) is not PermissionLevel.NONE
        ]

    # -- Document shares --------------------------------------------------

    def share_document(self, principal: Principal, document_id: str, data: ShareCreate) -> DocumentShare:
        document = self.resolver.require_document(principal, document_id, Action.SHARE)
        return self._grant(
            principal, self.document_shares, DocumentShare, "document_id", document.id, "DOCUMENT", data
        )

    def list_document_shares(self, principal: Principal, document_id: str) -> List[DocumentShare]:
        self.resolver.require_document(principal, document_id, Action.SHARE)
        return self.document_shares.list_active(document_id)

    def update_document_share(self, principal: Principal, share_id: str, data: ShareUpdate) -> DocumentShare:
        share = self.document_shares.get_by_id(share_id)
        self.resolver.require_document(principal, share.document_id, Action.SHARE)
        return self._update(principal, share, data)

    def revoke_document_share(self, principal: Principal, share_id: str) -> DocumentShare:
        share = self.document_shares.get_by_id(share_id)
        self.resolver.require_document(principal, share.document_id, Action.SHARE)
        return self._revoke(principal, share)

    def list_documents_shared_by(
        self, principal: Principal, company_id: Optional[str] = None
    ) -> List[DocumentShare]:
        """Live document shares the caller handed out."""
        if company_id is not None:
            self.resolver.require_company(principal, company_id, Action.READ)
        now = utcnow()
        return [
            s for s in self.document_shares.list_granted_by(principal.user_id, company_id)
            if share_level(s, now) is not PermissionLevel.NONE
        ]

    # -- Internals --------------------------------------------------------

    def _grant(self, principal, repo, model, target_field, target_id, resource_type, data: ShareCreate):
        if data.shared_with_user_id == principal.user_id:
            raise ValidationError("Cannot share with yourself", field="shared_with_user_id")
        auth_service.get_user(self.db, data.shared_with_user_id)

        now = utcnow()
        share = repo.get_pair(target_id, data.shared_with_user_id)
        if share is not None:
            if share_level(share, now) is not PermissionLevel.NONE:
                raise ConflictError(
                    "This user already has an active share",
                    details={"share_id": share.id},
                )
            action = "SHARE_REACTIVATED"
        else:
            share = model(id=str(uuid.uuid4()), shared_with_user_id=data.shared_with_user_id)
            setattr(share, target_field, target_id)
            repo.add(share)
            action = "SHARE_CREATED"

        share.permission_level = data.permission_level
        share.status = ShareStatus.ACTIVE
        share.note = data.note
        share.valid_until = data.valid_until
        share.revoked_at = None
        share.shared_by_user_id = principal.user_id
        self.db.commit()
        self.db.refresh(share)

        audit_service.log(
            self.db, principal.user_id, action, resource_type, target_id,
            details={
                "share_id": share.id,
                "shared_with": data.shared_with_user_id,
                "permission_level": data.permission_level.name,
            },
        )
        return share

    def _update(self, principal: Principal, share: ShareRow, data: ShareUpdate) -> ShareRow:
        if share.status != ShareStatus.ACTIVE:
            raise ConflictError("Cannot modify a revoked share", details={"share_id": share.id})
        fields = data.model_dump(exclude_unset=True)
        if fields.get("permission_level") is not None:
            share.permission_level = fields["permission_level"]
        if "note" in fields:
            share.note = fields["note"]
        if "valid_until" in fields:
            share.valid_until = fields["valid_until"]
        self.db.commit()
        self.db.refresh(share)
        audit_service.log(
            self.db, principal.user_id, "SHARE_UPDATED", "SHARE", share.id,
            details={k: getattr(v, "name", str(v)) for k, v in fields.items()},
        )
        return share

    def _revoke(self, principal: Principal, share: ShareRow) -> ShareRow:
        if share.status == ShareStatus.REVOKED:
            return share
        share.status = ShareStatus.REVOKED
        share.revoked_at = utcnow()
        self.db.commit()
        self.db.refresh(share)
        logger.info("Share %s revoked by %s", share.id, principal.user_id)
        audit_service.log(self.db, principal.user_id, "SHARE_REVOKED", "SHARE", share.id)
        return share

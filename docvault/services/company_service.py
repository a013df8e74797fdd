"""Company lifecycle and visibility: create, rename, delete and listing."""

import logging
import uuid
from typing import List, Optional

import sqlalchemy.exc
from sqlalchemy.orm import Session

from ..core.auth import Principal
from ..models import Company
from ..models.enums import PermissionLevel
from ..exceptions import StorageError
from ..repositories import CompanyRepository, DocumentRepository
from . import audit_service
from .permission_service import Action, PermissionResolver, role_ceiling
from .storage_service import BlobStore

logger = logging.getLogger(__name__)


def create_company(db: Session, principal: Principal, name: str) -> Company:
    """Create a company owned by *principal*. Ownership never changes."""
    company = Company(id=str(uuid.uuid4()), name=name.strip(), owner_id=principal.user_id)
    db.add(company)
    db.commit()
    db.refresh(company)
    audit_service.log(db, principal.user_id, "COMPANY_CREATED", "COMPANY", company.id)
    return company


def get_company(db: Session, principal: Principal, company_id: str) -> Company:
    return PermissionResolver(db).require_company(principal, company_id, Action.READ)


def list_companies(db: Session, principal: Principal) -> List[Company]:
    """Companies the principal can at least view through role, ownership or
    a live company share."""
    repo = CompanyRepository(db)
    if role_ceiling(principal.role) is not PermissionLevel.NONE:
        return repo.list_visible_to(principal.user_id, include_all=True)

    resolver = PermissionResolver(db)
    return [
        c for c in repo.list_visible_to(principal.user_id)
        if resolver.resolve_company(principal, c) >= PermissionLevel.VIEW
    ]


def resolve_level(db: Session, principal: Principal, company_id: str) -> PermissionLevel:
    return PermissionResolver(db).resolve_company(principal, company_id)


def update_company(db: Session, principal: Principal, company_id: str, name: Optional[str]) -> Company:
    """Rename a company. Requires EDIT."""
    company = PermissionResolver(db).require_company(principal, company_id, Action.WRITE)
    if name is not None and name.strip() != company.name:
        old_name = company.name
        company.name = name.strip()
        db.commit()
        db.refresh(company)
        audit_service.log(
            db, principal.user_id, "COMPANY_UPDATED", "COMPANY", company.id,
            details={"old_name": old_name, "new_name": company.name},
        )
    return company


def delete_company(db: Session, principal: Principal, company_id: str, blob_store: BlobStore) -> None:
    """Delete a company with its folders, documents, shares and tokens.

    Requires DELETE, which supervisors never have. Rows go in one commit
    through the foreign-key cascades; stored objects are removed afterwards
    and a failure there only leaves orphans behind.
    """
    PermissionResolver(db).require_company(principal, company_id, Action.DELETE)
    repo = CompanyRepository(db)
    company = repo.lock(company_id)
    keys = DocumentRepository(db).storage_keys_for_company(company_id)
    try:
        db.delete(company)
        db.commit()
    except sqlalchemy.exc.SQLAlchemyError:
        db.rollback()
        raise

    orphaned = 0
    for key in keys:
        try:
            blob_store.delete_object(key)
        except StorageError:
            orphaned += 1
    if orphaned:
        logger.warning("Company %s deleted; %d stored objects left behind", company_id, orphaned)
    logger.info("Deleted company %s (%d documents)", company_id, len(keys))
    audit_service.log(
        db, principal.user_id, "COMPANY_DELETED", "COMPANY", company_id,
        details={"documents": len(keys)},
    )

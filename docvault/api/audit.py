"""Audit trail endpoints (admin only).

    GET /api/audit                                  - most recent entries
    GET /api/audit/{resource_type}/{resource_id}    - entries for one resource
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.auth import Principal, require_admin
from ..database import get_db
from ..schemas.audit import AuditEntryResponse
from ..services import audit_service

router = APIRouter(prefix="/api/audit", tags=["audit"])


@router.get("", response_model=List[AuditEntryResponse])
def list_recent(
    action: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    _admin: Principal = Depends(require_admin),
):
    """Newest entries first, optionally only one ``action``."""
    return audit_service.get_recent(db, limit=limit, action=action)


@router.get("/{resource_type}/{resource_id}", response_model=List[AuditEntryResponse])
def list_for_resource(
    resource_type: str,
    resource_id: str,
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    _admin: Principal = Depends(require_admin),
):
    """History of one resource, e.g. every redemption attempt on a document."""
    return audit_service.get_by_resource(db, resource_type.upper(), resource_id, limit=limit)

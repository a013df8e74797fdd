"""Company, company-share and company-document endpoints.

Endpoints are thin; the PermissionResolver inside each service decides
access.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from ..core.auth import Principal, require_auth
from ..database import get_db
from ..schemas.company import CompanyCreate, CompanyResponse, CompanyUpdate, PermissionResponse
from ..schemas.document import DocumentResponse
from ..schemas.share import ShareCreate, ShareResponse, ShareUpdate
from ..services import company_service
from ..services.document_service import DocumentService
from ..services.share_service import ShareService
from ..services.storage_service import BlobStore, get_blob_store

router = APIRouter(prefix="/api/companies", tags=["companies"])


@router.post("", response_model=CompanyResponse, status_code=201)
def create_company(
    body: CompanyCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
):
    """Create a company owned by the caller."""
    return company_service.create_company(db, principal, body.name)


@router.get("", response_model=List[CompanyResponse])
def list_companies(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
):
    """Companies the caller can view."""
    return company_service.list_companies(db, principal)


# --- Share endpoints addressed by share id (before /{company_id}) ---


@router.patch("/shares/{share_id}", response_model=ShareResponse)
def update_company_share(
    share_id: str,
    body: ShareUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
):
    share = ShareService(db).update_company_share(principal, share_id, body)
    return ShareResponse.from_row(share)


@router.delete("/shares/{share_id}", response_model=ShareResponse)
def revoke_company_share(
    share_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
):
    share = ShareService(db).revoke_company_share(principal, share_id)
    return ShareResponse.from_row(share)


# --- Per-company endpoints ---


@router.get("/{company_id}", response_model=CompanyResponse)
def get_company(
    company_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
):
    return company_service.get_company(db, principal, company_id)


@router.patch("/{company_id}", response_model=CompanyResponse)
def update_company(
    company_id: str,
    body: CompanyUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
):
    """Rename a company. Requires EDIT."""
    return company_service.update_company(db, principal, company_id, body.name)


@router.delete("/{company_id}", status_code=204)
def delete_company(
    company_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
    blob_store: BlobStore = Depends(get_blob_store),
):
    """Delete a company and everything in it. Requires DELETE."""
    company_service.delete_company(db, principal, company_id, blob_store)


@router.get("/{company_id}/permission", response_model=PermissionResponse)
def get_company_permission(
    company_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
):
    """The caller's resolved level on this company (NONE when no access)."""
    level = company_service.resolve_level(db, principal, company_id)
    return PermissionResponse(resource_id=company_id, permission_level=level.name)


@router.post("/{company_id}/shares", response_model=ShareResponse, status_code=201)
def share_company(
    company_id: str,
    body: ShareCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
):
    share = ShareService(db).share_company(principal, company_id, body)
    return ShareResponse.from_row(share)


@router.get("/{company_id}/shares", response_model=List[ShareResponse])
def list_company_shares(
    company_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
):
    shares = ShareService(db).list_company_shares(principal, company_id)
    return [ShareResponse.from_row(s) for s in shares]


@router.post("/{company_id}/documents", response_model=DocumentResponse, status_code=201)
def upload_document(
    company_id: str,
    file: UploadFile = File(...),
    folder_id: Optional[str] = Form(None),
    parent_document_id: Optional[str] = Form(None),
    name: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
    blob_store: BlobStore = Depends(get_blob_store),
):
    """Upload a document, or a new version of ``parent_document_id``."""
    data = file.file.read()
    return DocumentService(db, blob_store).upload(
        principal,
        company_id,
        data,
        filename=file.filename or "unnamed",
        content_type=file.content_type,
        folder_id=folder_id or None,
        parent_document_id=parent_document_id or None,
        name=name or None,
    )


@router.get("/{company_id}/documents", response_model=List[DocumentResponse])
def list_company_documents(
    company_id: str,
    folder_id: Optional[str] = None,
    latest_only: bool = True,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
    blob_store: BlobStore = Depends(get_blob_store),
):
    """List documents; only latest versions unless ``latest_only=false``."""
    return DocumentService(db, blob_store).list_documents(
        principal, company_id, folder_id=folder_id, latest_only=latest_only, skip=skip, limit=limit
    )

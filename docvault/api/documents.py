"""Document endpoints, including the delivery-token surface.

Token issuance (``/{document_id}/generate-token``) is authenticated and
reports Forbidden/NotFound precisely. Redemption (``/stream/{token}`` and
``/download/{token}``) is unauthenticated: the token is the capability, and
every failure answers with the same generic 404.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ..core.auth import Principal, require_auth
from ..database import get_db
from ..middleware.request_context import client_ip
from ..models.enums import TokenPurpose
from ..schemas.company import PermissionResponse
from ..schemas.document import (
    DocumentResponse,
    DocumentVersionsResponse,
    TokenRequest,
    TokenResponse,
)
from ..schemas.share import ShareCreate, ShareResponse, ShareUpdate
from ..services.delivery_service import DeliveryGateway
from ..services.document_service import DocumentService
from ..services.permission_service import PermissionResolver
from ..services.share_service import ShareService
from ..services.storage_service import BlobStore, get_blob_store
from ..services.token_service import RequestMeta, TokenService

router = APIRouter(prefix="/api/documents", tags=["documents"])


def _request_meta(request: Request) -> RequestMeta:
    return RequestMeta(ip_address=client_ip(request), user_agent=request.headers.get("user-agent"))


def _deliver(
    token: str,
    purpose: TokenPurpose,
    request: Request,
    db: Session,
    blob_store: BlobStore,
) -> StreamingResponse:
    delivery = DeliveryGateway(db, blob_store).handle(token, purpose, _request_meta(request))
    return StreamingResponse(
        delivery.stream,
        media_type=delivery.content_type,
        headers=delivery.headers(),
    )


# --- Redemption (no authentication; before /{document_id} routes) ---


@router.get("/stream/{token}", summary="Redeem a PREVIEW token (inline)")
def stream_document(
    token: str,
    request: Request,
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
):
    return _deliver(token, TokenPurpose.PREVIEW, request, db, blob_store)


@router.get("/download/{token}", summary="Redeem a DOWNLOAD token (attachment)")
def download_document(
    token: str,
    request: Request,
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
):
    return _deliver(token, TokenPurpose.DOWNLOAD, request, db, blob_store)


# --- Document shares addressed by share id ---


@router.patch("/shares/{share_id}", response_model=ShareResponse)
def update_document_share(
    share_id: str,
    body: ShareUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
):
    share = ShareService(db).update_document_share(principal, share_id, body)
    return ShareResponse.from_row(share)


@router.delete("/shares/{share_id}", response_model=ShareResponse)
def revoke_document_share(
    share_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
):
    share = ShareService(db).revoke_document_share(principal, share_id)
    return ShareResponse.from_row(share)


@router.get("/shared-by-me", response_model=List[ShareResponse])
def list_shared_by_me(
    company_id: Optional[str] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
):
    """Live document shares the caller granted, optionally within one company."""
    shares = ShareService(db).list_documents_shared_by(principal, company_id)
    return [ShareResponse.from_row(s) for s in shares]


# --- Per-document endpoints ---


@router.post(
    "/{document_id}/generate-token",
    response_model=TokenResponse,
    summary="Issue a one-time delivery token",
)
def generate_token(
    document_id: str,
    body: TokenRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
):
    """Requires at least VIEW on the document. Each call issues a new token."""
    issued = TokenService(db).issue(document_id, principal, body.purpose, _request_meta(request))
    return TokenResponse(
        token=issued.token,
        url=issued.url,
        expires_at=issued.expires_at,
        purpose=issued.purpose,
        expires_in=issued.expires_in,
    )


@router.get("/{document_id}", response_model=DocumentResponse)
def get_document(
    document_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
    blob_store: BlobStore = Depends(get_blob_store),
):
    return DocumentService(db, blob_store).get_document(principal, document_id)


@router.get("/{document_id}/permission", response_model=PermissionResponse)
def get_document_permission(
    document_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
):
    level = PermissionResolver(db).resolve_document(principal, document_id)
    return PermissionResponse(resource_id=document_id, permission_level=level.name)


@router.get("/{document_id}/versions", response_model=DocumentVersionsResponse)
def list_versions(
    document_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
    blob_store: BlobStore = Depends(get_blob_store),
):
    versions = DocumentService(db, blob_store).list_versions(principal, document_id)
    return DocumentVersionsResponse(
        document_id=document_id,
        versions=[DocumentResponse.model_validate(v) for v in versions],
    )


@router.post("/{document_id}/replace", response_model=DocumentResponse)
def replace_document(
    document_id: str,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
    blob_store: BlobStore = Depends(get_blob_store),
):
    """Overwrite the stored file. Requires EDIT on the document."""
    data = file.file.read()
    return DocumentService(db, blob_store).replace_content(
        principal, document_id, data, content_type=file.content_type
    )


@router.delete("/{document_id}", status_code=204)
def delete_document(
    document_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
    blob_store: BlobStore = Depends(get_blob_store),
):
    DocumentService(db, blob_store).delete_document(principal, document_id)


@router.post("/{document_id}/shares", response_model=ShareResponse, status_code=201)
def share_document(
    document_id: str,
    body: ShareCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
):
    share = ShareService(db).share_document(principal, document_id, body)
    return ShareResponse.from_row(share)


@router.get("/{document_id}/shares", response_model=List[ShareResponse])
def list_document_shares(
    document_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
):
    shares = ShareService(db).list_document_shares(principal, document_id)
    return [ShareResponse.from_row(s) for s in shares]

"""Office editor endpoints.

``/config`` is called by the browser with the user's JWT. ``/callback`` is
called by the editor server and is authenticated by the editor signature
instead, so it never depends on ``require_auth``.
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Query, Request
from sqlalchemy.orm import Session

from ..core.auth import Principal, require_auth
from ..database import get_db
from ..services.editor_service import EditorService
from ..services.storage_service import BlobStore, get_blob_store

router = APIRouter(prefix="/api/editor", tags=["editor"])


@router.get("/{document_id}/config")
def get_editor_config(
    document_id: str,
    mode: str = Query("edit", pattern="^(edit|view)$"),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
    blob_store: BlobStore = Depends(get_blob_store),
):
    return EditorService(db, blob_store).get_config(principal, document_id, mode)


@router.post("/callback")
def editor_callback(
    request: Request,
    body: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
):
    """Always answers 200; the editor reads ``{"error": 0|1}`` from the body."""
    return EditorService(db, blob_store).handle_callback(
        body, auth_header=request.headers.get("authorization")
    )

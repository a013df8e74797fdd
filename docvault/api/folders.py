"""Folder endpoints: create, rename, move, delete, tree, contents and search."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.auth import Principal, require_auth
from ..database import get_db
from ..schemas.document import DocumentResponse
from ..schemas.folder import (
    FolderContentsResponse,
    FolderCreate,
    FolderDeleteResponse,
    FolderMoveRequest,
    FolderRenameRequest,
    FolderResponse,
    FolderSearchResponse,
    TreeNode,
)
from ..services.folder_service import FolderService

router = APIRouter(prefix="/api/folders", tags=["folders"])


@router.post("", response_model=FolderResponse, status_code=201)
def create_folder(
    body: FolderCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
):
    """Create a folder. Sibling names are unique within one parent."""
    return FolderService(db).create_folder(
        principal, body.company_id, body.name, parent_id=body.parent_id
    )


@router.get("/company/{company_id}/tree", response_model=List[TreeNode])
def get_tree(
    company_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
):
    return FolderService(db).get_tree(principal, company_id)


@router.get("/company/{company_id}/contents", response_model=FolderContentsResponse)
def get_contents(
    company_id: str,
    folder_id: Optional[str] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
):
    """One level of a company: the company root when ``folder_id`` is omitted."""
    contents = FolderService(db).get_contents(principal, company_id, folder_id)
    return FolderContentsResponse(
        folder=FolderResponse.model_validate(contents.folder) if contents.folder else None,
        breadcrumbs=contents.breadcrumbs,
        folders=[FolderResponse.model_validate(f) for f in contents.folders],
        documents=[DocumentResponse.model_validate(d) for d in contents.documents],
    )


@router.get("/company/{company_id}/search", response_model=FolderSearchResponse)
def search(
    company_id: str,
    q: str = Query(..., min_length=1, max_length=100),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
):
    """Case-insensitive name search over folders and latest document versions."""
    results = FolderService(db).search(principal, company_id, q)
    return FolderSearchResponse(
        folders=[FolderResponse.model_validate(f) for f in results.folders],
        documents=[DocumentResponse.model_validate(d) for d in results.documents],
    )


@router.patch("/{folder_id}/rename", response_model=FolderResponse)
def rename_folder(
    folder_id: str,
    body: FolderRenameRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
):
    return FolderService(db).rename_folder(principal, folder_id, body.name)


@router.patch("/{folder_id}/move", response_model=FolderResponse)
def move_folder(
    folder_id: str,
    body: FolderMoveRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
):
    """Move under ``parent_id`` (null for the root). Cycles answer 400."""
    return FolderService(db).move_folder(principal, folder_id, body.parent_id)


@router.delete("/{folder_id}", response_model=FolderDeleteResponse)
def delete_folder(
    folder_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
):
    return FolderDeleteResponse(**FolderService(db).delete_folder(principal, folder_id))

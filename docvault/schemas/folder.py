"""Folder and tree schemas."""

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional, List

from .document import DocumentResponse


class FolderCreate(BaseModel):
    """Schema for creating a folder. ``parent_id`` null creates a root folder."""
    company_id: str
    name: str = Field(..., min_length=1, max_length=255)
    parent_id: Optional[str] = None


class FolderRenameRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class FolderMoveRequest(BaseModel):
    """Move a folder under ``parent_id``; null moves it to the company root."""
    parent_id: Optional[str] = None


class FolderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    company_id: str
    parent_id: Optional[str] = None
    name: str
    path: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Breadcrumb(BaseModel):
    id: str
    name: str
    path: str


class FolderContentsResponse(BaseModel):
    folder: Optional[FolderResponse] = None
    breadcrumbs: List[Breadcrumb] = []
    folders: List[FolderResponse] = []
    documents: List[DocumentResponse] = []


class FolderDeleteResponse(BaseModel):
    deleted_folders: int
    detached_documents: int


class TreeNode(BaseModel):
    """Schema for tree navigation."""
    id: str
    name: str
    path: str
    parent_id: Optional[str] = None
    children: List['TreeNode'] = []


class FolderSearchResponse(BaseModel):
    folders: List[FolderResponse] = []
    documents: List[DocumentResponse] = []

"""Pydantic schemas for API validation."""

from .audit import AuditEntryResponse
from .company import CompanyCreate, CompanyResponse, CompanyUpdate, PermissionResponse
from .document import (
    DocumentResponse,
    DocumentVersionsResponse,
    TokenRequest,
    TokenResponse,
)
from .folder import (
    Breadcrumb,
    FolderContentsResponse,
    FolderCreate,
    FolderDeleteResponse,
    FolderMoveRequest,
    FolderRenameRequest,
    FolderResponse,
    FolderSearchResponse,
    TreeNode,
)
from .share import ShareCreate, ShareResponse, ShareUpdate

__all__ = [
    "AuditEntryResponse",
    "CompanyCreate",
    "CompanyResponse",
    "CompanyUpdate",
    "PermissionResponse",
    "DocumentResponse",
    "DocumentVersionsResponse",
    "TokenRequest",
    "TokenResponse",
    "Breadcrumb",
    "FolderContentsResponse",
    "FolderCreate",
    "FolderDeleteResponse",
    "FolderMoveRequest",
    "FolderRenameRequest",
    "FolderResponse",
    "FolderSearchResponse",
    "TreeNode",
    "ShareCreate",
    "ShareResponse",
    "ShareUpdate",
]

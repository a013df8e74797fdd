"""Database models."""

from .enums import AuditStatus, PermissionLevel, Role, ShareStatus, TokenPurpose
from .user import User, AuditLog
from .company import Company, CompanyShare
from .folder import Folder
from .document import Document, DocumentShare
from .delivery_token import DeliveryToken

__all__ = [
    "AuditStatus", "PermissionLevel", "Role", "ShareStatus", "TokenPurpose",
    "User", "AuditLog",
    "Company", "CompanyShare",
    "Folder",
    "Document", "DocumentShare",
    "DeliveryToken",
]

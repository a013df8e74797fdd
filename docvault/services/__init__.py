"""Business logic services."""

from .delivery_service import DeliveryGateway
from .document_service import DocumentService
from .folder_service import FolderService
from .permission_service import PermissionResolver
from .token_service import TokenService

__all__ = ["DeliveryGateway", "DocumentService", "FolderService", "PermissionResolver", "TokenService"]

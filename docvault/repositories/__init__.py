"""Repository layer: query helpers over the ORM models. No commits."""

from .company_repository import CompanyRepository
from .document_repository import DocumentRepository
from .folder_repository import FolderRepository
from .share_repository import CompanyShareRepository, DocumentShareRepository
from .token_repository import TokenRepository

__all__ = [
    "CompanyRepository",
    "DocumentRepository",
    "FolderRepository",
    "CompanyShareRepository",
    "DocumentShareRepository",
    "TokenRepository",
]

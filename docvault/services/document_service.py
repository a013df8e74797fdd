"""Document uploads, version chains and metadata reads.

Bytes go to the blob store first and the row is committed after; if the
commit fails the fresh object is removed again. A new version flips its
parent's ``is_latest_version`` in the same commit that inserts it, with the
parent row locked, so a chain never has two latest versions.
"""

import hashlib
import logging
import mimetypes
import uuid
from pathlib import Path
from typing import List, Optional

import sqlalchemy.exc
from sqlalchemy.orm import Session

from ..core.auth import Principal
from ..core.config import settings
from ..exceptions import ConflictError, StorageError, ValidationError
from ..models import Document
from ..repositories import DocumentRepository, FolderRepository
from . import audit_service
from .permission_service import Action, PermissionResolver
from .storage_service import BlobStore, build_storage_key

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"


def guess_mime_type(filename: str, declared: Optional[str]) -> str:
    """Declared type unless it is missing or generic, then guess by extension."""
    declared = (declared or "").strip().lower()
    if declared and declared not in (DEFAULT_MIME_TYPE, "binary/octet-stream"):
        return declared
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or DEFAULT_MIME_TYPE


def _check_size(data: bytes) -> None:
    if not data:
        raise ValidationError("Empty file", field="file")
    if len(data) > settings.max_upload_bytes:
        raise ValidationError(
            f"File too large (max {settings.max_upload_bytes // (1024 * 1024)} MB)", field="file"
        )


class DocumentService:
    """Public methods:
        upload          -- new document, or new version when parent given
        replace_content -- overwrite the stored bytes of one version
        get_document / list_documents / list_versions
        delete_document -- removes one version; its children re-link to its
                           parent, which becomes latest if it was the tip
    """

    def __init__(self, db: Session, blob_store: BlobStore, resolver: Optional[PermissionResolver] = None):
        self.db = db
        self.blob_store = blob_store
        self.resolver = resolver or PermissionResolver(db)
        self.documents = DocumentRepository(db)
        self.folders = FolderRepository(db)

    def upload(
        self,
        principal: Principal,
        company_id: str,
        data: bytes,
        filename: str,
        content_type: Optional[str] = None,
        folder_id: Optional[str] = None,
        parent_document_id: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Document:
        self.resolver.require_company(principal, company_id, Action.WRITE)
        _check_size(data)
        original_name = Path(filename or "unnamed").name
        if folder_id:
            self.folders.get_in_company(folder_id, company_id)

        parent = None
        if parent_document_id:
            parent = self.documents.get_for_update(parent_document_id)
            if parent.company_id != company_id:
                raise ValidationError("Parent document belongs to another company", field="parent_document_id")
            if not parent.is_latest_version:
                self.db.rollback()
                raise ConflictError(
                    "Only the latest version of a document can receive a new version",
                    details={"parent_document_id": parent_document_id},
                )

        mime_type = guess_mime_type(original_name, content_type)
        key = build_storage_key(company_id, folder_id, original_name)
        self.blob_store.put_object(key, data, mime_type)

        document = Document(
            id=str(uuid.uuid4()),
            company_id=company_id,
            folder_id=folder_id,
            name=(name or original_name).strip(),
            original_name=original_name,
            mime_type=mime_type,
            file_size=len(data),
            checksum=hashlib.sha256(data).hexdigest(),
            storage_key=key,
            version=parent.version + 1 if parent else 1,
            parent_document_id=parent.id if parent else None,
            is_latest_version=True,
            uploaded_by_id=principal.user_id,
        )
        if parent is not None:
            parent.is_latest_version = False
        self.documents.add(document)
        try:
            self.db.commit()
        except sqlalchemy.exc.SQLAlchemyError:
            self.db.rollback()
            self._discard_object(key)
            raise
        self.db.refresh(document)

        logger.info("Uploaded document %s v%d (%d bytes)", document.id, document.version, document.file_size)
        audit_service.log(
            self.db, principal.user_id, "DOCUMENT_UPLOADED", "DOCUMENT", document.id,
            details={"file_name": original_name, "version": document.version},
        )
        return document

    def replace_content(
        self,
        principal: Principal,
        document_id: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> Document:
        """Overwrite one version's bytes. Requires EDIT on the document."""
        document = self.resolver.require_document(principal, document_id, Action.WRITE)
        _check_size(data)
        self.store_content(document, data, content_type)
        audit_service.log(
            self.db, principal.user_id, "DOCUMENT_REPLACED", "DOCUMENT", document.id,
            details={"file_size": len(data)},
        )
        return document

    def store_content(self, document: Document, data: bytes, content_type: Optional[str] = None) -> Document:
        """Write *data* over the document's object and update its metadata.

        No permission check; callers authorize first.
        """
        mime_type = guess_mime_type(document.original_name, content_type or document.mime_type)
        self.blob_store.put_object(document.storage_key, data, mime_type)
        document.mime_type = mime_type
        document.file_size = len(data)
        document.checksum = hashlib.sha256(data).hexdigest()
        self.db.commit()
        self.db.refresh(document)
        return document

    def get_document(self, principal: Principal, document_id: str) -> Document:
        return self.resolver.require_document(principal, document_id, Action.READ)

    def list_documents(
        self,
        principal: Principal,
        company_id: str,
        folder_id: Optional[str] = None,
        latest_only: bool = True,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Document]:
        self.resolver.require_company(principal, company_id, Action.READ)
        return self.documents.list_for_company(
            company_id,
            folder_id=folder_id,
            latest_only=latest_only,
            skip=skip,
            limit=limit,
            any_folder=folder_id is None,
        )

    def list_versions(self, principal: Principal, document_id: str) -> List[Document]:
        document = self.resolver.require_document(principal, document_id, Action.READ)
        return self.documents.version_chain(document)

    def delete_document(self, principal: Principal, document_id: str) -> None:
        document = self.resolver.require_document(principal, document_id, Action.DELETE)
        key = document.storage_key

        # Splice the version out of its chain: children move up to its parent.
        for child in self.documents.children_of(document.id):
            child.parent_document_id = document.parent_document_id
        if document.is_latest_version and document.parent_document_id:
            parent = self.documents.get_by_id_optional(document.parent_document_id)
            if parent is not None:
                parent.is_latest_version = True
        try:
            self.db.flush()
            self.db.delete(document)
            self.db.commit()
        except sqlalchemy.exc.SQLAlchemyError:
            self.db.rollback()
            raise

        self._discard_object(key)
        audit_service.log(self.db, principal.user_id, "DOCUMENT_DELETED", "DOCUMENT", document_id)

    def _discard_object(self, key: str) -> None:
        try:
            self.blob_store.delete_object(key)
        except StorageError:
            logger.warning("Orphaned blob left behind: %s", key)

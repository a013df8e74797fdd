"""Office editor integration: editor config and save callback.

The editor server fetches the file itself, so the config carries a
short-lived presigned storage URL. That URL only ever travels server to
server; the browser receives it inside a signed config the editor consumes.

Callback statuses follow the editor's protocol:
    1 editing, 2 ready to save, 3 save error, 4 closed without changes,
    6 force save, 7 force save error.
Statuses 2 and 6 carry a ``url`` to the edited file, which is downloaded and
written over the stored object.
"""

import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
from sqlalchemy.orm import Session

from ..core.auth import Principal
from ..core.config import settings
from ..core.token_factory import sign_payload, verify_signature
from ..exceptions import ForbiddenError, ValidationError
from ..models import Document
from ..models.enums import PermissionLevel
from ..repositories import DocumentRepository
from . import audit_service, auth_service
from .document_service import DocumentService
from .permission_service import PermissionResolver
from .storage_service import BlobStore
from .time_utils import as_utc, utcnow

logger = logging.getLogger(__name__)

SAVE_STATUSES = (2, 6)
DOWNLOAD_TIMEOUT = 60.0
MAX_RETRIES = 3

_DOCUMENT_TYPES = {
    "word": {".doc", ".docx", ".odt", ".rtf", ".txt"},
    "cell": {".xls", ".xlsx", ".ods", ".csv"},
    "slide": {".ppt", ".pptx", ".odp"},
    "pdf": {".pdf"},
}


def document_key(document: Document) -> str:
    """``{id}_{updated_at ms}``: changes whenever the stored file changes."""
    updated = as_utc(document.updated_at or document.uploaded_at) or utcnow()
    return f"{document.id}_{int(updated.timestamp() * 1000)}"


def document_id_from_key(key: str) -> str:
    return key.rsplit("_", 1)[0]


def file_type(document: Document) -> str:
    return Path(document.original_name).suffix.lower().lstrip(".")


def document_type(document: Document) -> str:
    ext = Path(document.original_name).suffix.lower()
    for kind, extensions in _DOCUMENT_TYPES.items():
        if ext in extensions:
            return kind
    return "word"


class EditorService:
    def __init__(
        self,
        db: Session,
        blob_store: BlobStore,
        http_client: Optional[httpx.Client] = None,
        resolver: Optional[PermissionResolver] = None,
    ):
        self.db = db
        self.blob_store = blob_store
        self.resolver = resolver or PermissionResolver(db)
        self.documents = DocumentRepository(db)
        self._http = http_client

    def get_config(self, principal: Principal, document_id: str, mode: str = "edit") -> Dict[str, Any]:
        """Editor config for *document_id*.

        ``view`` needs VIEW and ``edit`` needs EDIT; both raise ForbiddenError
        below that level.
        """
        if mode not in ("edit", "view"):
            raise ValidationError("mode must be 'edit' or 'view'", field="mode")

        document = self.documents.get_by_id(document_id)
        level = self.resolver.resolve_document(principal, document)
        can_edit = level >= PermissionLevel.EDIT
        if level < PermissionLevel.VIEW or (mode == "edit" and not can_edit):
            raise ForbiddenError(f"Insufficient permission to {mode} this document")

        user = auth_service.get_user_optional(self.db, principal.user_id)
        callback_url = f"{settings.public_base_url.rstrip('/')}/api/editor/callback"
        config: Dict[str, Any] = {
            "document": {
                "fileType": file_type(document),
                "key": document_key(document),
                "title": document.name,
                "url": self.blob_store.get_presigned_url(
                    document.storage_key, settings.editor_url_ttl_seconds
                ),
                "permissions": {
                    "comment": can_edit,
                    "download": True,
                    "edit": can_edit,
                    "print": True,
                    "review": can_edit,
                },
            },
            "documentType": document_type(document),
            "editorConfig": {
                "mode": mode,
                "callbackUrl": callback_url,
                "customization": {"autosave": True, "forcesave": True},
                "user": {
                    "id": principal.user_id,
                    "name": user.display_name if user else principal.user_id,
                },
            },
        }
        claims = dict(config)
        claims["exp"] = int(time.time()) + settings.editor_url_ttl_seconds
        config["token"] = sign_payload(claims, settings.editor_jwt_secret)
        return config

    def handle_callback(self, body: Dict[str, Any], auth_header: Optional[str] = None) -> Dict[str, int]:
        """Process one editor callback. Returns ``{"error": 0}`` or ``{"error": 1}``."""
        if settings.editor_jwt_secret and not self._verify(body, auth_header):
            logger.warning("Rejected editor callback with invalid signature")
            return {"error": 1}

        status = body.get("status")
        key = body.get("key") or ""
        if status not in SAVE_STATUSES:
            logger.info("Editor callback status=%s key=%s", status, key)
            return {"error": 0}

        url = body.get("url")
        if not url:
            logger.error("Editor callback status=%s without url (key=%s)", status, key)
            return {"error": 1}

        document = self.documents.get_by_id_optional(document_id_from_key(key))
        if document is None:
            logger.error("Editor callback for unknown document key=%s", key)
            return {"error": 1}

        try:
            data = self._download(url)
            DocumentService(self.db, self.blob_store, self.resolver).store_content(document, data)
        except Exception as e:
            logger.error("Failed to save edited document %s: %s", document.id, e)
            self.db.rollback()
            return {"error": 1}

        audit_service.log(
            self.db, None, "DOCUMENT_EDITED", "DOCUMENT", document.id,
            details={"status": status, "file_size": len(data), "users": body.get("users") or []},
        )
        logger.info("Saved edited document %s (%d bytes)", document.id, len(data))
        return {"error": 0}

    def _verify(self, body: Dict[str, Any], auth_header: Optional[str]) -> bool:
        token = body.get("token")
        if not token and auth_header and auth_header.startswith("Bearer "):
            token = auth_header[len("Bearer "):]
        if not token:
            return False
        return verify_signature(token, settings.editor_jwt_secret) is not None

    def _download(self, url: str) -> bytes:
        """GET *url*, retrying connection errors and 5xx responses."""
        client = self._http or httpx.Client(timeout=DOWNLOAD_TIMEOUT)
        last_exc: Optional[Exception] = None
        try:
            for attempt in range(MAX_RETRIES):
                try:
                    resp = client.get(url)
                    if resp.status_code < 500:
                        resp.raise_for_status()
                        return resp.content
                    last_exc = httpx.HTTPStatusError(
                        f"Server error {resp.status_code}", request=resp.request, response=resp
                    )
                except (httpx.ConnectError, httpx.TimeoutException) as exc:
                    last_exc = exc
                logger.warning("Editor file download attempt %d/%d failed: %s", attempt + 1, MAX_RETRIES, last_exc)
        finally:
            if self._http is None:
                client.close()
        raise last_exc

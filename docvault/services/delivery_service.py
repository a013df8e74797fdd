"""Delivery gateway: turns a redeemed token into a byte stream.

The gateway does not consult the PermissionResolver; the token was only
issued after a permission check, and holding a valid token is the sole
requirement for redemption. Every redemption failure leaves here as the
same LinkUnavailableError so an unauthenticated caller cannot tell a
malformed, unknown, expired, used or wrong-purpose token apart. The real
cause is in the audit trail.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, Optional
from urllib.parse import quote

from sqlalchemy.orm import Session

from ..core.token_factory import is_delivery_token_format
from ..exceptions import DeliveryTokenError, LinkUnavailableError
from ..models.enums import AuditStatus, TokenPurpose
from . import audit_service
from .storage_service import BlobStore
from .token_service import RequestMeta, TokenService

logger = logging.getLogger(__name__)

_NO_STORE_HEADERS = {
    "Cache-Control": "private, no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
    "X-Content-Type-Options": "nosniff",
}


def content_disposition(disposition: str, filename: str) -> str:
    """Header value with the filename percent-encoded.

    Encoded the way browsers' encodeURIComponent does, so quotes, CR/LF and
    non-ASCII names cannot break out of the header.
    """
    encoded = quote(filename, safe="!*'()")
    return f"{disposition}; filename=\"{encoded}\"; filename*=UTF-8''{encoded}"


@dataclass
class Delivery:
    stream: Iterator[bytes]
    content_type: str
    filename: str
    disposition: str

    def headers(self) -> Dict[str, str]:
        headers = dict(_NO_STORE_HEADERS)
        headers["Content-Disposition"] = content_disposition(self.disposition, self.filename)
        if self.disposition == "inline":
            headers["X-Frame-Options"] = "SAMEORIGIN"
        return headers


class DeliveryGateway:
    def __init__(self, db: Session, blob_store: BlobStore, tokens: Optional[TokenService] = None):
        self.db = db
        self.blob_store = blob_store
        self.tokens = tokens or TokenService(db)

    def handle(
        self,
        token: str,
        purpose: TokenPurpose,
        meta: Optional[RequestMeta] = None,
    ) -> Delivery:
        """Redeem *token* and open the document's stream.

        Raises LinkUnavailableError for any redemption failure. A storage
        failure after a successful redemption surfaces as StorageError; the
        token stays consumed.
        """
        if not is_delivery_token_format(token):
            self._reject_malformed(token, purpose, meta or RequestMeta())
            raise LinkUnavailableError()

        try:
            ref = self.tokens.redeem(token, purpose, meta)
        except DeliveryTokenError:
            raise LinkUnavailableError() from None

        stream = self.blob_store.get_object_stream(ref.storage_key)
        return Delivery(
            stream=stream,
            content_type=ref.mime_type,
            filename=ref.filename,
            disposition="inline" if purpose is TokenPurpose.PREVIEW else "attachment",
        )

    def _reject_malformed(self, token: str, purpose: TokenPurpose, meta: RequestMeta) -> None:
        """Audit a token that failed the shape check. No database lookup is made."""
        masked = audit_service.token_prefix(token)
        logger.info("Rejected %s redemption (malformed) for token %s", purpose.value, masked)
        audit_service.log(
            self.db,
            user_id=None,
            action="TOKEN_REJECTED",
            resource_type="DOCUMENT",
            status=AuditStatus.FAILURE,
            details={"token": masked, "purpose": purpose.value, "reason": "malformed"},
            ip_address=meta.ip_address,
            user_agent=meta.user_agent,
        )

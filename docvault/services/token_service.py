"""One-time delivery tokens: issue, redeem, sweep.

A delivery token is an unguessable 64-hex capability bound to one document
and one purpose (PREVIEW or DOWNLOAD). Issuance is gated by the
PermissionResolver; redemption is not, so the redeeming client needs no
credentials beyond the token itself.

Redemption checks, in order: the token exists, it is unused, ``now`` is not
past ``expires_at``, and the purpose matches. Only then is it consumed, with
a conditional UPDATE that succeeds for exactly one caller. The success audit
entry is written in the same transaction as the consume, so a redemption
either leaves both or neither.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ..core.auth import Principal
from ..core.config import settings
from ..core.token_factory import new_delivery_token
from ..exceptions import (
    DeliveryTokenError,
    TokenAlreadyUsedError,
    TokenExpiredError,
    TokenInvalidError,
    TokenPurposeMismatchError,
)
from ..models import DeliveryToken
from ..models.enums import AuditStatus, TokenPurpose
from ..repositories import DocumentRepository, TokenRepository
from . import audit_service
from .permission_service import Action, PermissionResolver
from .time_utils import as_utc, utcnow

logger = logging.getLogger(__name__)

_REDEEM_ACTIONS = {
    TokenPurpose.PREVIEW: "DOCUMENT_PREVIEWED",
    TokenPurpose.DOWNLOAD: "DOCUMENT_DOWNLOADED",
}

_ENDPOINTS = {
    TokenPurpose.PREVIEW: "stream",
    TokenPurpose.DOWNLOAD: "download",
}


@dataclass(frozen=True)
class RequestMeta:
    """Client details recorded with issuance and redemption."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class IssuedToken:
    token: str
    url: str
    expires_at: datetime
    purpose: TokenPurpose
    expires_in: str


@dataclass(frozen=True)
class DocumentRef:
    """What a successful redemption hands to the delivery gateway."""

    document_id: str
    storage_key: str
    mime_type: str
    filename: str
    purpose: TokenPurpose


def token_ttl(purpose: TokenPurpose) -> timedelta:
    """Lifetime of a new token. Downloads get the shorter window."""
    if purpose is TokenPurpose.PREVIEW:
        return timedelta(seconds=settings.preview_token_ttl_seconds)
    return timedelta(seconds=settings.download_token_ttl_seconds)


def describe_ttl(ttl: timedelta) -> str:
    """Human-readable lifetime, e.g. ``"5 minutes"``."""
    seconds = int(ttl.total_seconds())
    if seconds % 60 == 0:
        minutes = seconds // 60
        return f"{minutes} minute" if minutes == 1 else f"{minutes} minutes"
    return f"{seconds} second" if seconds == 1 else f"{seconds} seconds"


def delivery_url(token: str, purpose: TokenPurpose) -> str:
    base = settings.public_base_url.rstrip("/")
    return f"{base}/api/documents/{_ENDPOINTS[purpose]}/{token}"


class TokenService:
    """Issue, redeem and garbage-collect delivery tokens.

    Public methods:
        issue   -- permission-gated; persists a fresh unused token
        redeem  -- validate and consume exactly once; returns a DocumentRef
        sweep   -- delete terminal rows (expired, or used long enough ago)
    """

    def __init__(self, db: Session, resolver: Optional[PermissionResolver] = None):
        self.db = db
        self.tokens = TokenRepository(db)
        self.documents = DocumentRepository(db)
        self.resolver = resolver or PermissionResolver(db)

    def issue(
        self,
        document_id: str,
        principal: Principal,
        purpose: TokenPurpose,
        meta: Optional[RequestMeta] = None,
        now: Optional[datetime] = None,
    ) -> IssuedToken:
        """Issue a token for *document_id*.

        Raises DocumentNotFoundError for an unknown document and
        ForbiddenError unless the principal has at least VIEW on it.
        Calling again simply issues another token.
        """
        meta = meta or RequestMeta()
        now = now or utcnow()
        document = self.resolver.require_document(principal, document_id, Action.READ)

        ttl = token_ttl(purpose)
        row = DeliveryToken(
            id=str(uuid.uuid4()),
            token=new_delivery_token(),
            document_id=document.id,
            user_id=principal.user_id,
            purpose=purpose,
            expires_at=now + ttl,
            used=False,
            ip_address=meta.ip_address,
            user_agent=meta.user_agent[:255] if meta.user_agent else None,
        )
        self.tokens.add(row)
        self.db.commit()

        logger.info(
            "Issued %s token for document %s (user=%s, ttl=%ss)",
            purpose.value, document.id, principal.user_id, int(ttl.total_seconds()),
        )
        return IssuedToken(
            token=row.token,
            url=delivery_url(row.token, purpose),
            expires_at=now + ttl,
            purpose=purpose,
            expires_in=describe_ttl(ttl),
        )

    def redeem(
        self,
        token: str,
        purpose: TokenPurpose,
        meta: Optional[RequestMeta] = None,
        now: Optional[datetime] = None,
    ) -> DocumentRef:
        """Validate and consume *token* for *purpose*.

        Raises one of TokenInvalidError, TokenAlreadyUsedError,
        TokenExpiredError or TokenPurposeMismatchError. None of the failure
        paths change the token. Every attempt is audited with its real cause.
        """
        meta = meta or RequestMeta()
        now = now or utcnow()

        row = self.tokens.get_by_token(token)
        user_id = row.user_id if row is not None else None
        document_id = row.document_id if row is not None else None

        try:
            if row is None:
                raise TokenInvalidError()
            if row.used:
                raise TokenAlreadyUsedError()
            if now > as_utc(row.expires_at):
                raise TokenExpiredError()
            if row.purpose != purpose:
                raise TokenPurposeMismatchError(purpose.value, TokenPurpose(row.purpose).value)

            # Losing the race is indistinguishable from arriving late.
            if not self.tokens.consume(row.id, now):
                raise TokenAlreadyUsedError()

            document = self.documents.get_by_id_optional(row.document_id)
            if document is None:
                raise TokenInvalidError()

            filename = document.name if purpose is TokenPurpose.PREVIEW else document.original_name
            audit_service.record(
                self.db,
                user_id=user_id,
                action=_REDEEM_ACTIONS[purpose],
                resource_type="DOCUMENT",
                resource_id=document.id,
                details={"token": audit_service.token_prefix(token), "file_name": filename},
                ip_address=meta.ip_address,
                user_agent=meta.user_agent,
            )
            ref = DocumentRef(
                document_id=document.id,
                storage_key=document.storage_key,
                mime_type=document.mime_type or "application/octet-stream",
                filename=filename,
                purpose=purpose,
            )
            self.db.commit()
        except DeliveryTokenError as exc:
            self.db.rollback()
            logger.info(
                "Rejected %s redemption (%s) for token %s",
                purpose.value, exc.reason, audit_service.token_prefix(token),
            )
            audit_service.log(
                self.db,
                user_id=user_id,
                action="TOKEN_REJECTED",
                resource_type="DOCUMENT",
                resource_id=document_id,
                status=AuditStatus.FAILURE,
                details={
                    "token": audit_service.token_prefix(token),
                    "purpose": purpose.value,
                    "reason": exc.reason,
                },
                ip_address=meta.ip_address,
                user_agent=meta.user_agent,
            )
            raise

        logger.info("Redeemed %s token for document %s", purpose.value, ref.document_id)
        return ref

    def sweep(self, now: Optional[datetime] = None) -> int:
        """Delete expired tokens and tokens used more than the retention
        window ago. Idempotent; returns the number of rows removed."""
        now = now or utcnow()
        used_before = now - timedelta(hours=settings.used_token_retention_hours)
        count = self.tokens.delete_stale(now, used_before)
        self.db.commit()
        if count:
            logger.info("Token sweep removed %d rows", count)
        return count

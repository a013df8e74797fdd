"""Audit logging service: records state-changing operations and every
delivery-token redemption attempt.

Entries are immutable. Two write paths:

    record() -- stages the entry in the caller's transaction and raises on
                failure. Used where the audit entry is part of the operation's
                contract (a successful redemption must leave one).
    log()    -- best-effort; commits on its own and never raises. Used for
                failures and bookkeeping.

Usage in service layer:
    audit_service.log(db, user_id="abc", action="FOLDER_MOVED", resource_type="FOLDER",
                      resource_id="f-123", details={"old_path": "/A/", "new_path": "/B/A/"})
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import sqlalchemy.exc
from sqlalchemy.orm import Session

from ..models.enums import AuditStatus
from ..models.user import AuditLog

logger = logging.getLogger(__name__)

# Delivery tokens are never stored whole; this many leading characters are.
TOKEN_PREFIX_LENGTH = 8


def token_prefix(token: Optional[str]) -> Optional[str]:
    if not token:
        return None
    return token[:TOKEN_PREFIX_LENGTH] + "..."


def _entry(
    user_id: Optional[str],
    action: str,
    resource_type: str,
    resource_id: Optional[str],
    status: AuditStatus,
    details: Optional[dict],
    ip_address: Optional[str],
    user_agent: Optional[str],
) -> AuditLog:
    return AuditLog(
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        status=status,
        details=json.dumps(details) if details else None,
        ip_address=ip_address,
        user_agent=user_agent[:255] if user_agent else None,
    )


def record(
    db: Session,
    user_id: Optional[str],
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    status: AuditStatus = AuditStatus.SUCCESS,
    details: Optional[dict] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> AuditLog:
    """Add an audit entry to the current transaction and flush it.

    Does not commit. A flush failure propagates so the caller's transaction
    rolls back with it.
    """
    entry = _entry(user_id, action, resource_type, resource_id, status, details, ip_address, user_agent)
    db.add(entry)
    db.flush()
    return entry


def log(
    db: Session,
    user_id: Optional[str],
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    status: AuditStatus = AuditStatus.SUCCESS,
    details: Optional[dict] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> None:
    """Write an audit log entry. Never raises; audit failures are logged but don't break operations."""
    try:
        db.add(_entry(user_id, action, resource_type, resource_id, status, details, ip_address, user_agent))
        db.commit()
    except sqlalchemy.exc.SQLAlchemyError as e:
        logger.warning("Failed to write audit log: %s", e)
        db.rollback()


def get_recent(db: Session, limit: int = 100, action: Optional[str] = None) -> list[AuditLog]:
    """Get the most recent audit log entries, optionally for one action."""
    query = db.query(AuditLog)
    if action:
        query = query.filter(AuditLog.action == action)
    return (
        query
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit)
        .all()
    )


def get_by_resource(db: Session, resource_type: str, resource_id: str, limit: int = 100) -> list[AuditLog]:
    """Get audit log entries for a specific resource."""
    return (
        db.query(AuditLog)
        .filter(AuditLog.resource_type == resource_type, AuditLog.resource_id == resource_id)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit)
        .all()
    )


def purge_old_entries(db: Session, days: int = 365) -> int:
    """Delete audit log entries older than `days`. Returns count of deleted rows.

    Skipped when days <= 0 (keep forever). Never raises, logs failures.
    """
    if days <= 0:
        return 0

    cutoff = datetime.now(timezone.utc) - timedelta(days=days)
    try:
        count = db.query(AuditLog).filter(AuditLog.created_at < cutoff).delete()
        db.commit()
        return count
    except sqlalchemy.exc.SQLAlchemyError as e:
        logger.warning("Failed to purge audit log: %s", e)
        db.rollback()
        return 0

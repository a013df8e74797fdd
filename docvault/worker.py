"""
Polling maintenance worker.

Every ``TOKEN_SWEEP_INTERVAL_SECONDS`` it removes expired delivery tokens
and consumed tokens past the retention window. Once a day it also purges
audit entries older than ``AUDIT_RETENTION_DAYS``.

Usage:
    python -m docvault.worker
"""

import logging
import time
from datetime import datetime, timezone

from .core.config import settings
from .core.logging_config import setup_logging
from .database import SessionLocal
from .services import audit_service
from .services.token_service import TokenService

AUDIT_PURGE_INTERVAL = 24 * 60 * 60

logger = logging.getLogger("docvault.worker")


def sweep_tokens() -> int:
    """Run one token sweep in its own session. Returns rows removed."""
    db = SessionLocal()
    try:
        return TokenService(db).sweep()
    except Exception as e:
        logger.error("Token sweep failed: %s", e)
        db.rollback()
        return 0
    finally:
        db.close()


def purge_audit_log() -> int:
    if settings.audit_retention_days <= 0:
        return 0
    db = SessionLocal()
    try:
        count = audit_service.purge_old_entries(db, days=settings.audit_retention_days)
        if count:
            logger.info("Purged %d audit log entries", count)
        return count
    finally:
        db.close()


def main() -> None:
    setup_logging(log_level=settings.log_level, log_format=settings.log_format)
    interval = settings.token_sweep_interval_seconds
    logger.info("Worker started, sweeping every %ss", interval)

    last_purge = datetime.now(timezone.utc)
    purge_audit_log()

    while True:
        try:
            sweep_tokens()
            now = datetime.now(timezone.utc)
            if (now - last_purge).total_seconds() >= AUDIT_PURGE_INTERVAL:
                purge_audit_log()
                last_purge = now
            time.sleep(interval)
        except KeyboardInterrupt:
            logger.info("Worker shutting down")
            break


if __name__ == "__main__":
    main()

"""Timezone helpers shared by services.

SQLite hands back naive datetimes even for ``DateTime(timezone=True)``
columns; every stored timestamp is written in UTC, so naive values are
read as UTC before comparison.
"""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

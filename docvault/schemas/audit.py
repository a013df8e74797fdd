"""Audit log schemas."""

import json
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from ..models.enums import AuditStatus


class AuditEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: Optional[str] = None
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    status: AuditStatus
    details: Dict[str, Any] = {}
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("details", mode="before")
    @classmethod
    def parse_details(cls, v):
        """Stored as a JSON string; absent means no details."""
        if not v:
            return {}
        if isinstance(v, str):
            return json.loads(v)
        return v

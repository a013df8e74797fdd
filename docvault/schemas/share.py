"""Share schemas, common to company and document shares."""

from pydantic import BaseModel, ConfigDict, field_validator
from datetime import datetime
from typing import Optional

from ..models.enums import GRANTABLE_LEVELS, PermissionLevel, ShareStatus


def _grantable(v) -> PermissionLevel:
    level = PermissionLevel.parse(v)
    if level not in GRANTABLE_LEVELS:
        raise ValueError("permission_level must be VIEW, EDIT or MANAGE")
    return level


class ShareCreate(BaseModel):
    shared_with_user_id: str
    permission_level: PermissionLevel
    note: Optional[str] = None
    valid_until: Optional[datetime] = None

    @field_validator("permission_level", mode="before")
    @classmethod
    def validate_level(cls, v):
        return _grantable(v)


class ShareUpdate(BaseModel):
    permission_level: Optional[PermissionLevel] = None
    note: Optional[str] = None
    valid_until: Optional[datetime] = None

    @field_validator("permission_level", mode="before")
    @classmethod
    def validate_level(cls, v):
        if v is None:
            return v
        return _grantable(v)


class ShareResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    target_id: str
    shared_with_user_id: str
    shared_by_user_id: Optional[str] = None
    permission_level: str
    status: ShareStatus
    note: Optional[str] = None
    valid_until: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> "ShareResponse":
        target_id = getattr(row, "company_id", None) or getattr(row, "document_id")
        return cls(
            id=row.id,
            target_id=target_id,
            shared_with_user_id=row.shared_with_user_id,
            shared_by_user_id=row.shared_by_user_id,
            permission_level=PermissionLevel.parse(row.permission_level).name,
            status=row.status,
            note=row.note,
            valid_until=row.valid_until,
            revoked_at=row.revoked_at,
            created_at=row.created_at,
        )

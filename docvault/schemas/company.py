"""Company schemas."""

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional


class CompanyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class CompanyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    owner_id: str
    created_at: Optional[datetime] = None


class PermissionResponse(BaseModel):
    """Caller's resolved level on a company or document."""
    resource_id: str
    permission_level: str


class CompanyUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)

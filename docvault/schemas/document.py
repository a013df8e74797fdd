"""Document and delivery-token schemas."""

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional, List

from ..models.enums import TokenPurpose


class DocumentResponse(BaseModel):
    """Schema for document metadata. Never carries the storage key."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    company_id: str
    folder_id: Optional[str] = None
    name: str
    original_name: str
    mime_type: str
    file_size: int
    checksum: Optional[str] = None
    version: int
    parent_document_id: Optional[str] = None
    is_latest_version: bool
    uploaded_by_id: str
    uploaded_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DocumentVersionsResponse(BaseModel):
    document_id: str
    versions: List[DocumentResponse]


class TokenRequest(BaseModel):
    """Body of ``POST /api/documents/{id}/generate-token``."""
    purpose: TokenPurpose

    model_config = {
        "json_schema_extra": {"examples": [{"purpose": "PREVIEW"}]}
    }


class TokenResponse(BaseModel):
    """Issued delivery token. Keys are camelCase on the wire."""
    model_config = ConfigDict(populate_by_name=True)

    token: str
    url: str
    expires_at: datetime = Field(..., serialization_alias="expiresAt")
    purpose: TokenPurpose
    expires_in: str = Field(..., serialization_alias="expiresIn")

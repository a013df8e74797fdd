"""Document and DocumentShare models."""

from sqlalchemy import (
    BigInteger, Boolean, Column, DateTime, Enum, ForeignKey, Index, Integer,
    String, Text, UniqueConstraint,
)
from sqlalchemy.sql import func
from ..database import Base
from .enums import PermissionLevel, ShareStatus


class Document(Base):
    """A stored file.

    Versions form a chain through parent_document_id. Exactly one document
    in a chain has is_latest_version = True; uploading a new version flips
    the parent in the same transaction.
    """

    __tablename__ = "documents"
    __table_args__ = (
        Index("ix_documents_company_folder", "company_id", "folder_id"),
        Index("ix_documents_parent", "parent_document_id"),
    )

    id = Column(String(36), primary_key=True)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    folder_id = Column(String(36), ForeignKey("folders.id", ondelete="SET NULL"), nullable=True)

    name = Column(String(255), nullable=False)
    original_name = Column(String(255), nullable=False)
    mime_type = Column(String(255), nullable=False, default="application/octet-stream")
    file_size = Column(BigInteger, nullable=False, default=0)
    checksum = Column(String(64), nullable=True)  # SHA-256 hex

    # Blob store key, e.g. "companies/<cid>/folders/<fid>/<uuid>.pdf"
    storage_key = Column(Text, nullable=False)

    version = Column(Integer, nullable=False, default=1)
    parent_document_id = Column(String(36), ForeignKey("documents.id", ondelete="SET NULL"), nullable=True)
    is_latest_version = Column(Boolean, nullable=False, default=True)

    uploaded_by_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class DocumentShare(Base):
    """Grant of a permission level on a single document.

    Additive to company access: it can raise a user's level on this
    document but never lowers an inherited one.
    """

    __tablename__ = "document_shares"
    __table_args__ = (
        UniqueConstraint("document_id", "shared_with_user_id", name="uq_document_shares_pair"),
        Index("ix_document_shares_user", "shared_with_user_id"),
    )

    id = Column(String(36), primary_key=True)
    document_id = Column(String(36), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False)
    shared_with_user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    shared_by_user_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    permission_level = Column(Enum(PermissionLevel, native_enum=False, length=10), nullable=False)
    status = Column(Enum(ShareStatus, native_enum=False, length=10), nullable=False, default=ShareStatus.ACTIVE)
    note = Column(Text, nullable=True)
    valid_until = Column(DateTime(timezone=True), nullable=True)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

"""One-time delivery token model."""

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Index, String
from sqlalchemy.sql import func
from ..database import Base
from .enums import TokenPurpose


class DeliveryToken(Base):
    """Single-use, time-boxed capability to fetch one document.

    Lifecycle: issued (used=False) -> consumed (used=True, used_at set),
    or expired once expires_at passes. Expiry is never stored; it is checked
    at redemption time. Both end states are terminal; the sweep deletes them.
    """

    __tablename__ = "delivery_tokens"
    __table_args__ = (
        Index("ix_delivery_tokens_expires_at", "expires_at"),
        Index("ix_delivery_tokens_used_at", "used", "used_at"),
    )

    id = Column(String(36), primary_key=True)
    token = Column(String(64), nullable=False, unique=True)
    document_id = Column(String(36), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    purpose = Column(Enum(TokenPurpose, native_enum=False, length=10), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used = Column(Boolean, nullable=False, default=False)
    used_at = Column(DateTime(timezone=True), nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

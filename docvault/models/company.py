"""Company and CompanyShare models."""

from sqlalchemy import Column, Enum, ForeignKey, Index, String, Text, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base
from .enums import PermissionLevel, ShareStatus


class Company(Base):
    """A tenant. Owned by exactly one user; ownership never transfers."""

    __tablename__ = "companies"

    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False)
    owner_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    shares = relationship("CompanyShare", back_populates="company", cascade="all, delete-orphan")


class CompanyShare(Base):
    """Grant of a permission level on a whole company to one user.

    Unique on (company_id, shared_with_user_id): sharing again reactivates
    the existing row instead of inserting a second one.
    """

    __tablename__ = "company_shares"
    __table_args__ = (
        UniqueConstraint("company_id", "shared_with_user_id", name="uq_company_shares_pair"),
        Index("ix_company_shares_user", "shared_with_user_id"),
    )

    id = Column(String(36), primary_key=True)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    shared_with_user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    shared_by_user_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    permission_level = Column(Enum(PermissionLevel, native_enum=False, length=10), nullable=False)
    status = Column(Enum(ShareStatus, native_enum=False, length=10), nullable=False, default=ShareStatus.ACTIVE)
    note = Column(Text, nullable=True)
    valid_until = Column(DateTime(timezone=True), nullable=True)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    company = relationship("Company", back_populates="shares")

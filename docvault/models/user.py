"""User and AuditLog models.

Users authenticate with email/password and receive JWT tokens.
AuditLog records state-changing operations and every delivery-token
redemption attempt, successful or not.
"""

from sqlalchemy import Column, Enum, Index, String, DateTime, Boolean, Integer, Text, ForeignKey
from sqlalchemy.sql import func
from ..database import Base
from .enums import AuditStatus, Role


class User(Base):
    """User account with a global role.

    Roles:
        SUPER_ADMIN, ADMIN - manage every company
        SUPERVISOR         - manage every company except destructive actions
        EMPLOYEE, AUDITOR  - only what they own or have been shared
    """

    __tablename__ = "users"

    id = Column(String(36), primary_key=True)
    display_name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(Text, nullable=False)
    role = Column(Enum(Role, native_enum=False, length=20), nullable=False, default=Role.EMPLOYEE)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class AuditLog(Base):
    """Immutable record of state-changing operations.

    Fields:
        action        - e.g. DOCUMENT_PREVIEWED, DOCUMENT_DOWNLOADED,
                        TOKEN_ISSUED, TOKEN_REJECTED, SHARE_CREATED, FOLDER_MOVED
        resource_type - DOCUMENT, COMPANY, FOLDER, SHARE, USER
        status        - SUCCESS or FAILURE
        details       - JSON string with additional context (never a full token)
    """

    __tablename__ = "audit_log"
    __table_args__ = (
        Index("ix_audit_log_resource", "resource_type", "resource_id"),
        Index("ix_audit_log_created_at", "created_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = Column(String(50), nullable=False)
    resource_type = Column(String(50), nullable=False)
    resource_id = Column(String(255), nullable=True)
    status = Column(Enum(AuditStatus, native_enum=False, length=10), nullable=False, default=AuditStatus.SUCCESS)
    details = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

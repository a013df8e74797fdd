"""Folder model with a materialized path."""

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.sql import func
from ..database import Base


class Folder(Base):
    """A node in a company's folder tree.

    ``path`` is slash-delimited from the root to this folder inclusive,
    with a leading and trailing slash: ``/Contracts/2024/``. Every
    descendant's path starts with its ancestor's path, so a subtree is a
    single ``LIKE '<path>%'`` query.
    """

    __tablename__ = "folders"
    __table_args__ = (
        Index("ix_folders_company_path", "company_id", "path"),
        Index("ix_folders_company_parent_name", "company_id", "parent_id", "name"),
    )

    id = Column(String(36), primary_key=True)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    parent_id = Column(String(36), ForeignKey("folders.id", ondelete="CASCADE"), nullable=True)
    name = Column(String(255), nullable=False)
    path = Column(Text, nullable=False)
    created_by_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

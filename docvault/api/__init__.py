"""API routes."""

from .audit import router as audit_router
from .auth_routes import router as auth_router
from .companies import router as companies_router
from .documents import router as documents_router
from .editor import router as editor_router
from .folders import router as folders_router
from .shares import router as shares_router

__all__ = [
    "audit_router",
    "auth_router",
    "companies_router",
    "documents_router",
    "editor_router",
    "folders_router",
    "shares_router",
]

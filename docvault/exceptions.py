"""Custom exception hierarchy for DocVault."""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Lookup errors
    COMPANY_NOT_FOUND = "COMPANY_NOT_FOUND"
    DOCUMENT_NOT_FOUND = "DOCUMENT_NOT_FOUND"
    FOLDER_NOT_FOUND = "FOLDER_NOT_FOUND"
    SHARE_NOT_FOUND = "SHARE_NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"

    # Delivery token errors (internal; collapsed at the redemption surface)
    TOKEN_INVALID = "TOKEN_INVALID"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    TOKEN_ALREADY_USED = "TOKEN_ALREADY_USED"
    TOKEN_PURPOSE_MISMATCH = "TOKEN_PURPOSE_MISMATCH"
    LINK_UNAVAILABLE = "LINK_UNAVAILABLE"

    # Folder tree errors
    INVALID_FOLDER_NAME = "INVALID_FOLDER_NAME"
    DUPLICATE_FOLDER_NAME = "DUPLICATE_FOLDER_NAME"
    CYCLIC_MOVE = "CYCLIC_MOVE"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Storage errors
    STORAGE_ERROR = "STORAGE_ERROR"

    # Auth & rate limiting
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    RATE_LIMITED = "RATE_LIMITED"

    # Concurrency errors
    CONFLICT = "CONFLICT"

    # Generic errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class VaultException(Exception):
    """
    Base exception for all DocVault errors.

    Provides structured error responses with:
    - Human-readable message
    - Machine-readable error code
    - HTTP status code
    - Optional additional details
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------

class NotFoundError(VaultException):
    """A resource referenced by id does not exist."""

    def __init__(self, message: str, error_code: ErrorCode, details: Dict[str, Any]):
        super().__init__(message, error_code, status_code=404, details=details)


class CompanyNotFoundError(NotFoundError):
    def __init__(self, company_id: str):
        super().__init__(
            f"Company not found: {company_id}",
            ErrorCode.COMPANY_NOT_FOUND,
            details={"company_id": company_id},
        )


class DocumentNotFoundError(NotFoundError):
    def __init__(self, document_id: str):
        super().__init__(
            f"Document not found: {document_id}",
            ErrorCode.DOCUMENT_NOT_FOUND,
            details={"document_id": document_id},
        )


class FolderNotFoundError(NotFoundError):
    def __init__(self, folder_id: str):
        super().__init__(
            f"Folder not found: {folder_id}",
            ErrorCode.FOLDER_NOT_FOUND,
            details={"folder_id": folder_id},
        )


class ShareNotFoundError(NotFoundError):
    def __init__(self, share_id: str):
        super().__init__(
            f"Share not found: {share_id}",
            ErrorCode.SHARE_NOT_FOUND,
            details={"share_id": share_id},
        )


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: str):
        super().__init__(
            f"User not found: {user_id}",
            ErrorCode.USER_NOT_FOUND,
            details={"user_id": user_id},
        )


# ---------------------------------------------------------------------------
# Delivery tokens
# ---------------------------------------------------------------------------

class DeliveryTokenError(VaultException):
    """Base class for redemption failures.

    These carry the precise cause for audit and logs. The delivery gateway
    never lets them reach an unauthenticated client; it raises
    LinkUnavailableError instead.
    """

    reason: str = "invalid"

    def __init__(self, message: str, error_code: ErrorCode, status_code: int):
        super().__init__(message, error_code, status_code=status_code)


class TokenInvalidError(DeliveryTokenError):
    reason = "invalid"

    def __init__(self):
        super().__init__("Unknown delivery token", ErrorCode.TOKEN_INVALID, 404)


class TokenExpiredError(DeliveryTokenError):
    reason = "expired"

    def __init__(self):
        super().__init__("Delivery token has expired", ErrorCode.TOKEN_EXPIRED, 400)


class TokenAlreadyUsedError(DeliveryTokenError):
    reason = "already_used"

    def __init__(self):
        super().__init__(
            "Delivery token has already been used", ErrorCode.TOKEN_ALREADY_USED, 400
        )


class TokenPurposeMismatchError(DeliveryTokenError):
    reason = "purpose_mismatch"

    def __init__(self, expected: str, actual: str):
        super().__init__(
            f"Delivery token issued for {actual}, redeemed for {expected}",
            ErrorCode.TOKEN_PURPOSE_MISMATCH,
            400,
        )


class LinkUnavailableError(VaultException):
    """Single client-facing failure for every redemption problem."""

    def __init__(self):
        super().__init__(
            "Link is invalid or has expired",
            ErrorCode.LINK_UNAVAILABLE,
            status_code=404,
        )


# ---------------------------------------------------------------------------
# Folder tree
# ---------------------------------------------------------------------------

class InvalidFolderNameError(VaultException):
    def __init__(self, name: str):
        super().__init__(
            "Folder name may only contain letters, digits, spaces, hyphens and underscores",
            ErrorCode.INVALID_FOLDER_NAME,
            status_code=400,
            details={"name": name},
        )


class DuplicateFolderNameError(VaultException):
    def __init__(self, name: str, parent_id: Optional[str]):
        super().__init__(
            f"A folder named '{name}' already exists in this location",
            ErrorCode.DUPLICATE_FOLDER_NAME,
            status_code=409,
            details={"name": name, "parent_id": parent_id},
        )


class CyclicMoveError(VaultException):
    def __init__(self, folder_id: str, target_id: str):
        super().__init__(
            "Cannot move a folder into itself or one of its subfolders",
            ErrorCode.CYCLIC_MOVE,
            status_code=400,
            details={"folder_id": folder_id, "target_id": target_id},
        )


# ---------------------------------------------------------------------------
# Generic
# ---------------------------------------------------------------------------

class ValidationError(VaultException):
    """Validation failed for user input."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message,
            ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details
        )


class AuthenticationError(VaultException):
    """Request lacks valid authentication credentials."""

    def __init__(self, message: str = "Invalid or missing authentication token"):
        super().__init__(
            message,
            ErrorCode.UNAUTHORIZED,
            status_code=401,
        )


class ForbiddenError(VaultException):
    """Authenticated user lacks permission for the requested action."""

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(
            message,
            ErrorCode.FORBIDDEN,
            status_code=403,
        )


class ConflictError(VaultException):
    """Request conflicts with the current state of a resource."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message,
            ErrorCode.CONFLICT,
            status_code=409,
            details=details,
        )


class StorageError(VaultException):
    """Blob store operation failed."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(
            message,
            ErrorCode.STORAGE_ERROR,
            status_code=502,
            details={"key": key} if key else {},
        )


class RateLimitedError(VaultException):
    """Client exceeded its request budget."""

    def __init__(self, retry_after: float):
        super().__init__(
            "Too many requests",
            ErrorCode.RATE_LIMITED,
            status_code=429,
            details={"retry_after": round(retry_after, 1)},
        )
        self.retry_after = retry_after

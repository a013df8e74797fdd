"""Closed enumerations shared by models, services and schemas.

Roles and permission levels are enums rather than strings so that the
permission resolver compares members, never spellings.
"""

import enum


class Role(str, enum.Enum):
    """Global role of a principal."""
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    SUPERVISOR = "SUPERVISOR"
    EMPLOYEE = "EMPLOYEE"
    AUDITOR = "AUDITOR"


class PermissionLevel(enum.IntEnum):
    """Effective permission on a company or document.

    Ordered: NONE < VIEW < EDIT < MANAGE, so ``max()`` and ``>=`` express
    "at least" directly. Persisted by name.
    """
    NONE = 0
    VIEW = 1
    EDIT = 2
    MANAGE = 3

    @classmethod
    def parse(cls, value: "str | PermissionLevel") -> "PermissionLevel":
        if isinstance(value, cls):
            return value
        try:
            return cls[str(value).upper()]
        except KeyError:
            raise ValueError(f"Unknown permission level: {value}") from None


class ShareStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    REVOKED = "REVOKED"


class TokenPurpose(str, enum.Enum):
    PREVIEW = "PREVIEW"
    DOWNLOAD = "DOWNLOAD"


class AuditStatus(str, enum.Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


# Share rows can grant at most these levels; NONE is expressed by revoking.
GRANTABLE_LEVELS = (PermissionLevel.VIEW, PermissionLevel.EDIT, PermissionLevel.MANAGE)

"""Permission resolution: the one place where access rules are defined.

Design:
    - Levels: NONE < VIEW < EDIT < MANAGE (``PermissionLevel``, an IntEnum)
    - Roles: ADMIN, SUPER_ADMIN and SUPERVISOR have a MANAGE ceiling on every
      company; EMPLOYEE and AUDITOR have none and rely on ownership or shares
    - A company owner has MANAGE on it
    - An ACTIVE, unexpired share grants its level; REVOKED or expired is NONE
    - A document's level is the maximum of its company's level, the uploader
      bonus (EDIT) and any direct document share. Document shares add, they
      never take away inherited company access
    - Actions map to a minimum level. DELETE needs MANAGE and a SUPERVISOR's
      level is capped at EDIT for it, so supervisors never delete

The level functions are pure. ``PermissionResolver`` only loads the rows they
need, re-reading them on every call; nothing is cached between calls.
"""

from __future__ import annotations

import enum
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Optional, Union

from sqlalchemy.orm import Session

from ..exceptions import ForbiddenError
from ..models import Company, Document
from ..models.enums import PermissionLevel, Role, ShareStatus
from ..repositories import (
    CompanyRepository,
    CompanyShareRepository,
    DocumentRepository,
    DocumentShareRepository,
)
from .time_utils import as_utc, utcnow

if TYPE_CHECKING:
    from ..core.auth import Principal
    from ..repositories.share_repository import ShareRow

logger = logging.getLogger(__name__)


class Action(str, enum.Enum):
    READ = "read"
    WRITE = "write"
    SHARE = "share"
    DELETE = "delete"


# Minimum level each action requires.
_ACTION_LEVELS: dict[Action, PermissionLevel] = {
    Action.READ: PermissionLevel.VIEW,
    Action.WRITE: PermissionLevel.EDIT,
    Action.SHARE: PermissionLevel.MANAGE,
    Action.DELETE: PermissionLevel.MANAGE,
}

_ROLE_CEILINGS: dict[Role, PermissionLevel] = {
    Role.SUPER_ADMIN: PermissionLevel.MANAGE,
    Role.ADMIN: PermissionLevel.MANAGE,
    Role.SUPERVISOR: PermissionLevel.MANAGE,
}

# Per-role cap applied to destructive actions only.
_DESTRUCTIVE_CAPS: dict[Role, PermissionLevel] = {
    Role.SUPERVISOR: PermissionLevel.EDIT,
}


def role_ceiling(role: Role) -> PermissionLevel:
    """Level a role grants on every company, regardless of ownership."""
    return _ROLE_CEILINGS.get(role, PermissionLevel.NONE)


def share_level(share: Optional["ShareRow"], now: datetime) -> PermissionLevel:
    """Level granted by a share row as of *now*.

    A share counts only while ACTIVE and while ``valid_until`` is unset or
    strictly later than *now*.
    """
    if share is None or share.status != ShareStatus.ACTIVE:
        return PermissionLevel.NONE
    valid_until = as_utc(share.valid_until)
    if valid_until is not None and valid_until <= now:
        return PermissionLevel.NONE
    return PermissionLevel.parse(share.permission_level)


def company_level(role: Role, is_owner: bool, share: PermissionLevel) -> PermissionLevel:
    ceiling = role_ceiling(role)
    if ceiling is not PermissionLevel.NONE:
        return ceiling
    if is_owner:
        return PermissionLevel.MANAGE
    return share


def document_level(
    inherited: PermissionLevel, is_uploader: bool, share: PermissionLevel
) -> PermissionLevel:
    uploader = PermissionLevel.EDIT if is_uploader else PermissionLevel.NONE
    return max(inherited, uploader, share)


def allows(role: Role, level: PermissionLevel, action: Action) -> bool:
    """Whether *level* is enough for *action*, after role caps."""
    cap = _DESTRUCTIVE_CAPS.get(role) if action is Action.DELETE else None
    if cap is not None:
        level = min(level, cap)
    return level >= _ACTION_LEVELS[action]


class PermissionResolver:
    """Resolve and enforce a principal's level on companies and documents.

    Public methods:
        resolve_company   -- effective level on a company
        resolve_document  -- effective level on a document
        authorize         -- raise ForbiddenError unless the level allows an action
        require_company   -- load, resolve and authorize in one call
        require_document  -- same for documents

    Missing companies or documents raise the matching NotFound error; they
    are never folded into NONE.
    """

    def __init__(self, db: Session):
        self.db = db
        self.companies = CompanyRepository(db)
        self.documents = DocumentRepository(db)
        self.company_shares = CompanyShareRepository(db)
        self.document_shares = DocumentShareRepository(db)

    def resolve_company(
        self,
        principal: "Principal",
        company: Union[Company, str],
        now: Optional[datetime] = None,
    ) -> PermissionLevel:
        now = now or utcnow()
        if isinstance(company, str):
            company = self.companies.get_by_id(company)

        if role_ceiling(principal.role) is not PermissionLevel.NONE:
            return role_ceiling(principal.role)

        is_owner = company.owner_id == principal.user_id
        share = PermissionLevel.NONE
        if not is_owner:
            share = share_level(self.company_shares.get_active(company.id, principal.user_id), now)
        return company_level(principal.role, is_owner, share)

    def resolve_document(
        self,
        principal: "Principal",
        document: Union[Document, str],
        now: Optional[datetime] = None,
    ) -> PermissionLevel:
        now = now or utcnow()
        if isinstance(document, str):
            document = self.documents.get_by_id(document)

        inherited = self.resolve_company(principal, document.company_id, now)
        if inherited is PermissionLevel.MANAGE:
            return inherited

        share = share_level(self.document_shares.get_active(document.id, principal.user_id), now)
        return document_level(inherited, document.uploaded_by_id == principal.user_id, share)

    def authorize(self, principal: "Principal", level: PermissionLevel, action: Action) -> None:
        if not allows(principal.role, level, action):
            logger.info(
                "Permission denied: user=%s role=%s level=%s action=%s",
                principal.user_id, principal.role.value, level.name, action.value,
            )
            raise ForbiddenError(
                f"Insufficient permission to {action.value} this resource"
            )

    def require_company(
        self, principal: "Principal", company_id: str, action: Action
    ) -> Company:
        company = self.companies.get_by_id(company_id)
        self.authorize(principal, self.resolve_company(principal, company), action)
        return company

    def require_document(
        self, principal: "Principal", document_id: str, action: Action
    ) -> Document:
        document = self.documents.get_by_id(document_id)
        self.authorize(principal, self.resolve_document(principal, document), action)
        return document

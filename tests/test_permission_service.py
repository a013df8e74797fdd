"""Tests for permission resolution: roles, ownership, shares and actions."""

from datetime import timedelta

import pytest

from docvault.exceptions import CompanyNotFoundError, DocumentNotFoundError, ForbiddenError
from docvault.models import DocumentShare
from docvault.models.enums import PermissionLevel, Role, ShareStatus
from docvault.services.permission_service import (
    Action,
    PermissionResolver,
    allows,
    company_level,
    document_level,
    role_ceiling,
    share_level,
)
from docvault.services.time_utils import utcnow


class _Share:
    def __init__(self, level, status=ShareStatus.ACTIVE, valid_until=None):
        self.permission_level = level
        self.status = status
        self.valid_until = valid_until


class TestPureRules:

    def test_role_ceilings(self):
        assert role_ceiling(Role.SUPER_ADMIN) is PermissionLevel.MANAGE
        assert role_ceiling(Role.ADMIN) is PermissionLevel.MANAGE
        assert role_ceiling(Role.SUPERVISOR) is PermissionLevel.MANAGE
        assert role_ceiling(Role.EMPLOYEE) is PermissionLevel.NONE
        assert role_ceiling(Role.AUDITOR) is PermissionLevel.NONE

    def test_share_level_active(self):
        assert share_level(_Share(PermissionLevel.EDIT), utcnow()) is PermissionLevel.EDIT

    def test_share_level_revoked_is_none(self):
        share = _Share(PermissionLevel.MANAGE, status=ShareStatus.REVOKED)
        assert share_level(share, utcnow()) is PermissionLevel.NONE

    def test_share_level_expires_at_valid_until(self):
        now = utcnow()
        assert share_level(_Share(PermissionLevel.VIEW, valid_until=now), now) is PermissionLevel.NONE
        later = now + timedelta(seconds=1)
        assert share_level(_Share(PermissionLevel.VIEW, valid_until=later), now) is PermissionLevel.VIEW

    def test_share_level_accepts_naive_timestamps(self):
        now = utcnow()
        naive_past = (now - timedelta(minutes=1)).replace(tzinfo=None)
        assert share_level(_Share(PermissionLevel.VIEW, valid_until=naive_past), now) is PermissionLevel.NONE

    def test_share_level_missing(self):
        assert share_level(None, utcnow()) is PermissionLevel.NONE

    def test_owner_gets_manage(self):
        assert company_level(Role.EMPLOYEE, True, PermissionLevel.NONE) is PermissionLevel.MANAGE

    def test_company_share_used_when_not_owner(self):
        assert company_level(Role.AUDITOR, False, PermissionLevel.VIEW) is PermissionLevel.VIEW

    def test_document_level_is_maximum(self):
        assert document_level(PermissionLevel.VIEW, False, PermissionLevel.NONE) is PermissionLevel.VIEW
        assert document_level(PermissionLevel.VIEW, True, PermissionLevel.NONE) is PermissionLevel.EDIT
        assert document_level(PermissionLevel.EDIT, False, PermissionLevel.VIEW) is PermissionLevel.EDIT
        assert document_level(PermissionLevel.NONE, False, PermissionLevel.MANAGE) is PermissionLevel.MANAGE

    @pytest.mark.parametrize("action,needed", [
        (Action.READ, PermissionLevel.VIEW),
        (Action.WRITE, PermissionLevel.EDIT),
        (Action.SHARE, PermissionLevel.MANAGE),
        (Action.DELETE, PermissionLevel.MANAGE),
    ])
    def test_action_thresholds(self, action, needed):
        assert allows(Role.EMPLOYEE, needed, action)
        assert not allows(Role.EMPLOYEE, PermissionLevel(needed - 1), action)

    def test_supervisor_never_deletes(self):
        assert not allows(Role.SUPERVISOR, PermissionLevel.MANAGE, Action.DELETE)
        assert allows(Role.SUPERVISOR, PermissionLevel.MANAGE, Action.SHARE)
        assert allows(Role.ADMIN, PermissionLevel.MANAGE, Action.DELETE)


class TestResolver:

    def test_owner_and_outsider(self, db, make_user, make_company, as_principal):
        owner = make_user()
        outsider = make_user()
        company = make_company(owner)
        resolver = PermissionResolver(db)

        assert resolver.resolve_company(as_principal(owner), company.id) is PermissionLevel.MANAGE
        assert resolver.resolve_company(as_principal(outsider), company.id) is PermissionLevel.NONE

    @pytest.mark.parametrize("role", [Role.SUPER_ADMIN, Role.ADMIN, Role.SUPERVISOR])
    def test_privileged_roles_manage_every_company(self, db, make_user, make_company, as_principal, role):
        company = make_company(make_user())
        user = make_user(role=role)
        assert PermissionResolver(db).resolve_company(as_principal(user), company.id) is PermissionLevel.MANAGE

    def test_auditor_has_no_implicit_access(self, db, make_user, make_company, as_principal):
        company = make_company(make_user())
        auditor = make_user(role=Role.AUDITOR)
        assert PermissionResolver(db).resolve_company(as_principal(auditor), company.id) is PermissionLevel.NONE

    def test_unknown_ids_raise_not_found(self, db, make_user, as_principal):
        resolver = PermissionResolver(db)
        p = as_principal(make_user())
        with pytest.raises(CompanyNotFoundError):
            resolver.resolve_company(p, "missing")
        with pytest.raises(DocumentNotFoundError):
            resolver.resolve_document(p, "missing")

    def test_company_share_scenario(
        self, db, make_user, make_company, make_document, make_company_share, as_principal
    ):
        """EMPLOYEE with a VIEW company share can read but not edit."""
        owner = make_user()
        employee = make_user()
        company = make_company(owner)
        document = make_document(company, owner)
        make_company_share(company, employee, PermissionLevel.VIEW)
        resolver = PermissionResolver(db)
        p = as_principal(employee)

        assert resolver.resolve_company(p, company.id) is PermissionLevel.VIEW
        assert resolver.require_document(p, document.id, Action.READ).id == document.id
        with pytest.raises(ForbiddenError):
            resolver.require_document(p, document.id, Action.WRITE)

    def test_revocation_is_seen_on_next_call(
        self, db, make_user, make_company, make_company_share, as_principal
    ):
        owner = make_user()
        employee = make_user()
        company = make_company(owner)
        share = make_company_share(company, employee, PermissionLevel.EDIT)
        resolver = PermissionResolver(db)
        p = as_principal(employee)
        assert resolver.resolve_company(p, company.id) is PermissionLevel.EDIT

        share.status = ShareStatus.REVOKED
        db.commit()

        assert resolver.resolve_company(p, company.id) is PermissionLevel.NONE

    def test_expired_company_share(self, db, make_user, make_company, make_company_share, as_principal):
        owner = make_user()
        employee = make_user()
        company = make_company(owner)
        make_company_share(
            company, employee, PermissionLevel.MANAGE, valid_until=utcnow() - timedelta(minutes=5)
        )
        assert PermissionResolver(db).resolve_company(as_principal(employee), company.id) is PermissionLevel.NONE

    def test_document_never_below_company(
        self, db, make_user, make_company, make_document, make_company_share, as_principal
    ):
        owner = make_user()
        employee = make_user()
        company = make_company(owner)
        document = make_document(company, owner)
        make_company_share(company, employee, PermissionLevel.EDIT)
        db.add(DocumentShare(
            id="doc-share-1",
            document_id=document.id,
            shared_with_user_id=employee.id,
            permission_level=PermissionLevel.VIEW,
            status=ShareStatus.ACTIVE,
        ))
        db.commit()
        resolver = PermissionResolver(db)
        p = as_principal(employee)

        company_lvl = resolver.resolve_company(p, company.id)
        assert resolver.resolve_document(p, document.id) >= company_lvl
        assert resolver.resolve_document(p, document.id) is PermissionLevel.EDIT

    def test_document_share_raises_level(self, db, make_user, make_company, make_document, as_principal):
        owner = make_user()
        outsider = make_user()
        company = make_company(owner)
        document = make_document(company, owner)
        db.add(DocumentShare(
            id="doc-share-2",
            document_id=document.id,
            shared_with_user_id=outsider.id,
            permission_level=PermissionLevel.EDIT,
            status=ShareStatus.ACTIVE,
        ))
        db.commit()
        resolver = PermissionResolver(db)
        p = as_principal(outsider)

        assert resolver.resolve_company(p, company.id) is PermissionLevel.NONE
        assert resolver.resolve_document(p, document.id) is PermissionLevel.EDIT

    def test_uploader_keeps_edit(
        self, db, make_user, make_company, make_document, make_company_share, as_principal
    ):
        owner = make_user()
        contributor = make_user()
        company = make_company(owner)
        share = make_company_share(company, contributor, PermissionLevel.EDIT)
        document = make_document(company, contributor)

        share.status = ShareStatus.REVOKED
        db.commit()

        level = PermissionResolver(db).resolve_document(as_principal(contributor), document.id)
        assert level is PermissionLevel.EDIT

    def test_supervisor_delete_is_forbidden(self, db, make_user, make_company, make_document, as_principal):
        owner = make_user()
        company = make_company(owner)
        document = make_document(company, owner)
        supervisor = make_user(role=Role.SUPERVISOR)
        resolver = PermissionResolver(db)

        with pytest.raises(ForbiddenError):
            resolver.require_document(as_principal(supervisor), document.id, Action.DELETE)
        assert resolver.require_document(as_principal(owner), document.id, Action.DELETE).id == document.id

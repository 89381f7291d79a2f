import logging
from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from partyhub.core.config import AuthSettings, TenantSettings
from partyhub.core.security import SecurityProvider
from partyhub.errors import BadRequest, Forbidden, NotFound, Unauthorized
from partyhub.models import PartyType, RoleType, User
from partyhub.schemas import RoleInput
from partyhub.services import AccessState, PartyService, TenantAccessGuard

MEMBER_ID = "user-member"
ADMIN_ID = "user-admin"


@pytest.fixture
def guard(session: Session, security: SecurityProvider, tenants: None) -> TenantAccessGuard:
    return TenantAccessGuard(session, security)


def _bearer(security: SecurityProvider, user_id: str = MEMBER_ID) -> str:
    return f"Bearer {security.create_access_token(user_id)}"


def test_check_grants_member_access(guard: TenantAccessGuard, security: SecurityProvider) -> None:
    context = guard.check(authorization=_bearer(security), tenant_header="farm-1")

    assert context.tenant_id == "farm-1"
    assert context.principal.user_id == MEMBER_ID
    assert context.principal.tenant_role == "ADMIN"
    assert not context.principal.is_system_admin
    assert guard.state is AccessState.ACCESS_GRANTED


@pytest.mark.parametrize(
    "authorization",
    [None, "", "Basic abc", "Bearer ", "Bearer not-a-token"],
)
def test_authenticate_rejects_bad_credentials(guard: TenantAccessGuard, authorization) -> None:
    with pytest.raises(Unauthorized):
        guard.authenticate(authorization)
    assert guard.state is AccessState.ACCESS_DENIED


def test_authenticate_rejects_expired_and_foreign_tokens(
    guard: TenantAccessGuard, security: SecurityProvider
) -> None:
    expired = security.create_access_token(MEMBER_ID, expires_in=timedelta(seconds=-5))
    other = SecurityProvider(AuthSettings(secret_key="someone-else"))

    with pytest.raises(Unauthorized):
        guard.authenticate(f"Bearer {expired}")
    with pytest.raises(Unauthorized):
        guard.authenticate(_bearer(other))
    assert guard.state is AccessState.ACCESS_DENIED


def test_authenticate_rejects_unknown_and_inactive_users(
    guard: TenantAccessGuard, security: SecurityProvider, session: Session
) -> None:
    with pytest.raises(Unauthorized):
        guard.authenticate(_bearer(security, "nobody"))

    session.get(User, MEMBER_ID).is_active = False
    session.flush()
    with pytest.raises(Unauthorized):
        guard.authenticate(_bearer(security))


def test_resolve_tenant_prefers_header_then_query(session: Session, security: SecurityProvider) -> None:
    guard = TenantAccessGuard(session, security)
    assert guard.state is AccessState.UNAUTHENTICATED
    assert guard.resolve_tenant(" farm-1 ", "farm-2") == "farm-1"
    assert guard.resolve_tenant(None, "farm-2") == "farm-2"
    assert guard.state is AccessState.TENANT_RESOLVED

    strict = TenantAccessGuard(session, security, TenantSettings(allow_query_param=False))
    with pytest.raises(BadRequest, match="X-Farm-ID"):
        strict.resolve_tenant(None, "farm-2")
    with pytest.raises(BadRequest):
        guard.resolve_tenant("", None)


def test_missing_tenant_never_defaults(guard: TenantAccessGuard, security: SecurityProvider) -> None:
    with pytest.raises(BadRequest):
        guard.check(authorization=_bearer(security), tenant_header=None)


def test_authorize_requires_membership(guard: TenantAccessGuard, security: SecurityProvider) -> None:
    with pytest.raises(Forbidden):
        guard.check(authorization=_bearer(security), tenant_header="farm-3")


def test_system_admin_is_refused_and_logged(
    guard: TenantAccessGuard, security: SecurityProvider, caplog: pytest.LogCaptureFixture
) -> None:
    principal = guard.authenticate(_bearer(security, ADMIN_ID))
    assert principal.is_system_admin
    assert guard.state is AccessState.AUTHENTICATED

    with caplog.at_level(logging.WARNING, logger="partyhub.security"):
        with pytest.raises(Forbidden):
            guard.authorize(principal, "farm-1")

    assert any("System administrator" in record.getMessage() for record in caplog.records)
    assert guard.state is AccessState.ACCESS_DENIED


def test_system_admin_without_membership_is_still_logged(
    guard: TenantAccessGuard, security: SecurityProvider, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.WARNING, logger="partyhub.security"):
        with pytest.raises(Forbidden, match="System administrators"):
            guard.check(authorization=_bearer(security, ADMIN_ID), tenant_header="farm-2")

    messages = [record.getMessage() for record in caplog.records if record.name == "partyhub.security"]
    assert any("tenant=farm-2" in message and ADMIN_ID in message for message in messages)
    assert guard.state is AccessState.ACCESS_DENIED


def test_system_admin_detected_through_party_role(
    guard: TenantAccessGuard, security: SecurityProvider, session: Session
) -> None:
    party = PartyService(session).create_party(
        "Maya Lopez",
        None,
        PartyType.PERSON,
        roles=[RoleInput(role_type=RoleType.USER), RoleInput(role_type=RoleType.SYSTEM_ADMIN)],
    )
    session.get(User, MEMBER_ID).party_id = party.id
    session.commit()

    assert guard.authenticate(_bearer(security)).is_system_admin


def test_exclude_and_ensure_visible(
    guard: TenantAccessGuard,
    security: SecurityProvider,
    session: Session,
    caplog: pytest.LogCaptureFixture,
) -> None:
    service = PartyService(session)
    employee = service.create_party(
        "Sam Field",
        None,
        PartyType.PERSON,
        roles=[
            RoleInput(role_type=RoleType.USER),
            RoleInput(role_type=RoleType.EMPLOYEE, tenant_id="farm-1"),
        ],
    )
    admin = service.create_party(
        "Root Operator",
        None,
        PartyType.PERSON,
        roles=[
            RoleInput(role_type=RoleType.SYSTEM_ADMIN),
            RoleInput(role_type=RoleType.EMPLOYEE, tenant_id="farm-1"),
        ],
    )
    outsider = service.create_party(
        "Far Away",
        None,
        PartyType.PERSON,
        roles=[RoleInput(role_type=RoleType.EMPLOYEE, tenant_id="farm-2")],
    )
    context = guard.check(authorization=_bearer(security), tenant_header="farm-1")

    listed = guard.exclude_system_admins(context, service.get_employees("farm-1"))
    assert [item.id for item in listed] == [employee.id]

    assert guard.ensure_visible(context, employee) is employee
    with caplog.at_level(logging.WARNING, logger="partyhub.security"):
        with pytest.raises(Forbidden):
            guard.ensure_visible(context, admin)
    assert any(admin.id in record.getMessage() for record in caplog.records)
    with pytest.raises(NotFound):
        guard.ensure_visible(context, outsider)

"""Tenant access boundary.

Every tenant-scoped request passes through :class:`TenantAccessGuard` before
any store access. The guard authenticates the bearer credential, resolves the
tenant id, checks the caller's active membership, and refuses system
administrators. It also filters system administrator parties out of anything
returned through a tenant path.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence, TypeVar

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from partyhub.core.config import TenantSettings
from partyhub.core.logger import get_logger, get_security_logger
from partyhub.core.security import AuthenticationError, SecurityProvider
from partyhub.errors import BadRequest, Forbidden, NotFound, Unauthorized
from partyhub.models import PartyRole, RoleType, User
from partyhub.repositories import LegacyRepository

LOGGER = get_logger(__name__)
SECURITY_LOGGER = get_security_logger()

SYSTEM_ADMIN_ROLES = frozenset({"SYSTEM_ADMIN", "PLATFORM_ADMIN", "SUPER_ADMIN"})

PartyLike = TypeVar("PartyLike")


class AccessState(str, Enum):
    UNAUTHENTICATED = "UNAUTHENTICATED"
    AUTHENTICATED = "AUTHENTICATED"
    TENANT_RESOLVED = "TENANT_RESOLVED"
    ACCESS_GRANTED = "ACCESS_GRANTED"
    ACCESS_DENIED = "ACCESS_DENIED"


@dataclass(frozen=True, slots=True)
class Principal:
    """The authenticated caller; system-admin status is decided once, here."""

    user_id: str
    email: str
    party_id: str | None = None
    is_system_admin: bool = False
    tenant_role: str | None = None
    permissions: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class TenantContext:
    tenant_id: str
    principal: Principal


def user_is_system_admin(user: User) -> bool:
    """Flag or system role on the user row."""

    if user.is_system_admin:
        return True
    return (user.system_role or "").upper() in SYSTEM_ADMIN_ROLES


def system_admin_party_ids(session: Session, party_ids: Iterable[str]) -> set[str]:
    """Subset of ``party_ids`` belonging to system administrators."""

    ids = [party_id for party_id in party_ids if party_id]
    if not ids:
        return set()
    flagged = set(
        session.execute(
            select(PartyRole.party_id).where(
                PartyRole.party_id.in_(ids),
                PartyRole.role_type == RoleType.SYSTEM_ADMIN,
            )
        ).scalars()
    )
    flagged.update(
        session.execute(
            select(User.party_id).where(
                User.party_id.in_(ids),
                or_(
                    User.is_system_admin.is_(True),
                    User.system_role.in_(sorted(SYSTEM_ADMIN_ROLES)),
                ),
            )
        ).scalars()
    )
    return flagged


def _party_id_of(item: object) -> str:
    party = getattr(item, "party", None)
    if party is not None and hasattr(party, "id"):
        return party.id
    return getattr(item, "id")


class TenantAccessGuard:
    """Per-request state machine resolving ``(tenant_id, principal)``."""

    def __init__(
        self,
        session: Session,
        security: SecurityProvider,
        settings: TenantSettings | None = None,
        *,
        legacy: LegacyRepository | None = None,
    ) -> None:
        self._session = session
        self._security = security
        self._settings = settings or TenantSettings()
        self._legacy = legacy or LegacyRepository(session)
        self.state = AccessState.UNAUTHENTICATED

    # -- state machine -----------------------------------------------------
    def authenticate(self, authorization: str | None) -> Principal:
        """Build the principal from an ``Authorization: Bearer`` header value."""

        try:
            token = self._bearer_token(authorization)
        except Unauthorized:
            self.state = AccessState.ACCESS_DENIED
            raise
        try:
            claims = self._security.decode_token(token)
        except AuthenticationError as exc:
            LOGGER.info("Rejected bearer credential: %s", exc)
            self.state = AccessState.ACCESS_DENIED
            raise Unauthorized("Invalid or expired credentials") from exc

        user = self._legacy.get_user(claims.subject)
        if user is None or not user.is_active:
            self.state = AccessState.ACCESS_DENIED
            raise Unauthorized("Unknown or inactive user")

        principal = Principal(
            user_id=user.id,
            email=user.email,
            party_id=user.party_id,
            is_system_admin=user_is_system_admin(user)
            or bool(user.party_id and system_admin_party_ids(self._session, [user.party_id])),
        )
        self.state = AccessState.AUTHENTICATED
        return principal

    def resolve_tenant(self, header_value: str | None, query_value: str | None = None) -> str:
        """Tenant id from the header, or the query parameter when allowed."""

        tenant_id = (header_value or "").strip()
        if not tenant_id and self._settings.allow_query_param:
            tenant_id = (query_value or "").strip()
        if not tenant_id:
            self.state = AccessState.ACCESS_DENIED
            raise BadRequest(f"Missing tenant id ({self._settings.header_name} header)")
        self.state = AccessState.TENANT_RESOLVED
        return tenant_id

    def authorize(self, principal: Principal, tenant_id: str) -> TenantContext:
        """Refuse system administrators, then check active membership."""

        if principal.is_system_admin:
            self.state = AccessState.ACCESS_DENIED
            SECURITY_LOGGER.warning(
                "System administrator attempted tenant-scoped access tenant=%s principal=%s",
                tenant_id,
                principal.user_id,
            )
            raise Forbidden("System administrators cannot use tenant-scoped endpoints")
        membership = self._legacy.get_active_membership(tenant_id, principal.user_id)
        if membership is None:
            self.state = AccessState.ACCESS_DENIED
            raise Forbidden("No active membership in this farm")

        self.state = AccessState.ACCESS_GRANTED
        resolved = Principal(
            user_id=principal.user_id,
            email=principal.email,
            party_id=principal.party_id,
            is_system_admin=False,
            tenant_role=membership.role,
            permissions=tuple(membership.permissions or ()),
        )
        return TenantContext(tenant_id=tenant_id, principal=resolved)

    def check(
        self,
        *,
        authorization: str | None,
        tenant_header: str | None,
        tenant_query: str | None = None,
    ) -> TenantContext:
        """Run the whole state machine for one request."""

        principal = self.authenticate(authorization)
        tenant_id = self.resolve_tenant(tenant_header, tenant_query)
        return self.authorize(principal, tenant_id)

    @staticmethod
    def _bearer_token(authorization: str | None) -> str:
        if not authorization:
            raise Unauthorized("Missing bearer credential")
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise Unauthorized("Missing bearer credential")
        return token.strip()

    # -- target filtering --------------------------------------------------
    def exclude_system_admins(
        self, context: TenantContext, parties: Sequence[PartyLike]
    ) -> list[PartyLike]:
        """Drop system administrator parties from a tenant-scoped listing."""

        admins = system_admin_party_ids(self._session, (_party_id_of(item) for item in parties))
        visible: list[PartyLike] = []
        for item in parties:
            party_id = _party_id_of(item)
            if party_id in admins:
                SECURITY_LOGGER.warning(
                    "Excluded system administrator from tenant listing tenant=%s principal=%s target=%s",
                    context.tenant_id,
                    context.principal.user_id,
                    party_id,
                )
                continue
            visible.append(item)
        return visible

    def ensure_visible(self, context: TenantContext, party: PartyLike) -> PartyLike:
        """Raise unless ``party`` may be seen from ``context``'s tenant."""

        party_id = _party_id_of(party)
        if system_admin_party_ids(self._session, [party_id]):
            SECURITY_LOGGER.warning(
                "Blocked tenant-scoped access to system administrator tenant=%s principal=%s target=%s",
                context.tenant_id,
                context.principal.user_id,
                party_id,
            )
            raise Forbidden("Access denied")
        in_tenant = self._session.execute(
            select(PartyRole.id)
            .where(PartyRole.party_id == party_id, PartyRole.tenant_id == context.tenant_id)
            .limit(1)
        ).first()
        if in_tenant is None:
            raise NotFound(f"Party {party_id} not found")
        return party


__all__ = [
    "AccessState",
    "Principal",
    "SYSTEM_ADMIN_ROLES",
    "TenantAccessGuard",
    "TenantContext",
    "system_admin_party_ids",
    "user_is_system_admin",
]

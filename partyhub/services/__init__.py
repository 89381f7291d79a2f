"""Service layer for the party model."""

from .backfill import BackfillMigrator, BackfillReport, StageResult, VerificationReport
from .customers_service import CustomersService
from .legacy_sync import LegacySyncAdapter
from .party_service import PartyService, PartyWithDetails, RemovedRole, pick_contact
from .tenant_guard import (
    AccessState,
    Principal,
    TenantAccessGuard,
    TenantContext,
    system_admin_party_ids,
    user_is_system_admin,
)

__all__ = [
    "AccessState",
    "BackfillMigrator",
    "BackfillReport",
    "CustomersService",
    "LegacySyncAdapter",
    "PartyService",
    "PartyWithDetails",
    "Principal",
    "RemovedRole",
    "StageResult",
    "TenantAccessGuard",
    "TenantContext",
    "VerificationReport",
    "pick_contact",
    "system_admin_party_ids",
    "user_is_system_admin",
]

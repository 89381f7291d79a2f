"""Role metadata shapes, one per role type.

Role rows keep their metadata in a single JSON column; these models give each
role type its own checked set of fields. Keys are stored in snake_case and
accepted in either snake_case or camelCase.
"""
from __future__ import annotations

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from partyhub.errors import ValidationError
from partyhub.models import RoleType


class RoleMetadata(BaseModel):
    """Common configuration for role metadata documents."""

    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )


class FarmMetadata(RoleMetadata):
    subscription_plan: str | None = None
    subscription_status: str | None = None
    settings: dict[str, Any] | None = None


class CustomerMetadata(RoleMetadata):
    tax_id: str | None = None
    payment_terms: str | None = None
    credit_limit: float | None = None
    order_frequency: str | None = None
    preferred_varieties: str | None = None
    business_type: str | None = None
    status: str | None = None


class SupplierMetadata(RoleMetadata):
    contact: str | None = None
    payment_terms: str | None = None
    notes: str | None = None


class UserMetadata(RoleMetadata):
    is_system_admin: bool | None = None
    system_role: str | None = None
    position: str | None = None
    department: str | None = None


class EmployeeMetadata(RoleMetadata):
    role: str | None = None
    permissions: list[str] | None = None


class SystemAdminMetadata(RoleMetadata):
    granted_by: str | None = None
    notes: str | None = None


METADATA_MODELS: dict[RoleType, type[RoleMetadata]] = {
    RoleType.FARM: FarmMetadata,
    RoleType.CUSTOMER_B2B: CustomerMetadata,
    RoleType.CUSTOMER_B2C: CustomerMetadata,
    RoleType.SUPPLIER: SupplierMetadata,
    RoleType.DISTRIBUTOR: SupplierMetadata,
    RoleType.USER: UserMetadata,
    RoleType.EMPLOYEE: EmployeeMetadata,
    RoleType.SYSTEM_ADMIN: SystemAdminMetadata,
}


def parse_role_metadata(role_type: RoleType, data: Mapping[str, Any] | None) -> RoleMetadata:
    """Validate ``data`` against the shape registered for ``role_type``."""

    model = METADATA_MODELS[RoleType(role_type)]
    try:
        return model.model_validate(dict(data or {}))
    except PydanticValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        raise ValidationError(f"Invalid {RoleType(role_type).value} metadata: {details}") from exc


def normalize_role_metadata(role_type: RoleType, data: Mapping[str, Any] | None) -> dict[str, Any]:
    """Return the validated metadata as a snake_case document without empty keys."""

    return parse_role_metadata(role_type, data).model_dump(exclude_none=True)


def merge_role_metadata(
    role_type: RoleType,
    current: Mapping[str, Any] | None,
    update: Mapping[str, Any] | None,
) -> dict[str, Any]:
    """Overlay ``update`` on ``current``; keys absent from ``update`` are kept."""

    merged = normalize_role_metadata(role_type, current)
    merged.update(normalize_role_metadata(role_type, update))
    return merged

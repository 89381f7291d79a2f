"""Pydantic schemas for request and response payloads."""

from .common import error_envelope, success_envelope
from .customers import CreateCustomerRequest, CustomerOut, UpdateCustomerRequest
from .metadata import (
    METADATA_MODELS,
    merge_role_metadata,
    normalize_role_metadata,
    parse_role_metadata,
)
from .party import (
    AddRoleRequest,
    CamelModel,
    ContactInput,
    ContactOut,
    ContactUpdate,
    CreatePartyRequest,
    CreateRelationshipRequest,
    PartyDetailOut,
    PartyOut,
    RelationshipOut,
    RoleInput,
    RoleOut,
    UpdatePartyRequest,
)

__all__ = [
    "error_envelope",
    "success_envelope",
    "CreateCustomerRequest",
    "CustomerOut",
    "UpdateCustomerRequest",
    "METADATA_MODELS",
    "merge_role_metadata",
    "normalize_role_metadata",
    "parse_role_metadata",
    "AddRoleRequest",
    "CamelModel",
    "ContactInput",
    "ContactOut",
    "ContactUpdate",
    "CreatePartyRequest",
    "CreateRelationshipRequest",
    "PartyDetailOut",
    "PartyOut",
    "RelationshipOut",
    "RoleInput",
    "RoleOut",
    "UpdatePartyRequest",
]

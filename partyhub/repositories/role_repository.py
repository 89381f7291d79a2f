"""Persistence for party roles."""
from __future__ import annotations

from typing import Iterable

from sqlalchemy import select

from partyhub.models import PartyRole, RoleType

from .base import BaseRepository


class RoleRepository(BaseRepository):
    """Stores tenant-contextualized roles."""

    def get(self, role_id: str) -> PartyRole | None:
        return self._get(PartyRole, role_id)

    def list_for_party(self, party_id: str, *, tenant_id: str | None = None) -> list[PartyRole]:
        statement = select(PartyRole).where(PartyRole.party_id == party_id)
        if tenant_id is not None:
            statement = statement.where(PartyRole.tenant_id == tenant_id)
        statement = statement.order_by(PartyRole.created_at)
        return list(self._session.execute(statement).scalars())

    def find(
        self,
        party_id: str,
        role_type: RoleType,
        tenant_id: str | None,
    ) -> PartyRole | None:
        statement = select(PartyRole).where(
            PartyRole.party_id == party_id,
            PartyRole.role_type == role_type,
        )
        if tenant_id is None:
            statement = statement.where(PartyRole.tenant_id.is_(None))
        else:
            statement = statement.where(PartyRole.tenant_id == tenant_id)
        return self._session.execute(statement).scalars().first()

    def party_ids_with_role(
        self,
        role_types: Iterable[RoleType],
        *,
        tenant_id: str | None,
    ) -> list[str]:
        """Distinct party ids holding any of ``role_types`` in ``tenant_id``.

        ``tenant_id=None`` matches global (tenant-less) roles only.
        """

        statement = select(PartyRole.party_id).where(PartyRole.role_type.in_(list(role_types)))
        if tenant_id is None:
            statement = statement.where(PartyRole.tenant_id.is_(None))
        else:
            statement = statement.where(PartyRole.tenant_id == tenant_id)
        return list(self._session.execute(statement.distinct()).scalars())

    def party_ids_in_tenant(self, tenant_id: str) -> list[str]:
        statement = select(PartyRole.party_id).where(PartyRole.tenant_id == tenant_id).distinct()
        return list(self._session.execute(statement).scalars())

    def list_for_parties(
        self,
        party_ids: Iterable[str],
        *,
        tenant_id: str | None = None,
        include_global: Iterable[RoleType] = (),
    ) -> dict[str, list[PartyRole]]:
        """Roles grouped by party; tenant-filtered, optionally plus some global roles."""

        ids = list(party_ids)
        grouped: dict[str, list[PartyRole]] = {party_id: [] for party_id in ids}
        if not ids:
            return grouped
        statement = select(PartyRole).where(PartyRole.party_id.in_(ids))
        if tenant_id is not None:
            globals_ = list(include_global)
            condition = PartyRole.tenant_id == tenant_id
            if globals_:
                condition = condition | (
                    PartyRole.tenant_id.is_(None) & PartyRole.role_type.in_(globals_)
                )
            statement = statement.where(condition)
        statement = statement.order_by(PartyRole.created_at)
        for role in self._session.execute(statement).scalars():
            grouped[role.party_id].append(role)
        return grouped

    def add(self, role: PartyRole) -> PartyRole:
        self._session.add(role)
        self._session.flush()
        return role

    def delete(self, role: PartyRole) -> None:
        self._session.delete(role)
        self._session.flush()

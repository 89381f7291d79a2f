"""Persistence for party contact channels."""
from __future__ import annotations

from typing import Iterable

from sqlalchemy import select, update

from partyhub.models import ContactType, PartyContact

from .base import BaseRepository


class ContactRepository(BaseRepository):
    """Stores typed contacts; primary exclusivity is the service's job."""

    def get(self, contact_id: str) -> PartyContact | None:
        return self._get(PartyContact, contact_id)

    def list_for_party(self, party_id: str) -> list[PartyContact]:
        statement = (
            select(PartyContact)
            .where(PartyContact.party_id == party_id)
            .order_by(PartyContact.type, PartyContact.is_primary.desc(), PartyContact.created_at)
        )
        return list(self._session.execute(statement).scalars())

    def list_for_parties(self, party_ids: Iterable[str]) -> dict[str, list[PartyContact]]:
        ids = list(party_ids)
        grouped: dict[str, list[PartyContact]] = {party_id: [] for party_id in ids}
        if not ids:
            return grouped
        statement = (
            select(PartyContact)
            .where(PartyContact.party_id.in_(ids))
            .order_by(PartyContact.type, PartyContact.is_primary.desc(), PartyContact.created_at)
        )
        for contact in self._session.execute(statement).scalars():
            grouped[contact.party_id].append(contact)
        return grouped

    def get_primary(self, party_id: str, contact_type: ContactType) -> PartyContact | None:
        statement = select(PartyContact).where(
            PartyContact.party_id == party_id,
            PartyContact.type == contact_type,
            PartyContact.is_primary.is_(True),
        )
        return self._session.execute(statement).scalars().first()

    def clear_primary(
        self,
        party_id: str,
        contact_type: ContactType,
        *,
        exclude_id: str | None = None,
    ) -> None:
        statement = (
            update(PartyContact)
            .where(
                PartyContact.party_id == party_id,
                PartyContact.type == contact_type,
                PartyContact.is_primary.is_(True),
            )
            .values(is_primary=False)
            .execution_options(synchronize_session="fetch")
        )
        if exclude_id is not None:
            statement = statement.where(PartyContact.id != exclude_id)
        self._session.execute(statement)

    def add(self, contact: PartyContact) -> PartyContact:
        self._session.add(contact)
        self._session.flush()
        return contact

    def delete(self, contact: PartyContact) -> None:
        self._session.delete(contact)
        self._session.flush()

    def delete_for_party(self, party_id: str) -> None:
        for contact in self.list_for_party(party_id):
            self._session.delete(contact)
        self._session.flush()

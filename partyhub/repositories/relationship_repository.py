"""Persistence for directed party relationships."""
from __future__ import annotations

from sqlalchemy import or_, select

from partyhub.models import PartyRelationship

from .base import BaseRepository


class RelationshipRepository(BaseRepository):
    def get(self, relationship_id: str) -> PartyRelationship | None:
        return self._get(PartyRelationship, relationship_id)

    def list_for_party(self, party_id: str) -> list[PartyRelationship]:
        """Outgoing and incoming links for ``party_id``."""

        statement = (
            select(PartyRelationship)
            .where(
                or_(
                    PartyRelationship.party_id == party_id,
                    PartyRelationship.related_party_id == party_id,
                )
            )
            .order_by(PartyRelationship.created_at)
        )
        return list(self._session.execute(statement).scalars())

    def add(self, link: PartyRelationship) -> PartyRelationship:
        self._session.add(link)
        self._session.flush()
        return link

    def delete(self, link: PartyRelationship) -> None:
        self._session.delete(link)
        self._session.flush()

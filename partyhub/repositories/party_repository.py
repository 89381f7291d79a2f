"""Persistence for the party root entity."""
from __future__ import annotations

from typing import Iterable

from sqlalchemy import select

from partyhub.models import Party

from .base import BaseRepository


class PartyRepository(BaseRepository):
    """Stores parties; deleting one cascades to its roles, contacts and links."""

    def get(self, party_id: str) -> Party | None:
        return self._get(Party, party_id)

    def get_many(self, party_ids: Iterable[str]) -> list[Party]:
        """Parties ordered by display name."""

        ids = list(party_ids)
        if not ids:
            return []
        statement = select(Party).where(Party.id.in_(ids)).order_by(Party.display_name, Party.id)
        return list(self._session.execute(statement).scalars())

    def add(self, party: Party) -> Party:
        self._session.add(party)
        self._session.flush()
        return party

    def delete(self, party: Party) -> None:
        # Reload collections so the cascade sees children removed earlier in
        # this transaction; roles, contacts and both relationship directions
        # go in the same flush.
        self._session.refresh(party)
        self._session.delete(party)
        self._session.flush()

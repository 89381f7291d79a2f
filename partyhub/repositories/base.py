"""Shared helpers for the party repositories."""
from __future__ import annotations

from decimal import Decimal
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from partyhub.models import Party

ModelT = TypeVar("ModelT")


class BaseRepository:
    """Base repository holding the session and a few convenience helpers."""

    def __init__(self, session: Session) -> None:
        self._session = session

    @property
    def session(self) -> Session:
        return self._session

    def _get(self, model: type[ModelT], identifier: Any) -> ModelT | None:
        if identifier is None:
            return None
        return self._session.get(model, identifier)

    def lock_party(self, party_id: str) -> Party | None:
        """Load ``party_id`` with ``SELECT ... FOR UPDATE``.

        Callers deciding primary-contact or role uniqueness take this lock so
        concurrent writers for the same party serialize.
        """

        statement = select(Party).where(Party.id == party_id).with_for_update()
        return self._session.execute(statement).scalars().first()

    @staticmethod
    def _to_decimal(value: Any) -> Decimal:
        if isinstance(value, Decimal):
            return value
        if value is None:
            return Decimal(0)
        return Decimal(str(value))

"""Access to the pre-existing denormalized tables mirrored by the party model."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Iterator, TypeVar

from sqlalchemy import func, select

from partyhub.models import Customer, Farm, FarmUser, Order, Supplier, User

from .base import BaseRepository

LegacyT = TypeVar("LegacyT", Farm, User, Customer, Supplier)


@dataclass(frozen=True)
class OrderAggregate:
    total_orders: int
    total_revenue: Decimal
    last_order_date: datetime | None


class LegacyRepository(BaseRepository):
    """Queries over farms, users, farm_users, customers, suppliers and orders."""

    # -- memberships -------------------------------------------------------
    def get_user(self, user_id: str) -> User | None:
        return self._get(User, user_id)

    def get_user_by_party(self, party_id: str) -> User | None:
        statement = select(User).where(User.party_id == party_id)
        return self._session.execute(statement).scalars().first()

    def get_active_membership(self, farm_id: str, user_id: str) -> FarmUser | None:
        statement = select(FarmUser).where(
            FarmUser.farm_id == farm_id,
            FarmUser.user_id == user_id,
            FarmUser.is_active.is_(True),
        )
        return self._session.execute(statement).scalars().first()

    def active_memberships_for_user(self, user_id: str) -> list[FarmUser]:
        statement = (
            select(FarmUser)
            .where(FarmUser.user_id == user_id, FarmUser.is_active.is_(True))
            .order_by(FarmUser.id)
        )
        return list(self._session.execute(statement).scalars())

    # -- mirrored rows -----------------------------------------------------
    def get_farm(self, farm_id: str) -> Farm | None:
        return self._get(Farm, farm_id)

    def get_by_party(self, model: type[LegacyT], party_id: str) -> list[LegacyT]:
        statement = select(model).where(model.party_id == party_id)
        return list(self._session.execute(statement).scalars())

    def get_customer_for(self, party_id: str, farm_id: str) -> Customer | None:
        statement = select(Customer).where(
            Customer.party_id == party_id, Customer.farm_id == farm_id
        )
        return self._session.execute(statement).scalars().first()

    def get_supplier_for(self, party_id: str, farm_id: str) -> Supplier | None:
        statement = select(Supplier).where(
            Supplier.party_id == party_id, Supplier.farm_id == farm_id
        )
        return self._session.execute(statement).scalars().first()

    def resolve_party_id(self, model: type[LegacyT], legacy_id: str) -> str | None:
        statement = select(model.party_id).where(model.id == legacy_id)
        return self._session.execute(statement).scalar_one_or_none()

    def add(self, row: object) -> None:
        self._session.add(row)
        self._session.flush()

    def delete(self, row: object) -> None:
        self._session.delete(row)
        self._session.flush()

    # -- backfill ----------------------------------------------------------
    def pending_ids(self, model: type[LegacyT]) -> list[str]:
        """Ids of rows without a party back-reference, in a stable order."""

        statement = select(model.id).where(model.party_id.is_(None)).order_by(model.id)
        return list(self._session.execute(statement).scalars())

    def count(self, model: type) -> int:
        return int(self._session.execute(select(func.count()).select_from(model)).scalar() or 0)

    def count_linked(self, model: type[LegacyT]) -> int:
        statement = select(func.count()).select_from(model).where(model.party_id.is_not(None))
        return int(self._session.execute(statement).scalar() or 0)

    def unlinked_orders(self) -> Iterator[Order]:
        statement = (
            select(Order)
            .where(Order.customer_party_id.is_(None))
            .order_by(Order.order_date, Order.id)
        )
        yield from self._session.execute(statement).scalars()

    def count_linked_orders(self) -> int:
        statement = select(func.count()).select_from(Order).where(
            Order.customer_party_id.is_not(None)
        )
        return int(self._session.execute(statement).scalar() or 0)

    # -- orders ------------------------------------------------------------
    def _order_filter(self, party_id: str, farm_id: str):
        legacy_ids = select(Customer.id).where(
            Customer.party_id == party_id, Customer.farm_id == farm_id
        )
        return (Order.farm_id == farm_id) & (
            (Order.customer_party_id == party_id) | Order.customer_id.in_(legacy_ids)
        )

    def count_orders(self, party_id: str, farm_id: str) -> int:
        statement = select(func.count(Order.id)).where(self._order_filter(party_id, farm_id))
        return int(self._session.execute(statement).scalar() or 0)

    def order_aggregate(self, party_id: str, farm_id: str) -> OrderAggregate:
        statement = select(
            func.count(Order.id),
            func.coalesce(func.sum(Order.total), 0),
            func.max(Order.order_date),
        ).where(self._order_filter(party_id, farm_id))
        count, revenue, last = self._session.execute(statement).one()
        return OrderAggregate(
            total_orders=int(count or 0),
            total_revenue=self._to_decimal(revenue),
            last_order_date=last,
        )

    def order_aggregates(
        self, party_ids: Iterable[str], farm_id: str
    ) -> dict[str, OrderAggregate]:
        return {party_id: self.order_aggregate(party_id, farm_id) for party_id in party_ids}

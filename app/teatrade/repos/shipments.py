from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import exists, func, or_, select
from sqlalchemy.orm import joinedload, selectinload

from app.teatrade.db.models import Shipment, ShipmentItem, Stock, User


@dataclass(frozen=True)
class ShipmentQueryFilters:
    user_cognito_id: str | None = None
    stocks_id: int | None = None
    status: str | None = None
    search: str | None = None


class ShipmentRepository:
    def __init__(self, db):
        self.db = db

    def _hydrated(self):
        return select(Shipment).options(
            selectinload(Shipment.items).joinedload(ShipmentItem.stock),
            joinedload(Shipment.user),
        )

    def get(self, shipment_id: int) -> Shipment | None:
        stmt = self._hydrated().where(Shipment.id == shipment_id)
        return self.db.execute(stmt).unique().scalars().first()

    def get_for_update(self, shipment_id: int) -> Shipment | None:
        stmt = select(Shipment).where(Shipment.id == shipment_id).with_for_update()
        return self.db.execute(stmt).scalars().first()

    def refresh_hydrated(self, shipment: Shipment) -> Shipment:
        self.db.flush()
        stmt = self._hydrated().where(Shipment.id == shipment.id).execution_options(populate_existing=True)
        return self.db.execute(stmt).unique().scalars().one()

    def add(self, shipment: Shipment) -> Shipment:
        self.db.add(shipment)
        self.db.flush()
        return shipment

    def delete(self, shipment: Shipment) -> None:
        self.db.delete(shipment)
        self.db.flush()

    def list_shipments(
        self,
        filters: ShipmentQueryFilters,
        *,
        page: int,
        limit: int,
    ) -> tuple[list[Shipment], int]:
        base = self._apply_filters(select(Shipment.id), filters)
        total = self.db.execute(select(func.count()).select_from(base.subquery())).scalar_one()
        stmt = (
            self._apply_filters(self._hydrated(), filters)
            .order_by(Shipment.shipment_date.desc(), Shipment.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(self.db.execute(stmt).unique().scalars().all()), total

    def _apply_filters(self, query, filters: ShipmentQueryFilters):
        if filters.user_cognito_id:
            query = query.where(Shipment.user_cognito_id == filters.user_cognito_id)
        if filters.status:
            query = query.where(Shipment.status == filters.status)
        if filters.stocks_id is not None:
            query = query.where(
                exists().where(ShipmentItem.shipment_id == Shipment.id, ShipmentItem.stocks_id == filters.stocks_id)
            )
        if filters.search:
            term = filters.search.strip()
            like = f"%{term}%"
            item_match = (
                select(ShipmentItem.id)
                .join(Stock, Stock.id == ShipmentItem.stocks_id)
                .where(ShipmentItem.shipment_id == Shipment.id)
                .where(
                    or_(
                        Stock.lot_no.ilike(like),
                        Stock.mark.ilike(like),
                        Stock.sale_code.ilike(like),
                        Stock.grade == term.upper(),
                        Stock.broker == term.upper(),
                    )
                )
                .exists()
            )
            user_match = (
                select(User.id)
                .where(User.user_cognito_id == Shipment.user_cognito_id)
                .where(or_(User.name.ilike(like), User.email.ilike(like)))
                .exists()
            )
            query = query.where(
                or_(
                    Shipment.shipmark.ilike(like),
                    Shipment.consignee.ilike(like),
                    user_match,
                    item_match,
                )
            )
        return query

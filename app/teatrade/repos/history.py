from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from app.teatrade.db.models import ShipmentHistory, StockHistory


@dataclass(frozen=True)
class StockHistoryFilters:
    stocks_id: int | None = None
    shipment_id: int | None = None
    admin_cognito_id: str | None = None
    user_cognito_id: str | None = None
    action: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    # restricts results to entries where this id is either the user or the admin
    involving: str | None = None


@dataclass(frozen=True)
class ShipmentHistoryFilters:
    shipment_id: int | None = None
    admin_cognito_id: str | None = None
    user_cognito_id: str | None = None
    action: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None


class HistoryRepository:
    def __init__(self, db):
        self.db = db

    def add_stock_entry(self, entry: StockHistory) -> StockHistory:
        self.db.add(entry)
        self.db.flush()
        return entry

    def add_shipment_entry(self, entry: ShipmentHistory) -> ShipmentHistory:
        self.db.add(entry)
        self.db.flush()
        return entry

    def list_stock_history(
        self,
        filters: StockHistoryFilters,
        *,
        page: int,
        limit: int,
        include_stock: bool = False,
        include_shipment: bool = False,
        include_admin: bool = False,
    ) -> tuple[list[StockHistory], int]:
        query = select(StockHistory)
        if filters.stocks_id is not None:
            query = query.where(StockHistory.stocks_id == filters.stocks_id)
        if filters.shipment_id is not None:
            query = query.where(StockHistory.shipment_id == filters.shipment_id)
        if filters.admin_cognito_id:
            query = query.where(StockHistory.admin_cognito_id == filters.admin_cognito_id)
        if filters.user_cognito_id:
            query = query.where(StockHistory.user_cognito_id == filters.user_cognito_id)
        if filters.involving:
            query = query.where(
                (StockHistory.user_cognito_id == filters.involving)
                | (StockHistory.admin_cognito_id == filters.involving)
            )
        if filters.action:
            query = query.where(StockHistory.action == filters.action)
        if filters.date_from:
            query = query.where(StockHistory.timestamp >= filters.date_from)
        if filters.date_to:
            query = query.where(StockHistory.timestamp <= filters.date_to)

        total = self.db.execute(select(func.count()).select_from(query.subquery())).scalar_one()
        options = []
        if include_stock:
            options.append(selectinload(StockHistory.stock))
        if include_shipment:
            options.append(selectinload(StockHistory.shipment))
        if include_admin:
            options.append(selectinload(StockHistory.admin))
        query = (
            query.options(*options)
            .order_by(StockHistory.timestamp.desc(), StockHistory.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(self.db.execute(query).scalars().all()), total

    def list_shipment_history(
        self,
        filters: ShipmentHistoryFilters,
        *,
        page: int,
        limit: int,
        include_shipment: bool = False,
        include_admin: bool = False,
    ) -> tuple[list[ShipmentHistory], int]:
        query = select(ShipmentHistory)
        if filters.shipment_id is not None:
            query = query.where(ShipmentHistory.shipment_id == filters.shipment_id)
        if filters.admin_cognito_id:
            query = query.where(ShipmentHistory.admin_cognito_id == filters.admin_cognito_id)
        if filters.user_cognito_id:
            query = query.where(ShipmentHistory.user_cognito_id == filters.user_cognito_id)
        if filters.action:
            query = query.where(ShipmentHistory.action == filters.action)
        if filters.date_from:
            query = query.where(ShipmentHistory.timestamp >= filters.date_from)
        if filters.date_to:
            query = query.where(ShipmentHistory.timestamp <= filters.date_to)

        total = self.db.execute(select(func.count()).select_from(query.subquery())).scalar_one()
        options = []
        if include_shipment:
            options.append(selectinload(ShipmentHistory.shipment))
        if include_admin:
            options.append(selectinload(ShipmentHistory.admin))
        query = (
            query.options(*options)
            .order_by(ShipmentHistory.timestamp.desc(), ShipmentHistory.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(self.db.execute(query).scalars().all()), total

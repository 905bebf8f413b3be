from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import delete, exists, func, or_, select
from sqlalchemy.orm import selectinload

from app.teatrade.db.models import Favorite, ShipmentItem, Stock, StockAssignment


@dataclass(frozen=True)
class StockQueryFilters:
    lot_no: str | None = None
    batch_number: str | None = None
    min_weight: Decimal | None = None
    grade: str | None = None
    broker: str | None = None
    search: str | None = None
    assignment_status: str = "all"
    assigned_to: str | None = None
    favorites_of: str | None = None


class StockRepository:
    def __init__(self, db):
        self.db = db

    def get(self, stock_id: int) -> Stock | None:
        return self.db.get(Stock, stock_id)

    def get_for_update(self, stock_id: int) -> Stock | None:
        stmt = select(Stock).where(Stock.id == stock_id).with_for_update()
        return self.db.execute(stmt).scalars().first()

    def get_many_for_update(self, stock_ids: list[int]) -> dict[int, Stock]:
        if not stock_ids:
            return {}
        # Lock in id order so concurrent multi-lot writers cannot deadlock.
        stmt = select(Stock).where(Stock.id.in_(stock_ids)).order_by(Stock.id).with_for_update()
        return {stock.id: stock for stock in self.db.execute(stmt).scalars().all()}

    def get_by_lot_no(self, lot_no: str) -> Stock | None:
        stmt = select(Stock).where(Stock.lot_no == lot_no)
        return self.db.execute(stmt).scalars().first()

    def get_by_lot_nos(self, lot_nos: list[str]) -> dict[str, Stock]:
        if not lot_nos:
            return {}
        stmt = select(Stock).where(Stock.lot_no.in_(lot_nos))
        return {stock.lot_no: stock for stock in self.db.execute(stmt).scalars().all()}

    def create(self, stock: Stock) -> Stock:
        self.db.add(stock)
        self.db.flush()
        return stock

    def list_stocks(
        self,
        filters: StockQueryFilters,
        *,
        page: int,
        limit: int,
    ) -> tuple[list[Stock], int]:
        base_query = self._apply_filters(filters)
        total = self.db.execute(select(func.count()).select_from(base_query.subquery())).scalar_one()
        query = (
            base_query.options(selectinload(Stock.assignments))
            .order_by(Stock.created_at.desc(), Stock.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(self.db.execute(query).scalars().all()), total

    def list_all(self, filters: StockQueryFilters, *, max_rows: int) -> list[Stock]:
        query = (
            self._apply_filters(filters)
            .options(selectinload(Stock.assignments))
            .order_by(Stock.lot_no.asc())
            .limit(max_rows)
        )
        return list(self.db.execute(query).scalars().all())

    def _apply_filters(self, filters: StockQueryFilters):
        query = select(Stock)
        has_assignment = exists().where(StockAssignment.stocks_id == Stock.id)
        if filters.lot_no:
            query = query.where(Stock.lot_no == filters.lot_no)
        if filters.batch_number:
            query = query.where(Stock.batch_number == filters.batch_number)
        if filters.min_weight is not None:
            query = query.where(Stock.weight >= filters.min_weight)
        if filters.grade:
            query = query.where(Stock.grade == filters.grade)
        if filters.broker:
            query = query.where(Stock.broker == filters.broker)
        if filters.search:
            like = f"%{filters.search.strip()}%"
            query = query.where(
                or_(
                    Stock.lot_no.ilike(like),
                    Stock.mark.ilike(like),
                    Stock.sale_code.ilike(like),
                    Stock.invoice_no.ilike(like),
                )
            )
        if filters.assignment_status == "assigned":
            query = query.where(has_assignment)
        elif filters.assignment_status == "unassigned":
            query = query.where(~has_assignment)
        if filters.assigned_to:
            query = query.where(
                exists().where(
                    StockAssignment.stocks_id == Stock.id,
                    StockAssignment.user_cognito_id == filters.assigned_to,
                )
            )
        if filters.favorites_of:
            query = query.where(
                exists().where(Favorite.stocks_id == Stock.id, Favorite.user_cognito_id == filters.favorites_of)
            )
        return query

    def referenced_by_shipments(self, stock_ids: list[int]) -> list[int]:
        stmt = select(ShipmentItem.stocks_id).where(ShipmentItem.stocks_id.in_(stock_ids)).distinct()
        return sorted(self.db.execute(stmt).scalars().all())

    def delete_many(self, stock_ids: list[int]) -> None:
        self.db.execute(delete(Favorite).where(Favorite.stocks_id.in_(stock_ids)))
        self.db.execute(delete(StockAssignment).where(StockAssignment.stocks_id.in_(stock_ids)))
        self.db.execute(delete(Stock).where(Stock.id.in_(stock_ids)))

    def favorite_ids(self, user_cognito_id: str, stock_ids: list[int]) -> set[int]:
        if not stock_ids:
            return set()
        stmt = select(Favorite.stocks_id).where(
            Favorite.user_cognito_id == user_cognito_id, Favorite.stocks_id.in_(stock_ids)
        )
        return set(self.db.execute(stmt).scalars().all())

    def get_favorite(self, user_cognito_id: str, stock_id: int) -> Favorite | None:
        stmt = select(Favorite).where(Favorite.user_cognito_id == user_cognito_id, Favorite.stocks_id == stock_id)
        return self.db.execute(stmt).scalars().first()

    def add_favorite(self, user_cognito_id: str, stock_id: int) -> Favorite:
        favorite = Favorite(user_cognito_id=user_cognito_id, stocks_id=stock_id)
        self.db.add(favorite)
        self.db.flush()
        return favorite

    def remove_favorite(self, favorite: Favorite) -> None:
        self.db.delete(favorite)
        self.db.flush()

from __future__ import annotations

from sqlalchemy import func, or_, select
from sqlalchemy.orm import joinedload

from app.teatrade.db.models import Stock, StockAssignment

_SORT_COLUMNS = {
    "assignedAt": StockAssignment.assigned_at,
    "assignedWeight": StockAssignment.assigned_weight,
    "lotNo": Stock.lot_no,
    "saleCode": Stock.sale_code,
    "weight": Stock.weight,
}


class AssignmentRepository:
    def __init__(self, db):
        self.db = db

    def for_stocks(self, stock_ids: list[int]) -> list[StockAssignment]:
        if not stock_ids:
            return []
        stmt = (
            select(StockAssignment)
            .where(StockAssignment.stocks_id.in_(stock_ids))
            .order_by(StockAssignment.stocks_id, StockAssignment.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_pair(self, stock_id: int, user_cognito_id: str) -> StockAssignment | None:
        stmt = select(StockAssignment).where(
            StockAssignment.stocks_id == stock_id,
            StockAssignment.user_cognito_id == user_cognito_id,
        )
        return self.db.execute(stmt).scalars().first()

    def create(self, assignment: StockAssignment) -> StockAssignment:
        self.db.add(assignment)
        self.db.flush()
        return assignment

    def delete(self, assignment: StockAssignment) -> None:
        self.db.delete(assignment)
        self.db.flush()

    def list_for_user(
        self,
        user_cognito_id: str,
        *,
        search: str | None,
        sort_by: str,
        sort_order: str,
        page: int,
        limit: int,
    ) -> tuple[list[StockAssignment], int]:
        stmt = (
            select(StockAssignment)
            .join(Stock, Stock.id == StockAssignment.stocks_id)
            .where(StockAssignment.user_cognito_id == user_cognito_id)
        )
        if search:
            like = f"%{search.strip()}%"
            stmt = stmt.where(or_(Stock.lot_no.ilike(like), Stock.sale_code.ilike(like), Stock.mark.ilike(like)))
        total = self.db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
        sort_column = _SORT_COLUMNS.get(sort_by, StockAssignment.assigned_at)
        sort_column = sort_column.asc() if sort_order == "asc" else sort_column.desc()
        stmt = (
            stmt.options(joinedload(StockAssignment.stock))
            .order_by(sort_column, StockAssignment.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all()), total

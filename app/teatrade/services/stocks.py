"""Stock lot catalog: create, update, delete, listing and favorites.

Weight changes on an existing lot always go through ``adjust_stock`` so the
ledger journal sees them.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from app.teatrade.core import policy
from app.teatrade.core.context import RequestContext
from app.teatrade.core.error_catalog import AppError, ErrorCatalog
from app.teatrade.core.logging import log_json
from app.teatrade.db.models import Stock
from app.teatrade.db.transactions import run_in_transaction
from app.teatrade.repos.assignments import AssignmentRepository
from app.teatrade.repos.stocks import StockQueryFilters, StockRepository
from app.teatrade.schemas.common import build_page_meta
from app.teatrade.schemas.enums import StockAction
from app.teatrade.schemas.history import StockCreatedDetails, StockDeletedDetails, StockUpdatedDetails
from app.teatrade.schemas.stocks import (
    AssignmentRow,
    StockCreateRequest,
    StockListResponse,
    StockRow,
    StockSummary,
    StockUpdateRequest,
    UserAssignmentListResponse,
    UserAssignmentRow,
)
from app.teatrade.services.assignments import AssignmentService
from app.teatrade.services.history import HistoryService, StockHistoryEvent, stock_snapshot
from app.teatrade.services.ledger import AdjustmentResult, adjust_stock

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")

_UPDATABLE_FIELDS = (
    "sale_code",
    "broker",
    "mark",
    "grade",
    "invoice_no",
    "purchase_value",
    "aging_days",
    "penalty",
    "bgt_commission",
    "maersk_fee",
    "commission",
    "batch_number",
    "low_stock_threshold",
)
_NULLABLE_FIELDS = frozenset({"invoice_no", "batch_number", "low_stock_threshold"})


def _plain(value):
    return value.value if isinstance(value, Enum) else value


def _money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _json_value(value):
    value = _plain(value)
    if isinstance(value, Decimal):
        return format(_money(value), "f")
    return value


def build_stock_row(stock: Stock, *, favorite_ids: set[int] | None = None) -> StockRow:
    row = StockRow.model_validate(stock)
    row.is_favorite = stock.id in (favorite_ids or set())
    return row


class StockService:
    def __init__(self, db, actor: RequestContext):
        self.db = db
        self.actor = actor
        self.stocks = StockRepository(db)
        self.history = HistoryService(db)

    def _hydrated(self, stock_id: int) -> Stock:
        stmt = (
            select(Stock)
            .options(selectinload(Stock.assignments))
            .where(Stock.id == stock_id)
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalars().one()

    def create(self, payload: StockCreateRequest) -> Stock:
        policy.require(self.actor, policy.STOCK_WRITE)

        def work(db) -> Stock:
            if self.stocks.get_by_lot_no(payload.lot_no) is not None:
                raise AppError(ErrorCatalog.CONFLICT, details={"lotNo": payload.lot_no})
            now = datetime.utcnow()
            total_value = _money(payload.purchase_value * payload.weight)
            stock = self.stocks.create(
                Stock(
                    sale_code=payload.sale_code,
                    broker=payload.broker.value,
                    lot_no=payload.lot_no,
                    mark=payload.mark,
                    grade=payload.grade.value,
                    invoice_no=payload.invoice_no,
                    bags=payload.bags,
                    weight=payload.weight,
                    purchase_value=payload.purchase_value,
                    total_purchase_value=total_value,
                    aging_days=0,
                    penalty=Decimal("0"),
                    bgt_commission=Decimal("0"),
                    maersk_fee=Decimal("0"),
                    commission=Decimal("0"),
                    net_price=payload.purchase_value,
                    total=total_value,
                    batch_number=payload.batch_number,
                    low_stock_threshold=payload.low_stock_threshold,
                    admin_cognito_id=self.actor.user_id,
                    created_at=now,
                    updated_at=now,
                )
            )
            self.history.record_stock_event(
                StockHistoryEvent(
                    stocks_id=stock.id,
                    action=StockAction.CREATED,
                    admin_cognito_id=self.actor.user_id,
                    details=StockCreatedDetails(stock=stock_snapshot(stock)),
                )
            )
            for assignment in payload.assignments:
                AssignmentService(db, self.actor).attach_assignment(
                    stock, assignment.user_cognito_id, assignment.assigned_weight
                )
            return self._hydrated(stock.id)

        stock = run_in_transaction(self.db, work, operation="stock.create")
        log_json(
            logger,
            {
                "event": "stock_created",
                "trace_id": self.actor.trace_id,
                "stocks_id": stock.id,
                "lot_no": stock.lot_no,
                "weight": stock.weight,
            },
        )
        return stock

    def update(self, stock_id: int, payload: StockUpdateRequest) -> Stock:
        policy.require(self.actor, policy.STOCK_WRITE)

        def work(db) -> Stock:
            stock = self.stocks.get_for_update(stock_id)
            if stock is None:
                raise AppError(ErrorCatalog.STOCK_NOT_FOUND, details={"stocksId": stock_id})

            changes: dict = {}
            if payload.weight is not None and payload.weight != stock.weight:
                adjust_stock(
                    db,
                    stock.id,
                    payload.weight - stock.weight,
                    payload.reason or "Stock weight updated",
                    self.actor,
                )
                changes["weight"] = _json_value(stock.weight)
                changes["bags"] = stock.bags

            for field in _UPDATABLE_FIELDS:
                if field not in payload.model_fields_set:
                    continue
                value = getattr(payload, field)
                if value is None and field not in _NULLABLE_FIELDS:
                    continue
                value = _plain(value)
                if getattr(stock, field) == value:
                    continue
                setattr(stock, field, value)
                changes[field] = _json_value(value)

            if "purchase_value" in changes:
                stock.net_price = stock.purchase_value
            if "purchase_value" in changes or "weight" in changes:
                stock.total_purchase_value = _money(stock.purchase_value * stock.weight)
                stock.total = stock.total_purchase_value
                changes["total_purchase_value"] = _json_value(stock.total_purchase_value)

            if payload.assignments:
                assignment = payload.assignments[0]
                AssignmentService(db, self.actor).attach_assignment(
                    stock, assignment.user_cognito_id, assignment.assigned_weight
                )
                changes["assigned_to"] = assignment.user_cognito_id

            stock.updated_at = datetime.utcnow()
            db.flush()
            self.history.record_stock_event(
                StockHistoryEvent(
                    stocks_id=stock.id,
                    action=StockAction.UPDATED,
                    admin_cognito_id=self.actor.user_id,
                    details=StockUpdatedDetails(changes=changes, reason=payload.reason),
                )
            )
            return self._hydrated(stock.id)

        stock = run_in_transaction(self.db, work, operation="stock.update")
        log_json(
            logger,
            {
                "event": "stock_updated",
                "trace_id": self.actor.trace_id,
                "stocks_id": stock.id,
                "lot_no": stock.lot_no,
            },
        )
        return stock

    def delete_stocks(self, stock_ids: list[int]) -> list[int]:
        policy.require(self.actor, policy.STOCK_WRITE)
        ids = list(dict.fromkeys(stock_ids))

        def work(db) -> list[int]:
            stocks = self.stocks.get_many_for_update(ids)
            missing = [stock_id for stock_id in ids if stock_id not in stocks]
            if missing:
                raise AppError(ErrorCatalog.STOCK_NOT_FOUND, details={"missingStockIds": missing})
            in_use = self.stocks.referenced_by_shipments(ids)
            if in_use:
                raise AppError(ErrorCatalog.STOCK_IN_USE, details={"stockIds": in_use})
            for stock_id in ids:
                stock = stocks[stock_id]
                self.history.record_stock_event(
                    StockHistoryEvent(
                        stocks_id=stock.id,
                        action=StockAction.DELETED,
                        admin_cognito_id=self.actor.user_id,
                        details=StockDeletedDetails(lot_no=stock.lot_no, weight=stock.weight, bags=stock.bags),
                    )
                )
            self.stocks.delete_many(ids)
            return ids

        deleted = run_in_transaction(self.db, work, operation="stock.delete")
        log_json(logger, {"event": "stock_deleted", "trace_id": self.actor.trace_id, "stock_ids": deleted})
        return deleted

    def adjust(self, stock_id: int, weight_delta: Decimal, reason: str, shipment_id: int | None = None) -> AdjustmentResult:
        policy.require(self.actor, policy.STOCK_ADJUST)
        return run_in_transaction(
            self.db,
            lambda db: adjust_stock(db, stock_id, weight_delta, reason, self.actor, shipment_id=shipment_id),
            operation="stock.adjust",
        )

    def list_stocks(
        self,
        filters: StockQueryFilters,
        *,
        only_favorites: bool,
        page: int,
        limit: int,
    ) -> StockListResponse:
        policy.require(self.actor, policy.STOCK_READ)
        if not self.actor.is_elevated:
            filters = replace(filters, assigned_to=self.actor.user_id)
        if only_favorites:
            filters = replace(filters, favorites_of=self.actor.user_id)
        rows, total = self.stocks.list_stocks(filters, page=page, limit=limit)
        favorite_ids = self.stocks.favorite_ids(self.actor.user_id, [stock.id for stock in rows])
        return StockListResponse(
            meta=build_page_meta(page=page, limit=limit, total=total),
            rows=[build_stock_row(stock, favorite_ids=favorite_ids) for stock in rows],
        )

    def toggle_favorite(self, stock_id: int) -> bool:
        policy.require(self.actor, policy.STOCK_FAVORITE, self.actor.user_id)

        def work(db) -> bool:
            if self.stocks.get(stock_id) is None:
                raise AppError(ErrorCatalog.STOCK_NOT_FOUND, details={"stocksId": stock_id})
            favorite = self.stocks.get_favorite(self.actor.user_id, stock_id)
            if favorite is not None:
                self.stocks.remove_favorite(favorite)
                return False
            self.stocks.add_favorite(self.actor.user_id, stock_id)
            return True

        return run_in_transaction(self.db, work, operation="stock.favorite")

    def list_user_assignments(
        self,
        user_cognito_id: str,
        *,
        search: str | None,
        sort_by: str,
        sort_order: str,
        page: int,
        limit: int,
    ) -> UserAssignmentListResponse:
        policy.require(self.actor, policy.ASSIGNMENT_READ, user_cognito_id)
        rows, total = AssignmentRepository(self.db).list_for_user(
            user_cognito_id,
            search=search,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            limit=limit,
        )
        return UserAssignmentListResponse(
            meta=build_page_meta(page=page, limit=limit, total=total),
            rows=[
                UserAssignmentRow(
                    assignment=AssignmentRow.model_validate(row),
                    stock=StockSummary.model_validate(row.stock),
                )
                for row in rows
            ],
        )

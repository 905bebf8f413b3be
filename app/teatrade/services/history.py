"""Append-only stock and shipment journals.

Writes share the caller's transaction and never swallow errors: if an entry
cannot be written, the mutation it describes rolls back with it.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable

from app.teatrade.core import policy
from app.teatrade.core.context import RequestContext
from app.teatrade.core.error_catalog import AppError, ErrorCatalog
from app.teatrade.db.models import ShipmentHistory, ShipmentItem, Stock, StockHistory
from app.teatrade.repos.history import (
    HistoryRepository,
    ShipmentHistoryFilters,
    StockHistoryFilters,
)
from app.teatrade.schemas.common import build_page_meta
from app.teatrade.schemas.history import (
    HistoryAdminSummary,
    HistoryDetails,
    HistoryShipmentSummary,
    HistoryStockSummary,
    ShipmentHistoryResponse,
    ShipmentHistoryRow,
    ShipmentItemDetail,
    StockHistoryResponse,
    StockHistoryRow,
    StockIdentity,
    StockSnapshot,
    dump_history_details,
    parse_history_details,
)


def stock_identity(stock: Stock) -> StockIdentity:
    return StockIdentity(
        lot_no=stock.lot_no,
        mark=stock.mark,
        grade=stock.grade,
        broker=stock.broker,
        sale_code=stock.sale_code,
        purchase_value=stock.purchase_value,
    )


def stock_snapshot(stock: Stock) -> StockSnapshot:
    return StockSnapshot(
        lot_no=stock.lot_no,
        mark=stock.mark,
        grade=stock.grade,
        broker=stock.broker,
        sale_code=stock.sale_code,
        purchase_value=stock.purchase_value,
        invoice_no=stock.invoice_no,
        bags=stock.bags,
        weight=stock.weight,
        total_purchase_value=stock.total_purchase_value,
        batch_number=stock.batch_number,
    )


def shipment_item_details(items: Iterable[ShipmentItem]) -> list[ShipmentItemDetail]:
    return [
        ShipmentItemDetail(
            stocks_id=item.stocks_id,
            total_weight=item.assigned_weight,
            lot_no=item.stock.lot_no if item.stock is not None else None,
        )
        for item in items
    ]


def actor_attribution(actor: RequestContext) -> tuple[str | None, str | None]:
    """Return ``(user_cognito_id, admin_cognito_id)`` for an acting caller."""
    if actor.is_elevated:
        return None, actor.user_id
    return actor.user_id, None


@dataclass
class StockHistoryEvent:
    stocks_id: int
    action: str
    details: HistoryDetails
    user_cognito_id: str | None = None
    admin_cognito_id: str | None = None
    shipment_id: int | None = None


@dataclass
class ShipmentHistoryEvent:
    shipment_id: int
    action: str
    details: HistoryDetails
    user_cognito_id: str | None = None
    admin_cognito_id: str | None = None


class HistoryService:
    def __init__(self, db):
        self.repo = HistoryRepository(db)

    def record_stock_event(self, event: StockHistoryEvent) -> StockHistory:
        entry = StockHistory(
            stocks_id=event.stocks_id,
            action=event.action,
            user_cognito_id=event.user_cognito_id,
            admin_cognito_id=event.admin_cognito_id,
            shipment_id=event.shipment_id,
            timestamp=datetime.utcnow(),
            details=dump_history_details(event.details),
        )
        return self.repo.add_stock_entry(entry)

    def record_shipment_event(self, event: ShipmentHistoryEvent) -> ShipmentHistory:
        entry = ShipmentHistory(
            shipment_id=event.shipment_id,
            action=event.action,
            user_cognito_id=event.user_cognito_id,
            admin_cognito_id=event.admin_cognito_id,
            timestamp=datetime.utcnow(),
            details=dump_history_details(event.details),
        )
        return self.repo.add_shipment_entry(entry)


def _stock_summary(stock) -> HistoryStockSummary | None:
    if stock is None:
        return None
    return HistoryStockSummary.model_validate(stock)


def _shipment_summary(shipment) -> HistoryShipmentSummary | None:
    if shipment is None:
        return None
    return HistoryShipmentSummary.model_validate(shipment)


def _admin_summary(admin) -> HistoryAdminSummary | None:
    if admin is None:
        return None
    return HistoryAdminSummary.model_validate(admin)


def list_stock_history(
    db,
    actor: RequestContext,
    filters: StockHistoryFilters,
    *,
    page: int,
    limit: int,
    include_stock: bool = False,
    include_shipment: bool = False,
    include_admin: bool = False,
) -> StockHistoryResponse:
    if not actor.is_admin:
        if filters.admin_cognito_id and not actor.owns(filters.admin_cognito_id):
            policy.require(actor, policy.STOCK_HISTORY_READ, filters.admin_cognito_id)
        if filters.user_cognito_id and not actor.owns(filters.user_cognito_id):
            policy.require(actor, policy.STOCK_HISTORY_READ, filters.user_cognito_id)
        policy.require(actor, policy.STOCK_HISTORY_READ, actor.user_id)
        filters = replace(filters, involving=actor.user_id)
    if filters.date_from and filters.date_to and filters.date_from > filters.date_to:
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "dateFrom must be before dateTo"})

    rows, total = HistoryRepository(db).list_stock_history(
        filters,
        page=page,
        limit=limit,
        include_stock=include_stock,
        include_shipment=include_shipment,
        include_admin=include_admin,
    )
    return StockHistoryResponse(
        meta=build_page_meta(page=page, limit=limit, total=total),
        rows=[
            StockHistoryRow(
                id=row.id,
                stocks_id=row.stocks_id,
                action=row.action,
                user_cognito_id=row.user_cognito_id,
                admin_cognito_id=row.admin_cognito_id,
                shipment_id=row.shipment_id,
                timestamp=row.timestamp,
                details=parse_history_details(row.details),
                stock=_stock_summary(row.stock) if include_stock else None,
                shipment=_shipment_summary(row.shipment) if include_shipment else None,
                admin=_admin_summary(row.admin) if include_admin else None,
            )
            for row in rows
        ],
    )


def list_shipment_history(
    db,
    actor: RequestContext,
    filters: ShipmentHistoryFilters,
    *,
    page: int,
    limit: int,
    include_shipment: bool = True,
    include_admin: bool = False,
) -> ShipmentHistoryResponse:
    policy.require(actor, policy.SHIPMENT_HISTORY_READ, filters.user_cognito_id)
    if filters.date_from and filters.date_to and filters.date_from > filters.date_to:
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "dateFrom must be before dateTo"})

    rows, total = HistoryRepository(db).list_shipment_history(
        filters,
        page=page,
        limit=limit,
        include_shipment=include_shipment,
        include_admin=include_admin,
    )
    return ShipmentHistoryResponse(
        meta=build_page_meta(page=page, limit=limit, total=total),
        rows=[
            ShipmentHistoryRow(
                id=row.id,
                shipment_id=row.shipment_id,
                action=row.action,
                user_cognito_id=row.user_cognito_id,
                admin_cognito_id=row.admin_cognito_id,
                timestamp=row.timestamp,
                details=parse_history_details(row.details),
                shipment=_shipment_summary(row.shipment) if include_shipment else None,
                admin=_admin_summary(row.admin) if include_admin else None,
            )
            for row in rows
        ],
    )

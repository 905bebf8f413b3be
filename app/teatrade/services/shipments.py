"""Shipment aggregate lifecycle.

Every item drawn into a shipment is deducted from its lot through
``adjust_stock``; removing items (update or delete) restores them the same way.
Each public operation is one retried transaction.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from enum import Enum

from app.teatrade.core import policy
from app.teatrade.core.config import settings
from app.teatrade.core.context import RequestContext
from app.teatrade.core.error_catalog import AppError, ErrorCatalog
from app.teatrade.core.logging import log_json
from app.teatrade.db.models import Shipment, ShipmentItem, Stock
from app.teatrade.db.transactions import run_in_transaction
from app.teatrade.repos.shipments import ShipmentQueryFilters, ShipmentRepository
from app.teatrade.repos.stocks import StockRepository
from app.teatrade.repos.users import AdminRepository, UserRepository
from app.teatrade.schemas.enums import ShipmentAction, ShipmentStatus
from app.teatrade.schemas.history import ShipmentLifecycleDetails, StatusChangedDetails
from app.teatrade.schemas.shipments import ShipmentCreateRequest, ShipmentItemInput, ShipmentUpdateRequest
from app.teatrade.services.history import HistoryService, ShipmentHistoryEvent, shipment_item_details
from app.teatrade.services.ledger import adjust_stock

logger = logging.getLogger(__name__)

USER_SETTABLE_STATUSES = frozenset({ShipmentStatus.PENDING, ShipmentStatus.CANCELLED})
TERMINAL_STATUSES = frozenset({ShipmentStatus.CANCELLED.value, ShipmentStatus.DELIVERED.value})
_UPDATABLE_FIELDS = (
    "consignee",
    "vessel",
    "shipmark",
    "packaging_instructions",
    "additional_instructions",
    "shipment_date",
    "status",
)
_NULLABLE_FIELDS = frozenset({"additional_instructions"})


def _plain(value):
    return value.value if isinstance(value, Enum) else value


class ShipmentService:
    def __init__(self, db, actor: RequestContext):
        self.db = db
        self.actor = actor
        self.shipments = ShipmentRepository(db)
        self.stocks = StockRepository(db)
        self.history = HistoryService(db)

    def _require(self, action: str, owner_id: str | None) -> None:
        error = (
            ErrorCatalog.PERMISSION_DENIED
            if owner_id is None or self.actor.owns(owner_id)
            else ErrorCatalog.SHIPMENT_OWNER_MISMATCH
        )
        policy.require(self.actor, action, owner_id, error=error)

    def _owned_shipment(self, user_cognito_id: str, shipment_id: int) -> Shipment:
        shipment = self.shipments.get_for_update(shipment_id)
        if shipment is None or shipment.user_cognito_id != user_cognito_id:
            raise AppError(
                ErrorCatalog.SHIPMENT_NOT_FOUND,
                details={"shipmentId": shipment_id, "userCognitoId": user_cognito_id},
            )
        return shipment

    def _lifecycle_details(self, shipment: Shipment, previous_items=None) -> ShipmentLifecycleDetails:
        return ShipmentLifecycleDetails(
            status=shipment.status,
            consignee=shipment.consignee,
            vessel=shipment.vessel,
            shipmark=shipment.shipmark,
            packaging_instructions=shipment.packaging_instructions,
            additional_instructions=shipment.additional_instructions,
            shipment_date=shipment.shipment_date,
            items=shipment_item_details(shipment.items),
            previous_items=previous_items,
        )

    def _record(self, shipment: Shipment, action: str, details) -> None:
        admin_id = self.actor.user_id if self.actor.is_elevated else None
        self.history.record_shipment_event(
            ShipmentHistoryEvent(
                shipment_id=shipment.id,
                action=action,
                user_cognito_id=shipment.user_cognito_id,
                admin_cognito_id=admin_id,
                details=details,
            )
        )

    def _draw(self, shipment: Shipment, item: ShipmentItemInput) -> Stock:
        stock = self.stocks.get_for_update(item.stocks_id)
        if stock is None:
            raise AppError(ErrorCatalog.STOCK_NOT_FOUND, details={"stocksId": item.stocks_id})
        if item.total_weight > stock.weight:
            raise AppError(
                ErrorCatalog.INSUFFICIENT_STOCK,
                details={
                    "stocksId": stock.id,
                    "lotNo": stock.lot_no,
                    "requested": item.total_weight,
                    "available": stock.weight,
                    "shortfall": item.total_weight - stock.weight,
                },
            )
        shipment.items.append(ShipmentItem(stocks_id=stock.id, assigned_weight=item.total_weight))
        adjust_stock(
            self.db,
            stock.id,
            -item.total_weight,
            f"Stock reduced for shipment {shipment.id}",
            self.actor,
            shipment_id=shipment.id,
        )
        return stock

    def _restore_items(self, shipment: Shipment, reason: str) -> None:
        for item in list(shipment.items):
            adjust_stock(
                self.db,
                item.stocks_id,
                item.assigned_weight,
                reason,
                self.actor,
                shipment_id=shipment.id,
            )

    def _warn_low_stock(self, shipment: Shipment, stocks: list[Stock]) -> None:
        for stock in stocks:
            threshold = stock.low_stock_threshold
            if threshold is None:
                threshold = Decimal(settings.LOW_STOCK_WARNING_KG)
            if stock.weight < threshold:
                log_json(
                    logger,
                    {
                        "event": "low_stock",
                        "trace_id": self.actor.trace_id,
                        "shipment_id": shipment.id,
                        "stocks_id": stock.id,
                        "lot_no": stock.lot_no,
                        "weight": stock.weight,
                        "threshold": threshold,
                    },
                    level=logging.WARNING,
                )

    def create(self, user_cognito_id: str, payload: ShipmentCreateRequest) -> Shipment:
        self._require(policy.SHIPMENT_CREATE, user_cognito_id)
        if payload.status not in USER_SETTABLE_STATUSES:
            raise AppError(ErrorCatalog.STATUS_NOT_ALLOWED, details={"status": payload.status.value})

        def work(db) -> Shipment:
            if UserRepository(db).get_by_cognito_id(user_cognito_id) is None:
                raise AppError(ErrorCatalog.USER_NOT_FOUND, details={"userCognitoId": user_cognito_id})
            now = datetime.utcnow()
            shipment = self.shipments.add(
                Shipment(
                    user_cognito_id=user_cognito_id,
                    status=payload.status.value,
                    consignee=payload.consignee,
                    vessel=payload.vessel.value,
                    shipmark=payload.shipmark,
                    packaging_instructions=payload.packaging_instructions.value,
                    additional_instructions=payload.additional_instructions,
                    shipment_date=payload.shipment_date or now,
                    created_at=now,
                    updated_at=now,
                )
            )
            drawn = [self._draw(shipment, item) for item in payload.items]
            shipment = self.shipments.refresh_hydrated(shipment)
            self._record(shipment, ShipmentAction.CREATED, self._lifecycle_details(shipment))
            self._warn_low_stock(shipment, drawn)
            return shipment

        shipment = run_in_transaction(self.db, work, operation="shipment.create")
        log_json(
            logger,
            {
                "event": "shipment_created",
                "trace_id": self.actor.trace_id,
                "shipment_id": shipment.id,
                "user_cognito_id": user_cognito_id,
                "items": len(shipment.items),
            },
        )
        return shipment

    def update(self, user_cognito_id: str, shipment_id: int, payload: ShipmentUpdateRequest) -> Shipment:
        self._require(policy.SHIPMENT_UPDATE, user_cognito_id)
        if payload.status is not None and payload.status not in USER_SETTABLE_STATUSES:
            raise AppError(ErrorCatalog.STATUS_NOT_ALLOWED, details={"status": payload.status.value})

        def work(db) -> Shipment:
            shipment = self._owned_shipment(user_cognito_id, shipment_id)
            if shipment.status == ShipmentStatus.CANCELLED.value:
                raise AppError(ErrorCatalog.SHIPMENT_CANCELLED, details={"shipmentId": shipment.id})

            previous_items = None
            drawn: list[Stock] = []
            if payload.items is not None:
                previous_items = shipment_item_details(shipment.items)
                self._restore_items(shipment, f"Stock restored for shipment {shipment.id} update")
                shipment.items.clear()
                db.flush()
                drawn = [self._draw(shipment, item) for item in payload.items]

            for field in _UPDATABLE_FIELDS:
                if field not in payload.model_fields_set:
                    continue
                value = getattr(payload, field)
                if value is None and field not in _NULLABLE_FIELDS:
                    continue
                setattr(shipment, field, _plain(value))
            shipment.updated_at = datetime.utcnow()

            shipment = self.shipments.refresh_hydrated(shipment)
            self._record(shipment, ShipmentAction.UPDATED, self._lifecycle_details(shipment, previous_items))
            self._warn_low_stock(shipment, drawn)
            return shipment

        shipment = run_in_transaction(self.db, work, operation="shipment.update")
        log_json(
            logger,
            {
                "event": "shipment_updated",
                "trace_id": self.actor.trace_id,
                "shipment_id": shipment.id,
                "items_replaced": payload.items is not None,
            },
        )
        return shipment

    def delete(self, user_cognito_id: str, shipment_id: int) -> list[ShipmentItem]:
        self._require(policy.SHIPMENT_DELETE, user_cognito_id)

        def work(db) -> list[ShipmentItem]:
            shipment = self._owned_shipment(user_cognito_id, shipment_id)
            shipment = self.shipments.refresh_hydrated(shipment)
            removed = list(shipment.items)
            details = self._lifecycle_details(shipment)
            self._restore_items(shipment, f"Stock restored from deleted shipment {shipment.id}")
            self._record(shipment, ShipmentAction.DELETED, details)
            self.shipments.delete(shipment)
            return removed

        removed = run_in_transaction(self.db, work, operation="shipment.delete")
        log_json(
            logger,
            {
                "event": "shipment_deleted",
                "trace_id": self.actor.trace_id,
                "shipment_id": shipment_id,
                "restored_items": len(removed),
            },
        )
        return removed

    def update_status(self, shipment_id: int, status: ShipmentStatus) -> Shipment:
        policy.require(self.actor, policy.SHIPMENT_STATUS_UPDATE)

        def work(db) -> Shipment:
            shipment = self.shipments.get_for_update(shipment_id)
            if shipment is None:
                raise AppError(ErrorCatalog.SHIPMENT_NOT_FOUND, details={"shipmentId": shipment_id})
            _, provisioned = AdminRepository(db).get_or_create(self.actor.user_id, email=self.actor.email)
            if provisioned:
                log_json(logger, {"event": "admin_provisioned", "admin_cognito_id": self.actor.user_id})
            previous = shipment.status
            if previous == status.value:
                return self.shipments.refresh_hydrated(shipment)
            if previous in TERMINAL_STATUSES:
                raise AppError(
                    ErrorCatalog.INVALID_STATUS_TRANSITION,
                    details={"from": previous, "to": status.value},
                )
            shipment.status = status.value
            shipment.updated_at = datetime.utcnow()
            shipment = self.shipments.refresh_hydrated(shipment)
            self._record(
                shipment,
                ShipmentAction.STATUS_UPDATED,
                StatusChangedDetails(
                    from_status=previous,
                    to_status=status.value,
                    items=shipment_item_details(shipment.items),
                ),
            )
            return shipment

        shipment = run_in_transaction(self.db, work, operation="shipment.status")
        log_json(
            logger,
            {
                "event": "shipment_status_updated",
                "trace_id": self.actor.trace_id,
                "shipment_id": shipment.id,
                "status": shipment.status,
            },
        )
        return shipment

    def list_for_user(
        self,
        user_cognito_id: str,
        *,
        stocks_id: int | None,
        status: str | None,
        search: str | None,
        page: int,
        limit: int,
    ) -> tuple[list[Shipment], int]:
        self._require(policy.SHIPMENT_READ, user_cognito_id)
        filters = ShipmentQueryFilters(
            user_cognito_id=user_cognito_id,
            stocks_id=stocks_id,
            status=status,
            search=search,
        )
        return self.shipments.list_shipments(filters, page=page, limit=limit)

    def list_all(
        self,
        *,
        user_cognito_id: str | None,
        stocks_id: int | None,
        status: str | None,
        search: str | None,
        page: int,
        limit: int,
    ) -> tuple[list[Shipment], int]:
        policy.require(self.actor, policy.SHIPMENT_READ)
        filters = ShipmentQueryFilters(
            user_cognito_id=user_cognito_id,
            stocks_id=stocks_id,
            status=status,
            search=search,
        )
        return self.shipments.list_shipments(filters, page=page, limit=limit)

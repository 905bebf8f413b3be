from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal

from app.teatrade.core import policy
from app.teatrade.core.context import RequestContext
from app.teatrade.core.error_catalog import AppError, ErrorCatalog
from app.teatrade.core.logging import log_json
from app.teatrade.db.models import Stock, StockAssignment, User
from app.teatrade.db.transactions import run_in_transaction
from app.teatrade.repos.assignments import AssignmentRepository
from app.teatrade.repos.stocks import StockRepository
from app.teatrade.repos.users import UserRepository
from app.teatrade.schemas.enums import StockAction
from app.teatrade.schemas.history import AssignedDetails, UnassignedDetails
from app.teatrade.services.history import HistoryService, StockHistoryEvent, stock_snapshot

logger = logging.getLogger(__name__)


class AssignmentService:
    """Reservation of whole lots to users.

    A lot carries at most one assignment at a time. Assigning never moves
    weight; it overlays a reservation on the lot's current weight.
    """

    def __init__(self, db, actor: RequestContext):
        self.db = db
        self.actor = actor
        self.stocks = StockRepository(db)
        self.assignments = AssignmentRepository(db)
        self.users = UserRepository(db)
        self.history = HistoryService(db)

    def _require_user(self, user_cognito_id: str) -> User:
        user = self.users.get_by_cognito_id(user_cognito_id)
        if user is None:
            raise AppError(ErrorCatalog.USER_NOT_FOUND, details={"userCognitoId": user_cognito_id})
        return user

    def _ensure_unassigned(self, stocks: list[Stock]) -> None:
        existing = self.assignments.for_stocks([stock.id for stock in stocks])
        if not existing:
            return
        by_stock: dict[int, list[str]] = defaultdict(list)
        for assignment in existing:
            by_stock[assignment.stocks_id].append(assignment.user_cognito_id)
        lots = {stock.id: stock.lot_no for stock in stocks}
        raise AppError(
            ErrorCatalog.ALREADY_ASSIGNED,
            details={
                "conflicts": [
                    {"stocksId": stock_id, "lotNo": lots.get(stock_id), "assignedTo": users}
                    for stock_id, users in sorted(by_stock.items())
                ]
            },
        )

    def _create(self, stock: Stock, user_cognito_id: str, assigned_weight: Decimal) -> StockAssignment:
        assignment = self.assignments.create(
            StockAssignment(
                stocks_id=stock.id,
                user_cognito_id=user_cognito_id,
                assigned_weight=assigned_weight,
                assigned_at=datetime.utcnow(),
            )
        )
        self.history.record_stock_event(
            StockHistoryEvent(
                stocks_id=stock.id,
                action=StockAction.ASSIGNED,
                user_cognito_id=user_cognito_id,
                admin_cognito_id=self.actor.user_id,
                details=AssignedDetails(
                    assigned_to=user_cognito_id,
                    assigned_weight=assigned_weight,
                    stock=stock_snapshot(stock),
                ),
            )
        )
        return assignment

    def assign(self, stock_id: int, user_cognito_id: str) -> StockAssignment:
        policy.require(self.actor, policy.STOCK_ASSIGN)
        return run_in_transaction(
            self.db, lambda _db: self._assign(stock_id, user_cognito_id), operation="stock.assign"
        )

    def _assign(self, stock_id: int, user_cognito_id: str) -> StockAssignment:
        self._require_user(user_cognito_id)
        stock = self.stocks.get_for_update(stock_id)
        if stock is None:
            raise AppError(ErrorCatalog.STOCK_NOT_FOUND, details={"stocksId": stock_id})
        self._ensure_unassigned([stock])
        assignment = self._create(stock, user_cognito_id, stock.weight)
        log_json(
            logger,
            {
                "event": "stock_assigned",
                "trace_id": self.actor.trace_id,
                "stocks_id": stock.id,
                "user_cognito_id": user_cognito_id,
                "assigned_weight": stock.weight,
            },
        )
        return assignment

    def attach_assignment(self, stock: Stock, user_cognito_id: str, assigned_weight: Decimal | None) -> StockAssignment:
        self._require_user(user_cognito_id)
        self._ensure_unassigned([stock])
        weight = assigned_weight if assigned_weight is not None else stock.weight
        self._validate_weight(stock, weight)
        return self._create(stock, user_cognito_id, weight)

    def _validate_weight(self, stock: Stock, weight: Decimal) -> None:
        if weight <= 0 or weight > stock.weight:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={
                    "message": "assignedWeight must be positive and not exceed the lot weight",
                    "stocksId": stock.id,
                    "assignedWeight": weight,
                    "weight": stock.weight,
                },
            )

    def bulk_assign(self, user_cognito_id: str, items: list[tuple[int, Decimal | None]]) -> list[StockAssignment]:
        policy.require(self.actor, policy.STOCK_ASSIGN)
        return run_in_transaction(
            self.db, lambda _db: self._bulk_assign(user_cognito_id, items), operation="stock.bulk_assign"
        )

    def _bulk_assign(self, user_cognito_id: str, items: list[tuple[int, Decimal | None]]) -> list[StockAssignment]:
        self._require_user(user_cognito_id)
        stock_ids = [stock_id for stock_id, _ in items]
        if len(set(stock_ids)) != len(stock_ids):
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "duplicate stocksId in assignments"})

        stocks = self.stocks.get_many_for_update(stock_ids)
        missing = [stock_id for stock_id in stock_ids if stock_id not in stocks]
        if missing:
            raise AppError(ErrorCatalog.STOCK_NOT_FOUND, details={"missingStockIds": missing})
        ordered = [stocks[stock_id] for stock_id in stock_ids]
        self._ensure_unassigned(ordered)

        created = []
        for stock, (_, requested) in zip(ordered, items):
            weight = requested if requested is not None else stock.weight
            self._validate_weight(stock, weight)
            created.append(self._create(stock, user_cognito_id, weight))
        log_json(
            logger,
            {
                "event": "stock_bulk_assigned",
                "trace_id": self.actor.trace_id,
                "user_cognito_id": user_cognito_id,
                "stock_ids": stock_ids,
            },
        )
        return created

    def unassign(self, stock_id: int, user_cognito_id: str) -> None:
        policy.require(self.actor, policy.STOCK_ASSIGN)
        run_in_transaction(
            self.db, lambda _db: self._unassign(stock_id, user_cognito_id), operation="stock.unassign"
        )

    def _unassign(self, stock_id: int, user_cognito_id: str) -> None:
        assignment = self.assignments.get_pair(stock_id, user_cognito_id)
        if assignment is None:
            raise AppError(
                ErrorCatalog.ASSIGNMENT_NOT_FOUND,
                details={"stocksId": stock_id, "userCognitoId": user_cognito_id},
            )
        stock = self.stocks.get(stock_id)
        self.assignments.delete(assignment)
        self.history.record_stock_event(
            StockHistoryEvent(
                stocks_id=stock_id,
                action=StockAction.UNASSIGNED,
                user_cognito_id=user_cognito_id,
                admin_cognito_id=self.actor.user_id,
                details=UnassignedDetails(
                    unassigned_from=user_cognito_id,
                    assigned_weight=assignment.assigned_weight,
                    lot_no=stock.lot_no if stock is not None else "",
                ),
            )
        )
        log_json(
            logger,
            {
                "event": "stock_unassigned",
                "trace_id": self.actor.trace_id,
                "stocks_id": stock_id,
                "user_cognito_id": user_cognito_id,
            },
        )

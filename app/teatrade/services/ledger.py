"""Stock ledger primitive.

``adjust_stock`` is the only code path that changes ``weight`` or ``bags`` of
an existing lot. It must run inside the caller's transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal

from app.teatrade.core.context import RequestContext
from app.teatrade.core.error_catalog import AppError, ErrorCatalog
from app.teatrade.core.logging import log_json
from app.teatrade.core.metrics import metrics
from app.teatrade.db.models import Stock, StockHistory
from app.teatrade.repos.stocks import StockRepository
from app.teatrade.schemas.enums import StockAction
from app.teatrade.schemas.history import AdjustedDetails
from app.teatrade.services.history import HistoryService, StockHistoryEvent, actor_attribution, stock_identity

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")


def to_weight(value) -> Decimal:
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def weight_per_bag(weight: Decimal, bags: int) -> Decimal:
    if bags <= 0:
        return ZERO
    return (Decimal(weight) / Decimal(bags)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def compute_bags_delta(weight: Decimal, bags: int, weight_delta: Decimal) -> int:
    """Whole bags moved by ``weight_delta``, rounded up in magnitude.

    Ceiling applies to both reductions and restores, so repeated partial
    operations can let ``bags`` drift from ``weight``.
    """
    per_bag = weight_per_bag(weight, bags)
    if per_bag <= 0:
        return 0
    magnitude = int((abs(weight_delta) / per_bag).to_integral_value(rounding=ROUND_CEILING))
    return magnitude if weight_delta >= 0 else -magnitude


@dataclass(frozen=True)
class AdjustmentResult:
    stock: Stock
    weight_delta: Decimal
    bags_delta: int
    entry: StockHistory


def adjust_stock(
    db,
    stock_id: int,
    weight_delta,
    reason: str,
    actor: RequestContext,
    shipment_id: int | None = None,
) -> AdjustmentResult:
    delta = to_weight(weight_delta)
    stock = StockRepository(db).get_for_update(stock_id)
    if stock is None:
        raise AppError(ErrorCatalog.STOCK_NOT_FOUND, details={"stocksId": stock_id})

    bags_delta = compute_bags_delta(stock.weight, stock.bags, delta)
    new_weight = stock.weight + delta
    new_bags = stock.bags + bags_delta
    if new_weight < 0 or new_bags < 0:
        raise AppError(
            ErrorCatalog.INVALID_ADJUSTMENT,
            details={
                "stocksId": stock.id,
                "lotNo": stock.lot_no,
                "weight": stock.weight,
                "bags": stock.bags,
                "weightDelta": delta,
                "bagsDelta": bags_delta,
            },
        )

    stock.weight = new_weight
    stock.bags = new_bags
    stock.updated_at = datetime.utcnow()
    db.flush()

    user_id, admin_id = actor_attribution(actor)
    entry = HistoryService(db).record_stock_event(
        StockHistoryEvent(
            stocks_id=stock.id,
            action=StockAction.RESTORED if delta >= 0 else StockAction.REDUCED,
            user_cognito_id=user_id,
            admin_cognito_id=admin_id,
            shipment_id=shipment_id,
            details=AdjustedDetails(
                weight_delta=delta,
                bags_delta=bags_delta,
                weight=new_weight,
                bags=new_bags,
                reason=reason,
                stock=stock_identity(stock),
            ),
        )
    )
    direction = "restore" if delta >= 0 else "reduce"
    metrics.increment_ledger_adjustment(direction)
    log_json(
        logger,
        {
            "event": "stock_adjusted",
            "trace_id": actor.trace_id,
            "stocks_id": stock.id,
            "lot_no": stock.lot_no,
            "direction": direction,
            "weight_delta": delta,
            "bags_delta": bags_delta,
            "weight": new_weight,
            "bags": new_bags,
            "shipment_id": shipment_id,
            "actor": actor.user_id,
        },
    )
    return AdjustmentResult(stock=stock, weight_delta=delta, bags_delta=bags_delta, entry=entry)

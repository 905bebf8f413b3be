from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.teatrade.core.metrics import metrics
from app.teatrade.db.models import Shipment, ShipmentItem, Stock, StockAssignment
from app.teatrade.schemas.enums import ShipmentStatus

SEVERITY_CRITICAL = "CRITICAL"
SEVERITY_WARN = "WARN"


@dataclass(frozen=True)
class IntegrityFinding:
    check_id: str
    severity: str
    message: str
    entity: str
    entity_id: str | None
    details: dict


def _record(check_id: str, findings: list[IntegrityFinding]) -> list[IntegrityFinding]:
    if findings:
        metrics.increment_invariant_violation(check_id, len(findings))
    return findings


def check_negative_inventory(db) -> list[IntegrityFinding]:
    rows = db.execute(
        select(Stock.id, Stock.lot_no, Stock.weight, Stock.bags).where(or_(Stock.weight < 0, Stock.bags < 0))
    ).all()
    return _record(
        "negative_inventory",
        [
            IntegrityFinding(
                check_id="negative_inventory",
                severity=SEVERITY_CRITICAL,
                message="Stock lot has negative weight or bags.",
                entity="stocks",
                entity_id=str(row.id),
                details={"lot_no": row.lot_no, "weight": str(row.weight), "bags": row.bags},
            )
            for row in rows
        ],
    )


def check_multiple_assignees(db) -> list[IntegrityFinding]:
    rows = db.execute(
        select(StockAssignment.stocks_id, func.count(StockAssignment.id).label("assignments"))
        .group_by(StockAssignment.stocks_id)
        .having(func.count(StockAssignment.id) > 1)
    ).all()
    return _record(
        "multiple_assignees",
        [
            IntegrityFinding(
                check_id="multiple_assignees",
                severity=SEVERITY_CRITICAL,
                message="Stock lot is assigned to more than one user.",
                entity="stocks",
                entity_id=str(row.stocks_id),
                details={"assignments": row.assignments},
            )
            for row in rows
        ],
    )


def check_orphan_shipment_items(db) -> list[IntegrityFinding]:
    rows = db.execute(
        select(ShipmentItem.id, ShipmentItem.shipment_id, ShipmentItem.stocks_id)
        .outerjoin(Stock, Stock.id == ShipmentItem.stocks_id)
        .where(Stock.id.is_(None))
    ).all()
    return _record(
        "orphan_shipment_items",
        [
            IntegrityFinding(
                check_id="orphan_shipment_items",
                severity=SEVERITY_CRITICAL,
                message="Shipment item references a missing stock lot.",
                entity="shipment_items",
                entity_id=str(row.id),
                details={"shipment_id": row.shipment_id, "stocks_id": row.stocks_id},
            )
            for row in rows
        ],
    )


def check_zero_bags_positive_weight(db) -> list[IntegrityFinding]:
    rows = db.execute(
        select(Stock.id, Stock.lot_no, Stock.weight).where(Stock.bags == 0, Stock.weight > 0)
    ).all()
    return _record(
        "zero_bags_positive_weight",
        [
            IntegrityFinding(
                check_id="zero_bags_positive_weight",
                severity=SEVERITY_WARN,
                message="Stock lot has weight left but no bags.",
                entity="stocks",
                entity_id=str(row.id),
                details={"lot_no": row.lot_no, "weight": str(row.weight)},
            )
            for row in rows
        ],
    )


def check_empty_active_shipments(db) -> list[IntegrityFinding]:
    has_items = select(ShipmentItem.id).where(ShipmentItem.shipment_id == Shipment.id).exists()
    rows = db.execute(
        select(Shipment.id, Shipment.user_cognito_id, Shipment.status)
        .where(Shipment.status != ShipmentStatus.CANCELLED.value)
        .where(~has_items)
    ).all()
    return _record(
        "empty_active_shipment",
        [
            IntegrityFinding(
                check_id="empty_active_shipment",
                severity=SEVERITY_WARN,
                message="Active shipment has no items.",
                entity="shipments",
                entity_id=str(row.id),
                details={"user_cognito_id": row.user_cognito_id, "status": row.status},
            )
            for row in rows
        ],
    )


INTEGRITY_CHECKS: dict[str, Callable[[Session], list[IntegrityFinding]]] = {
    "negative_inventory": check_negative_inventory,
    "multiple_assignees": check_multiple_assignees,
    "orphan_shipment_items": check_orphan_shipment_items,
    "zero_bags_positive_weight": check_zero_bags_positive_weight,
    "empty_active_shipment": check_empty_active_shipments,
}


def run_integrity_checks(db: Session, check_ids: Iterable[str] | None = None) -> list[IntegrityFinding]:
    selected = list(check_ids) if check_ids else list(INTEGRITY_CHECKS)
    unknown = [check_id for check_id in selected if check_id not in INTEGRITY_CHECKS]
    if unknown:
        raise ValueError(f"Unknown integrity checks: {', '.join(unknown)}")
    findings: list[IntegrityFinding] = []
    for check_id in selected:
        findings.extend(INTEGRITY_CHECKS[check_id](db))
    return findings

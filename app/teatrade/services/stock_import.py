"""CSV stock import.

Rows are parsed and validated up front, then written in batches. Each batch
runs in its own session and retried transaction; a failed batch reports its
rows as errors without undoing the batches that already committed.
"""

from __future__ import annotations

import csv
import io
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from app.teatrade.core import policy
from app.teatrade.core.config import settings
from app.teatrade.core.context import RequestContext
from app.teatrade.core.error_catalog import AppError, ErrorCatalog
from app.teatrade.core.logging import log_json
from app.teatrade.db import session as db_session
from app.teatrade.db.models import Stock
from app.teatrade.db.transactions import run_in_transaction
from app.teatrade.repos.stocks import StockRepository
from app.teatrade.schemas.enums import StockAction
from app.teatrade.schemas.history import StockCreatedDetails, StockUpdatedDetails
from app.teatrade.schemas.stocks import DuplicateAction, ImportRowError, StockImportResponse, StockImportRow
from app.teatrade.services.history import HistoryService, StockHistoryEvent, stock_snapshot
from app.teatrade.services.ledger import adjust_stock

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")

# normalized header -> StockImportRow field
HEADER_FIELDS = {
    "salecode": "sale_code",
    "broker": "broker",
    "lotno": "lot_no",
    "mark": "mark",
    "grade": "grade",
    "invoiceno": "invoice_no",
    "bags": "bags",
    "weight": "weight",
    "purchasevalue": "purchase_value",
    "totalpurchasevalue": "total_purchase_value",
    "agingdays": "aging_days",
    "penalty": "penalty",
    "bgtcommission": "bgt_commission",
    "maerskfee": "maersk_fee",
    "commission": "commission",
    "netprice": "net_price",
    "total": "total",
    "batchnumber": "batch_number",
    "lowstockthreshold": "low_stock_threshold",
}

_REPLACEABLE_FIELDS = (
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


def normalize_header(name: str) -> str:
    cleaned = name.lstrip("\ufeff").strip().lower()
    return "".join(ch for ch in cleaned if not ch.isspace() and ch != "_")


def _money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


@dataclass
class ParsedRow:
    row: int
    data: StockImportRow


@dataclass
class ImportReport:
    created: int = 0
    replaced: int = 0
    skipped: int = 0
    errors: list[ImportRowError] = field(default_factory=list)

    def merge(self, other: "ImportReport") -> None:
        self.created += other.created
        self.replaced += other.replaced
        self.skipped += other.skipped
        self.errors.extend(other.errors)

    def to_response(self) -> StockImportResponse:
        return StockImportResponse(
            created=self.created,
            replaced=self.replaced,
            skipped=self.skipped,
            errors=sorted(self.errors, key=lambda error: error.row),
        )


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts)


def parse_stock_csv(content: bytes) -> tuple[list[ParsedRow], list[ImportRowError]]:
    """Decode and validate a CSV upload.

    Row numbers count data rows from 1; the header row is not counted.
    """
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "CSV must be UTF-8 encoded"}) from exc

    reader = csv.reader(io.StringIO(text))
    header = next(reader, None)
    if not header:
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "CSV file is empty"})
    columns = [HEADER_FIELDS.get(normalize_header(name)) for name in header]
    if "lot_no" not in columns:
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "CSV header must include lotNo"})

    parsed: list[ParsedRow] = []
    errors: list[ImportRowError] = []
    seen_lots: set[str] = set()
    for index, values in enumerate(reader, start=1):
        if index > settings.IMPORT_MAX_ROWS:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"message": "too many rows", "maxRows": settings.IMPORT_MAX_ROWS},
            )
        if not any(value.strip() for value in values):
            continue
        record = {}
        for column, value in zip(columns, values):
            if column is None:
                continue
            value = value.strip()
            if value:
                record[column] = value
        lot_no = record.get("lot_no")
        try:
            data = StockImportRow.model_validate(record)
        except ValidationError as exc:
            errors.append(ImportRowError(row=index, lot_no=lot_no, message=_format_validation_error(exc)))
            continue
        if data.lot_no in seen_lots:
            errors.append(ImportRowError(row=index, lot_no=data.lot_no, message="duplicate lotNo in file"))
            continue
        seen_lots.add(data.lot_no)
        parsed.append(ParsedRow(row=index, data=data))
    return parsed, errors


class StockImportService:
    def __init__(self, actor: RequestContext, *, session_factory=None):
        self.actor = actor
        self.session_factory = session_factory or db_session.SessionLocal

    def _create_stock(self, db, data: StockImportRow) -> None:
        total_value = data.total_purchase_value
        if total_value is None:
            total_value = _money(data.purchase_value * data.weight)
        now = datetime.utcnow()
        stock = StockRepository(db).create(
            Stock(
                sale_code=data.sale_code,
                broker=data.broker.value,
                lot_no=data.lot_no,
                mark=data.mark,
                grade=data.grade.value,
                invoice_no=data.invoice_no,
                bags=data.bags,
                weight=data.weight,
                purchase_value=data.purchase_value,
                total_purchase_value=total_value,
                aging_days=data.aging_days,
                penalty=data.penalty,
                bgt_commission=data.bgt_commission,
                maersk_fee=data.maersk_fee,
                commission=data.commission,
                net_price=data.net_price if data.net_price is not None else data.purchase_value,
                total=data.total if data.total is not None else total_value,
                batch_number=data.batch_number,
                low_stock_threshold=data.low_stock_threshold,
                admin_cognito_id=self.actor.user_id,
                created_at=now,
                updated_at=now,
            )
        )
        HistoryService(db).record_stock_event(
            StockHistoryEvent(
                stocks_id=stock.id,
                action=StockAction.CREATED,
                admin_cognito_id=self.actor.user_id,
                details=StockCreatedDetails(stock=stock_snapshot(stock)),
            )
        )

    def _replace_stock(self, db, stock: Stock, data: StockImportRow) -> None:
        changes: dict = {}
        if data.weight != stock.weight:
            adjust_stock(db, stock.id, data.weight - stock.weight, "Replaced via CSV import", self.actor)
            changes["weight"] = format(stock.weight, "f")
        for name in _REPLACEABLE_FIELDS:
            value = getattr(data, name)
            value = value.value if hasattr(value, "value") else value
            if getattr(stock, name) != value:
                setattr(stock, name, value)
                changes[name] = format(value, "f") if isinstance(value, Decimal) else value
        stock.net_price = data.net_price if data.net_price is not None else stock.purchase_value
        stock.total_purchase_value = (
            data.total_purchase_value
            if data.total_purchase_value is not None
            else _money(stock.purchase_value * stock.weight)
        )
        stock.total = data.total if data.total is not None else stock.total_purchase_value
        stock.updated_at = datetime.utcnow()
        db.flush()
        HistoryService(db).record_stock_event(
            StockHistoryEvent(
                stocks_id=stock.id,
                action=StockAction.UPDATED,
                admin_cognito_id=self.actor.user_id,
                details=StockUpdatedDetails(changes=changes, reason="Replaced via CSV import"),
            )
        )

    def _run_batch(self, batch: list[ParsedRow], duplicate_action: DuplicateAction) -> ImportReport:
        def work(db) -> ImportReport:
            report = ImportReport()
            repo = StockRepository(db)
            existing = repo.get_by_lot_nos([item.data.lot_no for item in batch])
            for item in batch:
                stock = existing.get(item.data.lot_no)
                if stock is None:
                    self._create_stock(db, item.data)
                    report.created += 1
                elif duplicate_action == "skip":
                    report.skipped += 1
                else:
                    self._replace_stock(db, stock, item.data)
                    report.replaced += 1
            return report

        db = self.session_factory()
        try:
            return run_in_transaction(db, work, operation="stock.import")
        except (AppError, SQLAlchemyError) as exc:
            message = exc.error.code if isinstance(exc, AppError) else type(exc).__name__
            log_json(
                logger,
                {
                    "event": "stock_import_batch_failed",
                    "trace_id": self.actor.trace_id,
                    "rows": [item.row for item in batch],
                    "error": message,
                },
                level=logging.ERROR,
            )
            return ImportReport(
                errors=[
                    ImportRowError(row=item.row, lot_no=item.data.lot_no, message=f"batch failed: {message}")
                    for item in batch
                ]
            )
        finally:
            db.close()

    def import_csv(self, content: bytes, duplicate_action: DuplicateAction) -> StockImportResponse:
        policy.require(self.actor, policy.STOCK_IMPORT)
        rows, errors = parse_stock_csv(content)
        if not rows:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={
                    "message": "no valid rows in CSV",
                    "errors": [error.model_dump(mode="json", by_alias=True) for error in errors],
                },
            )

        size = max(1, settings.IMPORT_BATCH_SIZE)
        batches = [rows[start : start + size] for start in range(0, len(rows), size)]
        report = ImportReport(errors=list(errors))
        with ThreadPoolExecutor(max_workers=max(1, settings.IMPORT_MAX_CONCURRENT_BATCHES)) as executor:
            for batch_report in executor.map(lambda batch: self._run_batch(batch, duplicate_action), batches):
                report.merge(batch_report)

        log_json(
            logger,
            {
                "event": "stock_import_completed",
                "trace_id": self.actor.trace_id,
                "batches": len(batches),
                "created": report.created,
                "replaced": report.replaced,
                "skipped": report.skipped,
                "errors": len(report.errors),
            },
        )
        return report.to_response()

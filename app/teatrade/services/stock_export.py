from __future__ import annotations

import csv
import io
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from openpyxl import Workbook

from app.teatrade.core import policy
from app.teatrade.core.config import settings
from app.teatrade.core.context import RequestContext
from app.teatrade.db.models import Stock
from app.teatrade.repos.stocks import StockQueryFilters, StockRepository

ExportFormat = Literal["xlsx", "csv"]

MEDIA_TYPES = {
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "csv": "text/csv",
}

STOCK_COLUMNS = [
    "Lot No",
    "Sale Code",
    "Broker",
    "Mark",
    "Grade",
    "Invoice No",
    "Bags",
    "Weight",
    "Purchase Value",
    "Total Purchase Value",
    "Aging Days",
    "Penalty",
    "BGT Commission",
    "Maersk Fee",
    "Commission",
    "Net Price",
    "Total",
    "Batch Number",
    "Assigned To",
    "Assigned Weight",
]


@dataclass
class ExportDataset:
    columns: list[str]
    rows: list[list[object]]


def _stock_values(stock: Stock) -> list[object]:
    assignment = stock.assignments[0] if stock.assignments else None
    return [
        stock.lot_no,
        stock.sale_code,
        stock.broker,
        stock.mark,
        stock.grade,
        stock.invoice_no,
        stock.bags,
        stock.weight,
        stock.purchase_value,
        stock.total_purchase_value,
        stock.aging_days,
        stock.penalty,
        stock.bgt_commission,
        stock.maersk_fee,
        stock.commission,
        stock.net_price,
        stock.total,
        stock.batch_number,
        assignment.user_cognito_id if assignment is not None else None,
        assignment.assigned_weight if assignment is not None else None,
    ]


def build_stock_dataset(db, actor: RequestContext, filters: StockQueryFilters) -> ExportDataset:
    policy.require(actor, policy.STOCK_READ)
    if not actor.is_elevated:
        filters = replace(filters, assigned_to=actor.user_id)
    stocks = StockRepository(db).list_all(filters, max_rows=settings.IMPORT_MAX_ROWS)
    return ExportDataset(columns=list(STOCK_COLUMNS), rows=[_stock_values(stock) for stock in stocks])


def _format_cell(value: object) -> object:
    if isinstance(value, Decimal):
        return value.quantize(Decimal("0.01"))
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


def render_csv(dataset: ExportDataset) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(dataset.columns)
    for row in dataset.rows:
        writer.writerow([_format_cell(value) for value in row])
    return buffer.getvalue().encode("utf-8")


def render_xlsx(dataset: ExportDataset) -> bytes:
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = "stocks"
    worksheet.append(dataset.columns)
    for row in dataset.rows:
        worksheet.append([_format_cell(value) for value in row])
    output = io.BytesIO()
    workbook.save(output)
    return output.getvalue()


def render_stock_export(dataset: ExportDataset, export_format: ExportFormat) -> bytes:
    if export_format == "csv":
        return render_csv(dataset)
    return render_xlsx(dataset)

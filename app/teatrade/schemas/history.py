"""Typed payloads stored in ``stock_history.details`` and ``shipment_history.details``.

Every payload carries a ``kind`` tag; ``HistoryDetails`` is the discriminated
union of all of them.
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import Field, TypeAdapter

from app.teatrade.schemas.common import CamelModel, MoneyValue, PageMeta, SignedWeight, WeightValue


class StockIdentity(CamelModel):
    lot_no: str
    mark: str
    grade: str
    broker: str
    sale_code: str
    purchase_value: MoneyValue | None = None


class StockSnapshot(StockIdentity):
    invoice_no: str | None = None
    bags: int
    weight: WeightValue
    total_purchase_value: MoneyValue | None = None
    batch_number: str | None = None


class AssignedDetails(CamelModel):
    kind: Literal["assigned"] = "assigned"
    assigned_to: str
    assigned_weight: WeightValue
    stock: StockSnapshot


class UnassignedDetails(CamelModel):
    kind: Literal["unassigned"] = "unassigned"
    unassigned_from: str
    assigned_weight: WeightValue
    lot_no: str


class AdjustedDetails(CamelModel):
    kind: Literal["adjusted"] = "adjusted"
    weight_delta: SignedWeight
    bags_delta: int
    weight: WeightValue
    bags: int
    reason: str
    stock: StockIdentity


class StockCreatedDetails(CamelModel):
    kind: Literal["stock_created"] = "stock_created"
    stock: StockSnapshot


class StockUpdatedDetails(CamelModel):
    kind: Literal["stock_updated"] = "stock_updated"
    changes: dict[str, Any]
    reason: str | None = None


class StockDeletedDetails(CamelModel):
    kind: Literal["stock_deleted"] = "stock_deleted"
    lot_no: str
    weight: WeightValue
    bags: int


class ShipmentItemDetail(CamelModel):
    stocks_id: int
    total_weight: WeightValue
    lot_no: str | None = None


class ShipmentLifecycleDetails(CamelModel):
    kind: Literal["shipment_lifecycle"] = "shipment_lifecycle"
    status: str
    consignee: str
    vessel: str
    shipmark: str
    packaging_instructions: str
    additional_instructions: str | None = None
    shipment_date: datetime | None = None
    items: list[ShipmentItemDetail]
    previous_items: list[ShipmentItemDetail] | None = None


class StatusChangedDetails(CamelModel):
    kind: Literal["status_changed"] = "status_changed"
    from_status: str
    to_status: str
    items: list[ShipmentItemDetail] = Field(default_factory=list)


HistoryDetails = Annotated[
    Union[
        AssignedDetails,
        UnassignedDetails,
        AdjustedDetails,
        StockCreatedDetails,
        StockUpdatedDetails,
        StockDeletedDetails,
        ShipmentLifecycleDetails,
        StatusChangedDetails,
    ],
    Field(discriminator="kind"),
]

_details_adapter: TypeAdapter = TypeAdapter(HistoryDetails)


def parse_history_details(data: dict) -> HistoryDetails:
    return _details_adapter.validate_python(data)


def dump_history_details(details: HistoryDetails) -> dict:
    return details.model_dump(mode="json", by_alias=True)


class HistoryStockSummary(CamelModel):
    id: int
    lot_no: str
    mark: str
    grade: str
    broker: str
    weight: WeightValue
    bags: int


class HistoryShipmentSummary(CamelModel):
    id: int
    status: str
    user_cognito_id: str
    consignee: str
    shipmark: str


class HistoryAdminSummary(CamelModel):
    admin_cognito_id: str
    name: str
    email: str


class StockHistoryRow(CamelModel):
    id: int
    stocks_id: int
    action: str
    user_cognito_id: str | None = None
    admin_cognito_id: str | None = None
    shipment_id: int | None = None
    timestamp: datetime
    details: HistoryDetails
    stock: HistoryStockSummary | None = None
    shipment: HistoryShipmentSummary | None = None
    admin: HistoryAdminSummary | None = None


class StockHistoryResponse(CamelModel):
    meta: PageMeta
    rows: list[StockHistoryRow]


class ShipmentHistoryRow(CamelModel):
    id: int
    shipment_id: int
    action: str
    user_cognito_id: str | None = None
    admin_cognito_id: str | None = None
    timestamp: datetime
    details: HistoryDetails
    shipment: HistoryShipmentSummary | None = None
    admin: HistoryAdminSummary | None = None


class ShipmentHistoryResponse(CamelModel):
    meta: PageMeta
    rows: list[ShipmentHistoryRow]

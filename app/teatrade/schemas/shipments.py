from datetime import datetime

from pydantic import Field, model_validator

from app.teatrade.schemas.common import CamelModel, PageMeta, PositiveWeight, WeightValue
from app.teatrade.schemas.enums import PackagingInstructions, ShipmentStatus, Vessel
from app.teatrade.schemas.stocks import StockSummary


class ShipmentItemInput(CamelModel):
    stocks_id: int
    total_weight: PositiveWeight


def _reject_duplicate_stocks(items: list[ShipmentItemInput] | None) -> None:
    if not items:
        return
    seen: set[int] = set()
    for item in items:
        if item.stocks_id in seen:
            raise ValueError(f"duplicate stocksId {item.stocks_id} in items")
        seen.add(item.stocks_id)


class ShipmentCreateRequest(CamelModel):
    items: list[ShipmentItemInput] = Field(..., min_length=1)
    consignee: str = Field(..., min_length=1, max_length=255)
    vessel: Vessel
    shipmark: str = Field(..., min_length=1, max_length=255)
    packaging_instructions: PackagingInstructions
    additional_instructions: str | None = Field(default=None, max_length=2000)
    shipment_date: datetime | None = None
    status: ShipmentStatus = ShipmentStatus.PENDING

    @model_validator(mode="after")
    def _validate_items(self):
        _reject_duplicate_stocks(self.items)
        return self


class ShipmentUpdateRequest(CamelModel):
    items: list[ShipmentItemInput] | None = Field(default=None, min_length=1)
    consignee: str | None = Field(default=None, min_length=1, max_length=255)
    vessel: Vessel | None = None
    shipmark: str | None = Field(default=None, min_length=1, max_length=255)
    packaging_instructions: PackagingInstructions | None = None
    additional_instructions: str | None = Field(default=None, max_length=2000)
    shipment_date: datetime | None = None
    status: ShipmentStatus | None = None

    @model_validator(mode="after")
    def _validate_items(self):
        _reject_duplicate_stocks(self.items)
        return self


class ShipmentStatusUpdateRequest(CamelModel):
    status: ShipmentStatus


class ShipmentItemResponse(CamelModel):
    id: int
    stocks_id: int
    assigned_weight: WeightValue
    stock: StockSummary | None = None


class ShipmentUserSummary(CamelModel):
    user_cognito_id: str
    name: str
    email: str


class ShipmentResponse(CamelModel):
    id: int
    user_cognito_id: str
    status: ShipmentStatus
    consignee: str
    vessel: Vessel
    shipmark: str
    packaging_instructions: PackagingInstructions
    additional_instructions: str | None = None
    shipment_date: datetime
    created_at: datetime
    updated_at: datetime
    items: list[ShipmentItemResponse]
    user: ShipmentUserSummary | None = None


class ShipmentListResponse(CamelModel):
    meta: PageMeta
    rows: list[ShipmentResponse]


class ShipmentDeleteResponse(CamelModel):
    id: int
    restored: list[ShipmentItemResponse]

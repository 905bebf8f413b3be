from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import Field, field_validator

from app.teatrade.schemas.common import CamelModel, MoneyValue, PageMeta, PositiveWeight, SignedWeight, WeightValue
from app.teatrade.schemas.enums import Broker, TeaGrade


class StockSummary(CamelModel):
    id: int
    lot_no: str
    mark: str
    grade: str
    broker: str
    sale_code: str
    bags: int
    weight: WeightValue


class AssignmentRow(CamelModel):
    id: int
    stocks_id: int
    user_cognito_id: str
    assigned_weight: WeightValue
    assigned_at: datetime


class StockRow(CamelModel):
    id: int
    sale_code: str
    broker: str
    lot_no: str
    mark: str
    grade: str
    invoice_no: str | None = None
    bags: int
    weight: WeightValue
    purchase_value: MoneyValue
    total_purchase_value: MoneyValue
    aging_days: int
    penalty: MoneyValue
    bgt_commission: MoneyValue
    maersk_fee: MoneyValue
    commission: MoneyValue
    net_price: MoneyValue
    total: MoneyValue
    batch_number: str | None = None
    low_stock_threshold: WeightValue | None = None
    admin_cognito_id: str | None = None
    created_at: datetime
    updated_at: datetime
    assignments: list[AssignmentRow] = Field(default_factory=list)
    is_favorite: bool = False


class StockListResponse(CamelModel):
    meta: PageMeta
    rows: list[StockRow]


class AssignmentInput(CamelModel):
    user_cognito_id: str = Field(..., min_length=1)
    assigned_weight: PositiveWeight | None = None


class StockCreateRequest(CamelModel):
    sale_code: str = Field(..., min_length=1, max_length=50)
    broker: Broker
    lot_no: str = Field(..., min_length=1, max_length=100)
    mark: str = Field(..., min_length=1, max_length=255)
    grade: TeaGrade
    invoice_no: str | None = Field(default=None, max_length=100)
    bags: int = Field(..., ge=0)
    weight: WeightValue
    purchase_value: MoneyValue = Decimal("0")
    batch_number: str | None = Field(default=None, max_length=100)
    low_stock_threshold: WeightValue | None = None
    assignments: list[AssignmentInput] = Field(default_factory=list, max_length=1)

    @field_validator("lot_no", "sale_code", "mark")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class StockUpdateRequest(CamelModel):
    sale_code: str | None = Field(default=None, min_length=1, max_length=50)
    broker: Broker | None = None
    mark: str | None = Field(default=None, min_length=1, max_length=255)
    grade: TeaGrade | None = None
    invoice_no: str | None = Field(default=None, max_length=100)
    weight: WeightValue | None = None
    purchase_value: MoneyValue | None = None
    aging_days: int | None = Field(default=None, ge=0)
    penalty: MoneyValue | None = None
    bgt_commission: MoneyValue | None = None
    maersk_fee: MoneyValue | None = None
    commission: MoneyValue | None = None
    batch_number: str | None = Field(default=None, max_length=100)
    low_stock_threshold: WeightValue | None = None
    reason: str | None = Field(default=None, max_length=255)
    assignments: list[AssignmentInput] | None = Field(default=None, max_length=1)


class StockDeleteRequest(CamelModel):
    ids: list[int] = Field(..., min_length=1)


class StockDeleteResponse(CamelModel):
    deleted_ids: list[int]


class StockAdjustRequest(CamelModel):
    stocks_id: int
    weight: SignedWeight
    reason: str = Field(..., min_length=1, max_length=255)
    shipment_id: int | None = None

    @field_validator("weight")
    @classmethod
    def _non_zero(cls, value: Decimal) -> Decimal:
        if value == 0:
            raise ValueError("weight delta must not be zero")
        return value


class StockAdjustResponse(CamelModel):
    stock: StockSummary
    weight_delta: SignedWeight
    bags_delta: int


class AssignRequest(CamelModel):
    stocks_id: int
    user_cognito_id: str = Field(..., min_length=1)


class BulkAssignItem(CamelModel):
    stocks_id: int
    assigned_weight: PositiveWeight | None = None


class BulkAssignRequest(CamelModel):
    user_cognito_id: str = Field(..., min_length=1)
    assignments: list[BulkAssignItem] = Field(..., min_length=1)


class UnassignRequest(CamelModel):
    stocks_id: int
    user_cognito_id: str = Field(..., min_length=1)


class AssignmentResponse(CamelModel):
    assignment: AssignmentRow
    stock: StockSummary


class BulkAssignResponse(CamelModel):
    assignments: list[AssignmentRow]


class UnassignResponse(CamelModel):
    stocks_id: int
    user_cognito_id: str


class FavoriteRequest(CamelModel):
    stocks_id: int


class FavoriteResponse(CamelModel):
    stocks_id: int
    is_favorite: bool


class UserAssignmentRow(CamelModel):
    assignment: AssignmentRow
    stock: StockSummary


class UserAssignmentListResponse(CamelModel):
    meta: PageMeta
    rows: list[UserAssignmentRow]


class ImportRowError(CamelModel):
    row: int
    lot_no: str | None = None
    message: str


class StockImportResponse(CamelModel):
    created: int
    replaced: int
    skipped: int
    errors: list[ImportRowError]


DuplicateAction = Literal["skip", "replace"]
AssignmentStatusFilter = Literal["all", "assigned", "unassigned"]


class StockImportRow(CamelModel):
    sale_code: str = Field(..., min_length=1, max_length=50)
    broker: Broker
    lot_no: str = Field(..., min_length=1, max_length=100)
    mark: str = Field(..., min_length=1, max_length=255)
    grade: TeaGrade
    invoice_no: str | None = Field(default=None, max_length=100)
    bags: int = Field(..., ge=0)
    weight: WeightValue
    purchase_value: MoneyValue = Decimal("0")
    total_purchase_value: MoneyValue | None = None
    aging_days: int = Field(default=0, ge=0)
    penalty: MoneyValue = Decimal("0")
    bgt_commission: MoneyValue = Decimal("0")
    maersk_fee: MoneyValue = Decimal("0")
    commission: MoneyValue = Decimal("0")
    net_price: MoneyValue | None = None
    total: MoneyValue | None = None
    batch_number: str | None = Field(default=None, max_length=100)
    low_stock_threshold: WeightValue | None = None

from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile

from app.teatrade.core.config import settings
from app.teatrade.core.context import RequestContext
from app.teatrade.core.deps import require_request_context
from app.teatrade.db.session import get_db
from app.teatrade.repos.stocks import StockQueryFilters
from app.teatrade.schemas.enums import Broker, TeaGrade
from app.teatrade.schemas.errors import LEDGER_ERROR_RESPONSES
from app.teatrade.schemas.stocks import (
    AssignmentResponse,
    AssignmentRow,
    AssignmentStatusFilter,
    AssignRequest,
    BulkAssignRequest,
    BulkAssignResponse,
    DuplicateAction,
    FavoriteRequest,
    FavoriteResponse,
    StockAdjustRequest,
    StockAdjustResponse,
    StockCreateRequest,
    StockDeleteRequest,
    StockDeleteResponse,
    StockImportResponse,
    StockListResponse,
    StockRow,
    StockSummary,
    StockUpdateRequest,
    UnassignRequest,
    UnassignResponse,
    UserAssignmentListResponse,
)
from app.teatrade.services.assignments import AssignmentService
from app.teatrade.services.stock_export import MEDIA_TYPES, ExportFormat, build_stock_dataset, render_stock_export
from app.teatrade.services.stock_import import StockImportService
from app.teatrade.services.stocks import StockService, build_stock_row

router = APIRouter(responses=LEDGER_ERROR_RESPONSES)


def _stock_filters(
    lot_no: str | None = Query(None, alias="lotNo"),
    batch_number: str | None = Query(None, alias="batchNumber"),
    min_weight: Decimal | None = Query(None, alias="minWeight", ge=0),
    grade: TeaGrade | None = None,
    broker: Broker | None = None,
    search: str | None = None,
    assignment_status: AssignmentStatusFilter = Query("all", alias="assignmentStatus"),
) -> StockQueryFilters:
    return StockQueryFilters(
        lot_no=lot_no,
        batch_number=batch_number,
        min_weight=min_weight,
        grade=grade.value if grade else None,
        broker=broker.value if broker else None,
        search=search,
        assignment_status=assignment_status,
    )


@router.get("/stocks", response_model=StockListResponse)
def list_stocks(
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
    filters: StockQueryFilters = Depends(_stock_filters),
    only_favorites: bool = Query(False, alias="onlyFavorites"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=settings.LIST_MAX_PAGE_SIZE),
):
    return StockService(db, context).list_stocks(filters, only_favorites=only_favorites, page=page, limit=limit)


@router.post("/stocks", response_model=StockRow, status_code=201)
def create_stock(
    payload: StockCreateRequest,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    stock = StockService(db, context).create(payload)
    return build_stock_row(stock)


@router.patch("/stocks/{stock_id}", response_model=StockRow)
def update_stock(
    stock_id: int,
    payload: StockUpdateRequest,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    stock = StockService(db, context).update(stock_id, payload)
    return build_stock_row(stock)


@router.delete("/stocks", response_model=StockDeleteResponse)
def delete_stocks(
    payload: StockDeleteRequest,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    deleted = StockService(db, context).delete_stocks(payload.ids)
    return StockDeleteResponse(deleted_ids=deleted)


@router.post("/stocks/adjust", response_model=StockAdjustResponse)
def adjust_stock_weight(
    payload: StockAdjustRequest,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    result = StockService(db, context).adjust(
        payload.stocks_id, payload.weight, payload.reason, shipment_id=payload.shipment_id
    )
    return StockAdjustResponse(
        stock=StockSummary.model_validate(result.stock),
        weight_delta=result.weight_delta,
        bags_delta=result.bags_delta,
    )


@router.post("/stocks/assign", response_model=AssignmentResponse, status_code=201)
def assign_stock(
    payload: AssignRequest,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    assignment = AssignmentService(db, context).assign(payload.stocks_id, payload.user_cognito_id)
    return AssignmentResponse(
        assignment=AssignmentRow.model_validate(assignment),
        stock=StockSummary.model_validate(assignment.stock),
    )


@router.post("/stocks/bulk-assign", response_model=BulkAssignResponse, status_code=201)
def bulk_assign_stocks(
    payload: BulkAssignRequest,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    created = AssignmentService(db, context).bulk_assign(
        payload.user_cognito_id,
        [(item.stocks_id, item.assigned_weight) for item in payload.assignments],
    )
    return BulkAssignResponse(assignments=[AssignmentRow.model_validate(row) for row in created])


@router.post("/stocks/unassign", response_model=UnassignResponse)
def unassign_stock(
    payload: UnassignRequest,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    AssignmentService(db, context).unassign(payload.stocks_id, payload.user_cognito_id)
    return UnassignResponse(stocks_id=payload.stocks_id, user_cognito_id=payload.user_cognito_id)


@router.post("/stocks/favorites", response_model=FavoriteResponse)
def toggle_favorite(
    payload: FavoriteRequest,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    is_favorite = StockService(db, context).toggle_favorite(payload.stocks_id)
    return FavoriteResponse(stocks_id=payload.stocks_id, is_favorite=is_favorite)


@router.post("/stocks/upload", response_model=StockImportResponse, status_code=201)
def upload_stocks_csv(
    file: UploadFile = File(...),
    duplicate_action: DuplicateAction = Form("skip", alias="duplicateAction"),
    context: RequestContext = Depends(require_request_context),
):
    content = file.file.read()
    return StockImportService(context).import_csv(content, duplicate_action)


@router.get("/stocks/export")
def export_stocks(
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
    filters: StockQueryFilters = Depends(_stock_filters),
    export_format: ExportFormat = Query("xlsx", alias="format"),
):
    dataset = build_stock_dataset(db, context, filters)
    return Response(
        content=render_stock_export(dataset, export_format),
        media_type=MEDIA_TYPES[export_format],
        headers={"Content-Disposition": f'attachment; filename="stocks.{export_format}"'},
    )


@router.get("/users/{user_cognito_id}/stock-assignments", response_model=UserAssignmentListResponse)
def list_user_assignments(
    user_cognito_id: str,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
    search: str | None = None,
    sort_by: Literal["assignedAt", "assignedWeight", "lotNo", "saleCode", "weight"] = Query(
        "assignedAt", alias="sortBy"
    ),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=settings.LIST_MAX_PAGE_SIZE),
):
    return StockService(db, context).list_user_assignments(
        user_cognito_id,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )

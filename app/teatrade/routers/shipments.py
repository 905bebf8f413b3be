from fastapi import APIRouter, Depends, Query

from app.teatrade.core.config import settings
from app.teatrade.core.context import RequestContext
from app.teatrade.core.deps import require_request_context
from app.teatrade.db.session import get_db
from app.teatrade.schemas.common import build_page_meta
from app.teatrade.schemas.enums import ShipmentStatus
from app.teatrade.schemas.errors import LEDGER_ERROR_RESPONSES
from app.teatrade.schemas.shipments import (
    ShipmentCreateRequest,
    ShipmentDeleteResponse,
    ShipmentItemResponse,
    ShipmentListResponse,
    ShipmentResponse,
    ShipmentStatusUpdateRequest,
    ShipmentUpdateRequest,
)
from app.teatrade.services.shipments import ShipmentService

router = APIRouter(responses=LEDGER_ERROR_RESPONSES)


def _list_response(rows, total: int, page: int, limit: int) -> ShipmentListResponse:
    return ShipmentListResponse(
        meta=build_page_meta(page=page, limit=limit, total=total),
        rows=[ShipmentResponse.model_validate(row) for row in rows],
    )


@router.get("/admin/shipments", response_model=ShipmentListResponse)
def list_all_shipments(
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
    user_cognito_id: str | None = Query(None, alias="userCognitoId"),
    stocks_id: int | None = Query(None, alias="stocksId"),
    status: ShipmentStatus | None = None,
    search: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=settings.LIST_MAX_PAGE_SIZE),
):
    rows, total = ShipmentService(db, context).list_all(
        user_cognito_id=user_cognito_id,
        stocks_id=stocks_id,
        status=status.value if status else None,
        search=search,
        page=page,
        limit=limit,
    )
    return _list_response(rows, total, page, limit)


@router.put("/admin/shipments/{shipment_id}/status", response_model=ShipmentResponse)
def update_shipment_status(
    shipment_id: int,
    payload: ShipmentStatusUpdateRequest,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    shipment = ShipmentService(db, context).update_status(shipment_id, payload.status)
    return ShipmentResponse.model_validate(shipment)


@router.get("/users/{user_cognito_id}/shipments", response_model=ShipmentListResponse)
def list_user_shipments(
    user_cognito_id: str,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
    stocks_id: int | None = Query(None, alias="stocksId"),
    status: ShipmentStatus | None = None,
    search: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=settings.LIST_MAX_PAGE_SIZE),
):
    rows, total = ShipmentService(db, context).list_for_user(
        user_cognito_id,
        stocks_id=stocks_id,
        status=status.value if status else None,
        search=search,
        page=page,
        limit=limit,
    )
    return _list_response(rows, total, page, limit)


@router.post("/users/{user_cognito_id}/shipments", response_model=ShipmentResponse, status_code=201)
def create_shipment(
    user_cognito_id: str,
    payload: ShipmentCreateRequest,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    shipment = ShipmentService(db, context).create(user_cognito_id, payload)
    return ShipmentResponse.model_validate(shipment)


@router.patch("/users/{user_cognito_id}/shipments/{shipment_id}", response_model=ShipmentResponse)
def update_shipment(
    user_cognito_id: str,
    shipment_id: int,
    payload: ShipmentUpdateRequest,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    shipment = ShipmentService(db, context).update(user_cognito_id, shipment_id, payload)
    return ShipmentResponse.model_validate(shipment)


@router.delete("/users/{user_cognito_id}/shipments/{shipment_id}", response_model=ShipmentDeleteResponse)
def delete_shipment(
    user_cognito_id: str,
    shipment_id: int,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    removed = ShipmentService(db, context).delete(user_cognito_id, shipment_id)
    return ShipmentDeleteResponse(
        id=shipment_id,
        restored=[ShipmentItemResponse.model_validate(item) for item in removed],
    )

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from app.teatrade.core import policy
from app.teatrade.core.config import settings
from app.teatrade.core.context import RequestContext
from app.teatrade.core.deps import require_request_context
from app.teatrade.db.session import get_db
from app.teatrade.repos.history import ShipmentHistoryFilters, StockHistoryFilters
from app.teatrade.schemas.errors import LEDGER_ERROR_RESPONSES
from app.teatrade.schemas.history import ShipmentHistoryResponse, StockHistoryResponse
from app.teatrade.services.history import list_shipment_history, list_stock_history

router = APIRouter(responses=LEDGER_ERROR_RESPONSES)


def _stock_history(
    context: RequestContext,
    db,
    *,
    stocks_id: int | None,
    shipment_id: int | None,
    admin_cognito_id: str | None,
    user_cognito_id: str | None,
    action: str | None,
    date_from: datetime | None,
    date_to: datetime | None,
    page: int,
    limit: int,
    include_stock: bool,
    include_shipment: bool,
    include_admin: bool,
) -> StockHistoryResponse:
    filters = StockHistoryFilters(
        stocks_id=stocks_id,
        shipment_id=shipment_id,
        admin_cognito_id=admin_cognito_id,
        user_cognito_id=user_cognito_id,
        action=action,
        date_from=date_from,
        date_to=date_to,
    )
    return list_stock_history(
        db,
        context,
        filters,
        page=page,
        limit=limit,
        include_stock=include_stock,
        include_shipment=include_shipment,
        include_admin=include_admin,
    )


@router.get("/stocks/history", response_model=StockHistoryResponse)
def stock_history(
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
    stocks_id: int | None = Query(None, alias="stockId"),
    shipment_id: int | None = Query(None, alias="shipmentId"),
    admin_cognito_id: str | None = Query(None, alias="adminCognitoId"),
    user_cognito_id: str | None = Query(None, alias="userCognitoId"),
    action: str | None = None,
    date_from: datetime | None = Query(None, alias="dateFrom"),
    date_to: datetime | None = Query(None, alias="dateTo"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=settings.HISTORY_MAX_PAGE_SIZE),
    include_stock: bool = Query(False, alias="includeStock"),
    include_shipment: bool = Query(False, alias="includeShipment"),
    include_admin: bool = Query(False, alias="includeAdmin"),
):
    return _stock_history(
        context,
        db,
        stocks_id=stocks_id,
        shipment_id=shipment_id,
        admin_cognito_id=admin_cognito_id,
        user_cognito_id=user_cognito_id,
        action=action,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
        include_stock=include_stock,
        include_shipment=include_shipment,
        include_admin=include_admin,
    )


@router.get("/stocks/{stock_id}/history", response_model=StockHistoryResponse)
def stock_history_for_lot(
    stock_id: int,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
    shipment_id: int | None = Query(None, alias="shipmentId"),
    action: str | None = None,
    date_from: datetime | None = Query(None, alias="dateFrom"),
    date_to: datetime | None = Query(None, alias="dateTo"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=settings.HISTORY_MAX_PAGE_SIZE),
    include_stock: bool = Query(False, alias="includeStock"),
    include_shipment: bool = Query(False, alias="includeShipment"),
    include_admin: bool = Query(False, alias="includeAdmin"),
):
    return _stock_history(
        context,
        db,
        stocks_id=stock_id,
        shipment_id=shipment_id,
        admin_cognito_id=None,
        user_cognito_id=None,
        action=action,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
        include_stock=include_stock,
        include_shipment=include_shipment,
        include_admin=include_admin,
    )


@router.get("/users/{user_cognito_id}/shipment-history", response_model=ShipmentHistoryResponse)
def user_shipment_history(
    user_cognito_id: str,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
    shipment_id: int | None = Query(None, alias="shipmentId"),
    date_from: datetime | None = Query(None, alias="dateFrom"),
    date_to: datetime | None = Query(None, alias="dateTo"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=settings.HISTORY_MAX_PAGE_SIZE),
):
    filters = ShipmentHistoryFilters(
        shipment_id=shipment_id,
        user_cognito_id=user_cognito_id,
        date_from=date_from,
        date_to=date_to,
    )
    return list_shipment_history(db, context, filters, page=page, limit=limit)


@router.get("/shipments/history", response_model=ShipmentHistoryResponse)
def all_shipment_history(
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
    shipment_id: int | None = Query(None, alias="shipmentId"),
    admin_cognito_id: str | None = Query(None, alias="adminCognitoId"),
    user_cognito_id: str | None = Query(None, alias="userCognitoId"),
    action: str | None = None,
    date_from: datetime | None = Query(None, alias="dateFrom"),
    date_to: datetime | None = Query(None, alias="dateTo"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=settings.HISTORY_MAX_PAGE_SIZE),
    include_admin: bool = Query(False, alias="includeAdmin"),
):
    policy.require(context, policy.SHIPMENT_HISTORY_READ)
    filters = ShipmentHistoryFilters(
        shipment_id=shipment_id,
        admin_cognito_id=admin_cognito_id,
        user_cognito_id=user_cognito_id,
        action=action,
        date_from=date_from,
        date_to=date_to,
    )
    return list_shipment_history(db, context, filters, page=page, limit=limit, include_admin=include_admin)

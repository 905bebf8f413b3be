from fastapi import APIRouter

from app.teatrade.core.config import settings
from app.teatrade.routers.health import router as health_router
from app.teatrade.routers.history import router as history_router
from app.teatrade.routers.metrics import router as metrics_router
from app.teatrade.routers.shipments import router as shipments_router
from app.teatrade.routers.stocks import router as stocks_router
from app.teatrade.routers.users import router as users_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(history_router, tags=["history"])
api_router.include_router(stocks_router, tags=["stocks"])
api_router.include_router(shipments_router, tags=["shipments"])
api_router.include_router(users_router, tags=["users"])
if settings.METRICS_ENABLED:
    api_router.include_router(metrics_router, tags=["ops"])

from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.teatrade.api import api_router
from app.teatrade.core.config import settings
from app.teatrade.core.errors import setup_exception_handlers
from app.teatrade.core.logging import configure_logging
from app.teatrade.db.session import engine
from app.teatrade.middleware.observability import ObservabilityMiddleware
from app.teatrade.middleware.trace import TraceIdMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    engine.dispose()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.add_middleware(TraceIdMiddleware)
    app.add_middleware(ObservabilityMiddleware)
    setup_exception_handlers(app)
    app.include_router(api_router)
    return app


app = create_app()

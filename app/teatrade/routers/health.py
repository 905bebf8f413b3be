from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.teatrade.core.error_catalog import ErrorCatalog
from app.teatrade.core.errors import error_response
from app.teatrade.db.session import get_db

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    return {"status": "ok", "trace_id": getattr(request.state, "trace_id", "")}


@router.get("/ready")
def ready(request: Request, db=Depends(get_db)):
    """Ready once the database answers and the ledger schema has been migrated."""
    trace_id = getattr(request.state, "trace_id", "")
    try:
        revision = db.execute(text("SELECT version_num FROM alembic_version")).scalar()
    except SQLAlchemyError as exc:
        revision = None
        details = {"error": type(exc).__name__}
    else:
        details = {"error": "schema not migrated"}
    if revision is None:
        return error_response(
            code=ErrorCatalog.DB_UNAVAILABLE.code,
            message=ErrorCatalog.DB_UNAVAILABLE.message,
            details=details,
            trace_id=trace_id,
            status_code=ErrorCatalog.DB_UNAVAILABLE.status_code,
        )
    return {"status": "ready", "schema_revision": revision, "trace_id": trace_id}

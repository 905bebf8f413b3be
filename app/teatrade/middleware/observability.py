from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.teatrade.core.db_timing import DbRequestStats, current_db_stats, start_db_timer, stop_db_timer
from app.teatrade.core.logging import log_json
from app.teatrade.core.metrics import metrics

logger = logging.getLogger("teatrade.request")


def _route_template(request: Request) -> str:
    # Templated path keeps metric cardinality bounded (/stocks/{stock_id}).
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def build_request_log_payload(
    *,
    request: Request,
    response: Response | None,
    latency_ms: float,
    db_stats: DbRequestStats | None,
) -> dict:
    state = request.state
    context = getattr(state, "context", None)
    payload = {
        "event": "http_request",
        "trace_id": getattr(state, "trace_id", ""),
        "user_id": getattr(context, "user_id", None),
        "role": getattr(context, "role", None),
        "route": _route_template(request),
        "method": request.method,
        "status_code": response.status_code if response is not None else 500,
        "latency_ms": round(latency_ms, 2),
        "db_time_ms": None,
        "db_statements": None,
        "transaction_retries": None,
        "error_code": getattr(state, "error_code", None),
        "error_class": getattr(state, "error_class", None),
    }
    if db_stats is not None:
        payload["db_time_ms"] = round(db_stats.total_ms, 2)
        payload["db_statements"] = db_stats.statements
        payload["transaction_retries"] = db_stats.transaction_retries
    return payload


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Emits one JSON log line and the HTTP metrics for every request."""

    async def dispatch(self, request: Request, call_next):
        started_at = time.perf_counter()
        token = start_db_timer()
        stats = current_db_stats()
        response: Response | None = None
        try:
            response = await call_next(request)
            return response
        finally:
            latency_ms = (time.perf_counter() - started_at) * 1000
            stop_db_timer(token)
            payload = build_request_log_payload(
                request=request,
                response=response,
                latency_ms=latency_ms,
                db_stats=stats,
            )
            level = logging.WARNING if payload["status_code"] >= 500 else logging.INFO
            log_json(logger, payload, level=level)
            metrics.record_http_request(
                route=payload["route"],
                method=payload["method"],
                status_code=payload["status_code"],
                latency_ms=latency_ms,
            )

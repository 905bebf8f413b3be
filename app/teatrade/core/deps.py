from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from jose import JWTError
from pydantic import ValidationError

from app.teatrade.core.context import RequestContext, build_request_context
from app.teatrade.core.error_catalog import AppError, ErrorCatalog
from app.teatrade.core.security import TokenData, bearer_scheme, decode_token


def get_current_token_data(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> TokenData:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AppError(ErrorCatalog.INVALID_TOKEN)
    try:
        payload = decode_token(credentials.credentials)
        token_data = TokenData(**payload)
    except (JWTError, ValidationError, TypeError) as exc:
        raise AppError(ErrorCatalog.INVALID_TOKEN) from exc
    if token_data.token_use != "id":
        raise AppError(ErrorCatalog.INVALID_TOKEN, details={"message": "ID token required"})
    return token_data


def require_request_context(
    request: Request,
    token_data: TokenData = Depends(get_current_token_data),
) -> RequestContext:
    trace_id = getattr(request.state, "trace_id", "")
    context = build_request_context(
        user_id=token_data.sub,
        role=token_data.role,
        email=token_data.email,
        trace_id=trace_id,
    )
    request.state.context = context
    return context


__all__ = [
    "get_current_token_data",
    "require_request_context",
]

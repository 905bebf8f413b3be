from pydantic import BaseModel


class ApiErrorResponse(BaseModel):
    code: str
    message: str
    details: dict | list | None = None
    trace_id: str | None = None


class ApiValidationErrorItem(BaseModel):
    field: str | None = None
    message: str
    type: str
    loc: list[str | int] | None = None
    input: object | None = None
    ctx: dict | None = None


class ApiValidationErrorDetails(BaseModel):
    errors: list[ApiValidationErrorItem]


class ApiValidationErrorResponse(ApiErrorResponse):
    details: ApiValidationErrorDetails | dict | None = None


LEDGER_ERROR_RESPONSES = {
    400: {"model": ApiErrorResponse, "description": "Business rule rejected"},
    401: {"model": ApiErrorResponse, "description": "Missing or invalid token"},
    403: {"model": ApiErrorResponse, "description": "Not allowed for caller"},
    404: {"model": ApiErrorResponse, "description": "Referenced record not found"},
    409: {"model": ApiErrorResponse, "description": "Conflicting state"},
    422: {"model": ApiValidationErrorResponse, "description": "Invalid request"},
    503: {"model": ApiErrorResponse, "description": "Transient conflict, retry later"},
}

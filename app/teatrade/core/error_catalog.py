from dataclasses import dataclass
from fastapi import status


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    message: str
    status_code: int


class ErrorCatalog:
    INVALID_TOKEN = ErrorDefinition("INVALID_TOKEN", "Invalid token", status.HTTP_401_UNAUTHORIZED)
    PERMISSION_DENIED = ErrorDefinition(
        "PERMISSION_DENIED",
        "Permission denied",
        status.HTTP_403_FORBIDDEN,
    )
    SHIPMENT_OWNER_MISMATCH = ErrorDefinition(
        "SHIPMENT_OWNER_MISMATCH",
        "Shipments can only be managed by their owner",
        status.HTTP_403_FORBIDDEN,
    )
    STATUS_NOT_ALLOWED = ErrorDefinition(
        "STATUS_NOT_ALLOWED",
        "Status change not allowed for this role",
        status.HTTP_403_FORBIDDEN,
    )
    STOCK_NOT_FOUND = ErrorDefinition(
        "STOCK_NOT_FOUND",
        "Stock lot not found",
        status.HTTP_404_NOT_FOUND,
    )
    SHIPMENT_NOT_FOUND = ErrorDefinition(
        "SHIPMENT_NOT_FOUND",
        "Shipment not found",
        status.HTTP_404_NOT_FOUND,
    )
    USER_NOT_FOUND = ErrorDefinition(
        "USER_NOT_FOUND",
        "User not found",
        status.HTTP_404_NOT_FOUND,
    )
    ASSIGNMENT_NOT_FOUND = ErrorDefinition(
        "ASSIGNMENT_NOT_FOUND",
        "Stock assignment not found",
        status.HTTP_404_NOT_FOUND,
    )
    ALREADY_ASSIGNED = ErrorDefinition(
        "ALREADY_ASSIGNED",
        "Stock is already assigned",
        status.HTTP_409_CONFLICT,
    )
    INSUFFICIENT_STOCK = ErrorDefinition(
        "INSUFFICIENT_STOCK",
        "Requested weight exceeds available stock",
        status.HTTP_400_BAD_REQUEST,
    )
    INVALID_ADJUSTMENT = ErrorDefinition(
        "INVALID_ADJUSTMENT",
        "Adjustment would result in negative weight or bags",
        status.HTTP_400_BAD_REQUEST,
    )
    SHIPMENT_CANCELLED = ErrorDefinition(
        "SHIPMENT_CANCELLED",
        "Cancelled shipments cannot be modified",
        status.HTTP_400_BAD_REQUEST,
    )
    INVALID_STATUS_TRANSITION = ErrorDefinition(
        "INVALID_STATUS_TRANSITION",
        "Invalid shipment status transition",
        status.HTTP_400_BAD_REQUEST,
    )
    STOCK_IN_USE = ErrorDefinition(
        "STOCK_IN_USE",
        "Stock lot is referenced by shipments",
        status.HTTP_409_CONFLICT,
    )
    CONFLICT = ErrorDefinition(
        "CONFLICT",
        "Resource already exists",
        status.HTTP_409_CONFLICT,
    )
    TRANSACTION_CONFLICT = ErrorDefinition(
        "TRANSACTION_CONFLICT",
        "Transaction conflict, retry later",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    DB_UNAVAILABLE = ErrorDefinition(
        "DB_UNAVAILABLE",
        "Database unavailable",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    VALIDATION_ERROR = ErrorDefinition(
        "VALIDATION_ERROR",
        "Validation error",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    INTERNAL_ERROR = ErrorDefinition(
        "INTERNAL_ERROR",
        "Internal server error",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


class AppError(Exception):
    def __init__(self, error: ErrorDefinition, details: object | None = None):
        self.error = error
        self.details = details
        super().__init__(error.message)

"""
Clinic Warehouse - Custom Exception Hierarchy

Provides structured, typed exceptions with error codes for consistent
error handling across the application.

Usage:
    from app.exceptions import NotFoundError, ValidationError

    # In a service
    raise NotFoundError("Item", item_id, error_code="ITEM_NOT_FOUND")

    # With custom message
    raise ValidationError("Items list cannot be empty", error_code="EMPTY_ITEMS")
"""
from typing import Any, Dict, Optional


class WarehouseException(Exception):
    """
    Base exception for all warehouse errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code (e.g., "ITEM_NOT_FOUND", "INSUFFICIENT_STOCK")
        status_code: HTTP status code to return
        details: Additional context for debugging
    """

    error_code: str = "WAREHOUSE_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API response."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# ===================
# 400 Bad Request Errors
# ===================


class ValidationError(WarehouseException):
    """Raised when input validation fails before anything is mutated."""

    error_code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        *,
        error_code: Optional[str] = None,
        field: Optional[str] = None,
        value: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, error_code=error_code, details=details)


class InactiveEntityError(WarehouseException):
    """Raised when a referenced item, employee or supplier is deactivated."""

    error_code = "INACTIVE"
    status_code = 400

    def __init__(
        self,
        resource: str,
        identifier: Any,
        *,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["resource"] = resource
        details["resource_id"] = str(identifier)
        super().__init__(
            f"{resource} {identifier} is inactive",
            error_code=error_code or f"{resource.upper()}_INACTIVE",
            details=details,
        )


# ===================
# 404 Not Found Errors
# ===================


class NotFoundError(WarehouseException):
    """Raised when a referenced resource is not found."""

    error_code = "NOT_FOUND"
    status_code = 404

    def __init__(
        self,
        resource: str = "Resource",
        resource_id: Any = None,
        *,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["resource"] = resource
        if resource_id is not None:
            details["resource_id"] = str(resource_id)
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(message, error_code=error_code, details=details)


# ===================
# 409 Conflict Errors
# ===================


class ConflictError(WarehouseException):
    """Raised when stored state contradicts the request."""

    error_code = "CONFLICT"
    status_code = 409

    def __init__(
        self,
        message: str = "Resource conflict",
        *,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code=error_code, details=details)


class ConcurrencyError(ConflictError):
    """Raised when concurrent modification is detected."""

    error_code = "CONCURRENCY_ERROR"

    def __init__(
        self,
        message: str = "Stock was modified by another transaction, please retry",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details=details)


# ===================
# 422 Unprocessable Entity Errors
# ===================


class BusinessRuleError(WarehouseException):
    """Raised when a business rule is violated."""

    error_code = "BUSINESS_RULE_ERROR"
    status_code = 422

    def __init__(
        self,
        message: str = "Business rule violation",
        *,
        error_code: Optional[str] = None,
        rule: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if rule:
            details["rule"] = rule
        super().__init__(message, error_code=error_code, details=details)


class InsufficientStockError(BusinessRuleError):
    """
    Raised when stock cannot cover a request.

    Always itemized so the caller can render an actionable message.
    Also used with error_code ONLY_EXPIRED_STOCK_AVAILABLE.
    """

    error_code = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        item_code: str,
        *,
        requested: int,
        available_non_expired: int,
        available_expired: int,
        shortage: int,
        unit_name: Optional[str] = None,
        message: Optional[str] = None,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        total = available_non_expired + available_expired
        details.update(
            {
                "item_code": item_code,
                "requested": requested,
                "available_non_expired": available_non_expired,
                "available_expired": available_expired,
                "total_available": total,
                "shortage": shortage,
            }
        )
        if unit_name:
            details["unit"] = unit_name
        if message is None:
            message = (
                f"Insufficient stock for {item_code}: requested {requested}, "
                f"available {available_non_expired} non-expired + {available_expired} expired "
                f"(total {total}), short by {shortage}"
            )
        super().__init__(message, error_code=error_code, details=details)


# ===================
# 500 Internal Server Errors
# ===================


class AllocationInvariantError(WarehouseException):
    """
    Raised when the ledger ends up somewhere a passed pre-check says it cannot.

    Internal fault, never a partial success and never a business error.
    """

    error_code = "ALLOCATION_INVARIANT_VIOLATION"
    status_code = 500

    def __init__(
        self,
        message: str = "Stock allocation invariant violated",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details=details)


class DatabaseError(WarehouseException):
    """Raised when a database operation fails."""

    error_code = "DATABASE_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str = "Database operation failed",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details=details)

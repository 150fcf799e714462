"""
Custom exceptions and error handlers for consistent error responses.

Every ledger and invoice error is an AppException carrying a stable
error code and the HTTP status the API layer maps it to.
"""

import logging
from decimal import Decimal
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict, List, Optional

logger = logging.getLogger("fleet_ledger.errors")


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class NotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


# Ledger errors

class UnbalancedEntryError(AppException):
    """Raised when total debits differ from total credits."""

    def __init__(self, debit_total: Decimal, credit_total: Decimal):
        super().__init__(
            message=f"Transaction must balance. Debits: {debit_total}, Credits: {credit_total}",
            error_code="ERR_LEDGER_001",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={
                "debit_total": str(debit_total),
                "credit_total": str(credit_total),
                "difference": str(debit_total - credit_total)
            }
        )


class EmptyTransactionError(AppException):
    """Raised when a transaction has fewer than two entries."""

    def __init__(self, entry_count: int):
        super().__init__(
            message=f"Transaction requires at least two entries, got {entry_count}",
            error_code="ERR_LEDGER_002",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"entry_count": entry_count}
        )


class UnknownAccountError(AppException):
    """Raised when an entry references a missing or inactive account."""

    def __init__(self, account_refs: List[Any], reason: str = "not_found"):
        super().__init__(
            message=f"Unknown or inactive account(s): {', '.join(str(a) for a in account_refs)}",
            error_code="ERR_LEDGER_003",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"accounts": account_refs, "reason": reason}
        )


class DuplicateCodeError(AppException):
    """Raised when an account code is already taken."""

    def __init__(self, code: str):
        super().__init__(
            message=f"Account code '{code}' already exists",
            error_code="ERR_LEDGER_004",
            status_code=status.HTTP_409_CONFLICT,
            details={"code": code}
        )


class AlreadyReversedError(AppException):
    """Raised when reversing a transaction that was already reversed."""

    def __init__(self, transaction_id: int, reversal_id: Optional[int] = None):
        super().__init__(
            message=f"Transaction {transaction_id} has already been reversed",
            error_code="ERR_LEDGER_005",
            status_code=status.HTTP_409_CONFLICT,
            details={"transaction_id": transaction_id, "reversal_id": reversal_id}
        )


class InvalidAmountError(AppException):
    """Raised for non-positive or over-precise monetary amounts."""

    def __init__(self, message: str, amount: Any = None):
        super().__init__(
            message=message,
            error_code="ERR_LEDGER_006",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"amount": str(amount) if amount is not None else None}
        )


class OwnedTransactionError(AppException):
    """Raised when reversing an invoice or payment posting outside the invoice lifecycle."""

    def __init__(self, transaction_id: int, kind: str):
        super().__init__(
            message=(
                f"Transaction {transaction_id} ({kind}) belongs to an invoice; "
                "void the invoice or the payment instead"
            ),
            error_code="ERR_LEDGER_007",
            status_code=status.HTTP_409_CONFLICT,
            details={"transaction_id": transaction_id, "kind": kind}
        )


# Invoice errors

class InvalidStateError(AppException):
    """Raised for an invoice transition not allowed from the current status."""

    def __init__(self, invoice_id: int, current_status: str, action: str):
        super().__init__(
            message=f"Cannot {action} invoice {invoice_id} with status {current_status}",
            error_code="ERR_INVOICE_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"invoice_id": invoice_id, "status": current_status, "action": action}
        )


class OverpaymentError(AppException):
    """Raised when a payment exceeds the outstanding balance."""

    def __init__(self, invoice_id: int, amount: Decimal, outstanding: Decimal):
        super().__init__(
            message=f"Payment of {amount} exceeds outstanding balance {outstanding} on invoice {invoice_id}",
            error_code="ERR_INVOICE_002",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"invoice_id": invoice_id, "amount": str(amount), "outstanding": str(outstanding)}
        )


class EmptyInvoiceError(AppException):
    """Raised when creating an invoice without line items."""

    def __init__(self):
        super().__init__(
            message="Invoice must have at least one line item",
            error_code="ERR_INVOICE_003",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY
        )


class ConcurrencyConflictError(AppException):
    """Raised when a concurrent update invalidated the caller's view of the data."""

    def __init__(self, resource: str, resource_id: Any = None, message: str = None):
        super().__init__(
            message=message or f"{resource} {resource_id} was modified concurrently; re-read and retry",
            error_code="ERR_CONFLICT_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"resource": resource, "id": resource_id}
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    logger.info(
        "Request rejected",
        extra={"error_code": exc.error_code, "path": request.url.path, "error_message": exc.message}
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        404: "ERR_NOT_FOUND",
        409: "ERR_CONFLICT",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": [
                    {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
                    for err in exc.errors()
                ]
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception: %s", type(exc).__name__)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )

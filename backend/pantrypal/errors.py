# Overview: Error taxonomy for the stock ledger, bill lifecycle and credit notes.

"""
Every business outcome the core can reject with is a CoreError subclass.

Each kind carries a stable machine-readable `code` and the HTTP status the
error boundary in pantrypal/__init__.py answers with. `details` is a plain
dict safe to return to the caller.

NOT FOUND SEMANTICS:
A row that does not exist and a row that belongs to another tenant are
reported identically (NotFoundError, same message). Callers must never be
able to tell the two apart.
"""

from __future__ import annotations


class CoreError(Exception):
    """Base class for expected business-rule rejections."""

    code = "error"
    status_code = 400
    retryable = False

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }
        if self.retryable:
            payload["retryable"] = True
        return payload


class ValidationError(CoreError, ValueError):
    """400-level input problem."""

    code = "validation_error"


class ConflictError(CoreError, ValueError):
    """409-level uniqueness conflict (e.g., duplicate bill number)."""

    code = "conflict"
    status_code = 409


class NotFoundError(CoreError):
    code = "not_found"
    status_code = 404


# Stock ledger

class InsufficientStockError(CoreError):
    code = "insufficient_stock"
    status_code = 409


class NegativeStockViolation(CoreError):
    code = "negative_stock_violation"
    status_code = 409


class InvalidAdjustmentError(CoreError):
    code = "invalid_adjustment"


# Bill lifecycle

class BillFinalizedError(CoreError):
    code = "bill_finalized"
    status_code = 409


class EmptyBillError(CoreError):
    code = "empty_bill"


class StockValidationFailedError(CoreError):
    code = "stock_validation_failed"
    status_code = 409


# Credit notes

class BillNotFinalizedError(CoreError):
    code = "bill_not_finalized"
    status_code = 409


class CreditExceedsBillError(CoreError):
    code = "credit_exceeds_bill"
    status_code = 409


# Storage

class TransientStorageError(CoreError):
    """Lock timeout, deadlock, lost connection or version conflict. Safe to retry."""

    code = "transient_storage_error"
    status_code = 503
    retryable = True


class MissingTenantContext(RuntimeError):
    """
    Raised when an operation is invoked without a tenant id.

    This is a wiring bug in the caller, not a business condition. It is not
    a CoreError; the error boundary logs it at ERROR and answers 401.
    """

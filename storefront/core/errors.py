# storefront/core/errors.py
"""
Domain errors for the storefront.

Every error is an HTTPException so services can raise them directly and
FastAPI renders them without extra plumbing. The `detail` payload always
has the shape:

    {"reason": "<machine code>", "message": "<human text>"}

so clients can branch on `reason` instead of parsing messages.

Taxonomy:
  - ValidationFailed (400): bad input, nothing persisted
  - NotFound (404): stale client reference (unknown product / cart item)
  - Conflict (409): duplicate review, stock exhausted, inactive product
  - PayloadTooLarge (413): uploaded image over the size limit
  - TransientStorageError (503): storage unavailable, caller may retry
  - ReconciliationFailed (503): cart merge did not commit, local cart intact
"""
from typing import Any

from fastapi import HTTPException, status


class StorefrontError(HTTPException):
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, reason: str, message: str, **extra: Any):
        self.reason = reason
        self.message = message
        detail: dict[str, Any] = {"reason": reason, "message": message}
        detail.update(extra)
        super().__init__(status_code=self.status_code, detail=detail)


class ValidationFailed(StorefrontError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(StorefrontError):
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(StorefrontError):
    status_code = status.HTTP_409_CONFLICT


class PayloadTooLarge(StorefrontError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE


class TransientStorageError(StorefrontError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: str = "Storage is temporarily unavailable"):
        super().__init__("storage_unavailable", message)


class ReconciliationFailed(StorefrontError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: str = "Cart reconciliation did not complete"):
        super().__init__("reconciliation_incomplete", message)


# ---- Shorthands used by services ----


def product_not_found() -> NotFound:
    return NotFound("product_not_found", "Product not found")


def invalid_quantity() -> ValidationFailed:
    return ValidationFailed("invalid_quantity", "Quantity must be a positive integer")

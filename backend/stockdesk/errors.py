# Overview: Domain error types shared by services and routes.

"""
Domain errors.

Every business-rule failure is a StockDeskError. They are raised before any
state is mutated and are never retried. Routes turn them into JSON using
to_dict() and status_code:

    {"error": "INSUFFICIENT_STOCK", "field": "quantity_box", "message": "..."}
"""

from __future__ import annotations


class StockDeskError(ValueError):
    """Base class for domain errors (400 unless a subclass says otherwise)."""
    code = "STOCKDESK_ERROR"
    status_code = 400

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        return {"error": self.code, "field": self.field, "message": self.message}


class ValidationError(StockDeskError):
    """400-level input problem."""
    code = "VALIDATION_ERROR"


class ConflictError(StockDeskError):
    """409-level business rule conflict (e.g., duplicate category name)."""
    code = "CONFLICT"
    status_code = 409


class NotFound(StockDeskError):
    code = "NOT_FOUND"
    status_code = 404


class InsufficientStock(StockDeskError):
    """Requested more of a unit than is on hand."""
    code = "INSUFFICIENT_STOCK"

    def __init__(self, unit: str, requested: float, available: float):
        field = "quantity_box" if unit == "box" else "quantity_kg"
        super().__init__(
            f"Insufficient stock: requested {requested:g} {unit}, only {available:g} available",
            field=field,
        )
        self.unit = unit
        self.requested = requested
        self.available = available


class InvalidRatio(StockDeskError):
    code = "INVALID_RATIO"

    def __init__(self, message: str = "box_to_kg_ratio must be greater than 0"):
        super().__init__(message, field="box_to_kg_ratio")


class InvalidCorrection(StockDeskError):
    """A stock correction would leave a quantity below zero."""
    code = "INVALID_CORRECTION"

    def __init__(self, field: str, current: float, adjustment: float):
        super().__init__(
            f"Correction of {adjustment:+g} on {field} would leave {current + adjustment:g} (current {current:g})",
            field=field,
        )


class AmountExceedsTotal(StockDeskError):
    code = "AMOUNT_EXCEEDS_TOTAL"

    def __init__(self, amount: float, total: float, field: str = "amount_paid"):
        super().__init__(
            f"Amount paid ({amount:g}) cannot be higher than total amount ({total:g})",
            field=field,
        )


class AmbiguousStatus(StockDeskError):
    code = "AMBIGUOUS_STATUS"

    def __init__(self):
        super().__init__(
            "Amount paid equals the total amount, use 'Paid' status instead of 'Half Paid'",
            field="payment_status",
        )


class MissingClientInfo(StockDeskError):
    code = "MISSING_CLIENT_INFO"

    def __init__(self, field: str, payment_status: str):
        super().__init__(f"{field} is required for '{payment_status}' sales", field=field)


class InvalidState(StockDeskError):
    """Decision attempted on a request that is no longer PENDING."""
    code = "INVALID_STATE"
    status_code = 409


class PermissionDenied(StockDeskError):
    code = "PERMISSION_DENIED"
    status_code = 403

    def __init__(self, permission_key: str):
        super().__init__(f"Permission denied: {permission_key}", field=None)
        self.permission_key = permission_key

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["required_permission"] = self.permission_key
        return data

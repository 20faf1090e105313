# Overview: Domain error taxonomy shared by services and routes.

from __future__ import annotations


class InventoryError(Exception):
    """Base for every expected, caller-visible failure."""

    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(InventoryError):
    """400-level input problem."""


class OverReceiptError(ValidationError):
    """Receiving would push received_quantity above the ordered quantity."""


class NotFoundError(InventoryError):
    http_status = 404


class ConflictError(InventoryError):
    """409-level business rule conflict (e.g., duplicate store name)."""

    http_status = 409


class InsufficientStockError(InventoryError):
    http_status = 409

    def __init__(self, *, product_id: int, store_id: int, available: float, requested: float):
        super().__init__(
            f"Insufficient stock for product {product_id} at store {store_id}. "
            f"Available: {available:g}, requested: {requested:g}",
            details={
                "product_id": product_id,
                "store_id": store_id,
                "available": available,
                "requested": requested,
            },
        )
        self.product_id = product_id
        self.store_id = store_id
        self.available = available
        self.requested = requested


class AppendOnlyViolationError(InventoryError):
    """Raised when code attempts to update or delete a stock movement."""

    http_status = 409


class InternalError(InventoryError):
    """Storage failure surfaced without engine details."""

    http_status = 500

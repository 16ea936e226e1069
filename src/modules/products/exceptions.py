"""Product and stock ledger exceptions.

Raised by the Service Layer / ledger when business rules are violated.
The API layer catches these and translates them into HTTP responses.
"""

from __future__ import annotations

from typing import Any, Dict, List

from shared.domain.exceptions import NotFoundError


class ProductAlreadyExists(Exception):
    """A product with the same SKU already exists."""


class ProductInUse(Exception):
    """The product is referenced by order items and cannot be deleted."""


class ProductBatchRejected(Exception):
    """A bulk import was refused; nothing from the batch was stored.

    ``errors`` holds one ``{"index", "sku", "error"}`` entry per
    offending row.
    """

    def __init__(self, errors: List[Dict[str, Any]]) -> None:
        super().__init__(f"{len(errors)} product row(s) rejected.")
        self.errors = errors


class StockError(Exception):
    """Base class for ledger failures.

    ``applied`` lists the stock lines a batch operation had already
    written before failing; batch operations never undo them, so the
    caller uses this to compensate.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.applied: List[Any] = []


class ProductNotFound(StockError, NotFoundError):
    """The requested product does not exist."""

    def __init__(self, product_id: Any) -> None:
        super().__init__(f"Product {product_id} not found.")
        self.product_id = product_id


class InsufficientStock(StockError):
    """Requested quantity exceeds the product's available stock."""

    def __init__(self, product_id: Any, available: int, requested: int) -> None:
        super().__init__(
            f"Insufficient stock for product {product_id}. "
            f"Available: {available}, Requested: {requested}"
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested

    def as_dict(self) -> dict:
        return {
            "product_id": str(self.product_id),
            "available": self.available,
            "requested": self.requested,
        }

"""Order domain exceptions.

Raised by the Service Layer when business rules are violated.
The API layer (Views) catches these and translates them into
appropriate HTTP responses.
"""

from __future__ import annotations

from shared.domain.exceptions import CompensationFailure, NotFoundError, PersistenceError

__all__ = [
    "CompensationFailure",
    "InvalidOrderStatus",
    "OrderNotFound",
    "PersistenceError",
]


class OrderNotFound(NotFoundError):
    """The requested order does not exist."""


class InvalidOrderStatus(Exception):
    """An invalid status transition was attempted."""

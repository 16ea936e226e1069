"""Order domain constants.

Status choices and valid status transitions for the order state machine:
``pending → processing → completed`` and ``pending|processing → cancelled``.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"


VALID_TRANSITIONS: dict[str, set[str]] = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}

TERMINAL_STATES: set[str] = {OrderStatus.COMPLETED, OrderStatus.CANCELLED}

DEFAULT_CANCEL_REASON = "Cancelled by customer"

SORTABLE_FIELDS = {"order_date", "created_at", "total_amount", "status", "payment_status"}
DEFAULT_LIMIT = 20
MAX_LIMIT = 100

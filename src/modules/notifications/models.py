"""Notification outbox.

Every e-mail the ordering workflow wants sent is first persisted as a
``NotificationOutbox`` row, inside the same transaction as the state
change that produced it.  The Celery task in ``tasks.py`` delivers rows
to the notification endpoint once the transaction commits.

Workflow:
1. ``NotificationDispatcher.enqueue`` creates a ``PENDING`` row.
2. On commit, ``deliver_notification`` POSTs the payload.
3. On success → ``mark_as_published()``.
4. On failure → ``mark_as_failed(error)`` increments ``retry_count``;
   the task retries with backoff until ``NOTIFICATION_MAX_RETRIES``.
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel


class NotificationType(models.TextChoices):
    ORDER_COMPLETION_CUSTOMER = "order_completion_customer", "Order completed (customer)"
    ORDER_COMPLETION_ADMIN = "order_completion_admin", "Order completed (admin)"
    DRIVER_ASSIGNMENT = "driver_assignment", "Driver assignment"
    INVOICE = "invoice", "Invoice"


class EventStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    PUBLISHED = "PUBLISHED", "Published"
    FAILED = "FAILED", "Failed"


class NotificationOutbox(BaseModel):
    event_type = models.CharField(max_length=64, choices=NotificationType.choices)
    payload = models.JSONField()
    aggregate_id = models.CharField(max_length=255)
    recipient = models.EmailField(max_length=254)
    status = models.CharField(
        max_length=20,
        choices=EventStatus.choices,
        default=EventStatus.PENDING,
    )
    processed_at = models.DateTimeField(null=True, blank=True, default=None)
    error_message = models.TextField(null=True, blank=True, default=None)  # noqa: DJ01
    retry_count = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "notification_outbox"
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["aggregate_id"], name="outbox_aggregate_id_idx"),
            models.Index(
                fields=["status", "created_at"],
                name="outbox_status_created_idx",
            ),
        ]

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def mark_as_published(self) -> None:
        self.status = EventStatus.PUBLISHED
        self.processed_at = timezone.now()
        self.error_message = None
        self.save(update_fields=["status", "processed_at", "error_message"])

    def mark_as_failed(self, error: str) -> None:
        self.status = EventStatus.FAILED
        self.error_message = error
        self.retry_count += 1
        self.save(update_fields=["status", "error_message", "retry_count"])

    def __str__(self) -> str:
        return f"{self.event_type} [{self.status}] ({self.aggregate_id})"

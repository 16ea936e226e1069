"""Notification delivery tasks.

``deliver_notification`` POSTs one outbox row to the notification
endpoint.  Delivery is at-least-once: a row is only marked ``PUBLISHED``
after the endpoint answers 2xx, and failures are retried with
exponential backoff until ``NOTIFICATION_MAX_RETRIES``.
"""

from datetime import timedelta

import httpx
import structlog
from celery import shared_task
from django.conf import settings
from django.db.models import Q
from django.utils import timezone

from modules.notifications.models import EventStatus, NotificationOutbox

logger = structlog.get_logger(__name__)

STALE_PENDING_MINUTES = 5


@shared_task(bind=True, name="notifications.deliver", max_retries=None)
def deliver_notification(self, notification_id: str) -> dict:
    event = NotificationOutbox.objects.filter(id=notification_id).first()
    if event is None:
        logger.warning("notification.missing", notification_id=notification_id)
        return {"status": "missing", "notification_id": notification_id}

    if event.status == EventStatus.PUBLISHED:
        return {"status": "skipped", "notification_id": notification_id}

    log = logger.bind(
        notification_id=notification_id,
        type=event.event_type,
        order_id=event.aggregate_id,
    )

    try:
        with httpx.Client(timeout=settings.NOTIFICATION_TIMEOUT) as client:
            resp = client.post(settings.NOTIFICATION_ENDPOINT_URL, json=event.payload)
            resp.raise_for_status()
    except httpx.HTTPError as exc:
        event.mark_as_failed(str(exc))
        log.warning(
            "notification.delivery_failed",
            error=str(exc),
            retry_count=event.retry_count,
        )
        if event.retry_count < settings.NOTIFICATION_MAX_RETRIES:
            raise self.retry(exc=exc, countdown=2**event.retry_count)
        log.error("notification.delivery_abandoned", retry_count=event.retry_count)
        return {"status": "failed", "notification_id": notification_id}

    event.mark_as_published()
    log.info("notification.delivered", status_code=resp.status_code)
    return {"status": "published", "notification_id": notification_id}


@shared_task(name="notifications.retry_failed")
def retry_failed_notifications(stale_after_minutes: int = STALE_PENDING_MINUTES) -> dict:
    """Re-enqueue FAILED rows with retries left and PENDING rows never picked up."""
    stale_before = timezone.now() - timedelta(minutes=stale_after_minutes)
    pending = list(
        NotificationOutbox.objects.filter(
            Q(status=EventStatus.FAILED, retry_count__lt=settings.NOTIFICATION_MAX_RETRIES)
            | Q(status=EventStatus.PENDING, created_at__lt=stale_before)
        ).values_list("id", flat=True)
    )
    for notification_id in pending:
        deliver_notification.delay(str(notification_id))

    logger.info("notification.retry_scheduled", count=len(pending))
    return {"scheduled": len(pending)}

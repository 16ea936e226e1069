"""Notification dispatcher.

Hands payloads to the outbox; delivery happens in a Celery worker after
the surrounding transaction commits.  Dispatching is best-effort: a
payload that cannot be enqueued is logged and counted, never raised to
the caller, and never affects the other payloads of the same batch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Union

import structlog
from django.db import transaction

from modules.notifications.dtos import NotificationPayload
from modules.notifications.models import NotificationOutbox

logger = structlog.get_logger(__name__)


@dataclass
class DispatchResult:
    sent: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed == 0


class NotificationDispatcher:
    def enqueue(self, payload: NotificationPayload) -> NotificationOutbox:
        """Persist *payload* and schedule its delivery on commit.

        Runs in a savepoint so a failed insert leaves the caller's
        transaction usable.
        """
        with transaction.atomic():
            event = NotificationOutbox.objects.create(
                event_type=payload.type,
                aggregate_id=payload.order_id,
                recipient=payload.to,
                payload=payload.to_wire(),
            )

        event_id = str(event.id)
        transaction.on_commit(lambda: _schedule_delivery(event_id), robust=True)
        logger.info(
            "notification.enqueued",
            notification_id=event_id,
            type=payload.type,
            order_id=payload.order_id,
        )
        return event

    def dispatch_many(
        self, payloads: Iterable[Union[NotificationPayload, Mapping[str, Any]]]
    ) -> DispatchResult:
        """Build and enqueue every payload independently.

        Items may be ready payloads or the raw fields of one.  Raw fields
        are validated per item, so a recipient address that fails
        validation is counted as one failure and the rest of the batch
        still goes out.
        """
        result = DispatchResult()
        for item in payloads:
            try:
                payload = (
                    item
                    if isinstance(item, NotificationPayload)
                    else NotificationPayload(**item)
                )
                self.enqueue(payload)
            except Exception as exc:
                result.failed += 1
                result.errors.append(str(exc))
                logger.exception("notification.dispatch_failed", **_describe(item))
            else:
                result.sent += 1

        if result.failed:
            logger.warning(
                "notification.batch_partially_failed",
                sent=result.sent,
                failed=result.failed,
            )
        return result


def _describe(item: Union[NotificationPayload, Mapping[str, Any]]) -> Dict[str, Any]:
    if isinstance(item, NotificationPayload):
        return {"type": item.type, "order_id": item.order_id, "recipient": item.to}
    return {
        "type": str(item.get("type", "")),
        "order_id": item.get("order_id"),
        "recipient": item.get("to"),
    }


def _schedule_delivery(event_id: str) -> None:
    from modules.notifications.tasks import deliver_notification

    deliver_notification.delay(event_id)

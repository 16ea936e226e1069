import uuid
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

import httpx
import pytest
from django.utils import timezone
from pydantic import ValidationError

from modules.appsettings.dtos import BrandingDTO
from modules.notifications.dispatcher import NotificationDispatcher
from modules.notifications.dtos import NotificationPayload
from modules.notifications.models import EventStatus, NotificationOutbox, NotificationType
from modules.notifications.tasks import deliver_notification, retry_failed_notifications

pytestmark = pytest.mark.unit


def _payload(**overrides):
    data = {
        "type": NotificationType.DRIVER_ASSIGNMENT,
        "order_id": str(uuid.uuid4()),
        "to": "dan@drivers.com",
        "order_data": {"id": "o-1", "total_amount": "4.00"},
        "driver_data": {"name": "Dan Driver"},
    }
    data.update(overrides)
    return NotificationPayload(**data)


def _outbox_row(**overrides):
    data = {
        "event_type": NotificationType.INVOICE,
        "payload": {"type": "invoice"},
        "aggregate_id": str(uuid.uuid4()),
        "recipient": "buyer@grocer.com",
    }
    data.update(overrides)
    return NotificationOutbox.objects.create(**data)


def _mock_client(mock_client_cls, response=None, error=None):
    client = mock_client_cls.return_value.__enter__.return_value
    if error is not None:
        client.post.side_effect = error
    else:
        client.post.return_value = response
    return client


def _response(status_code):
    return httpx.Response(
        status_code, request=httpx.Request("POST", "http://notifications.test")
    )


# =============================================================================
# Payload wire format
# =============================================================================


class TestNotificationPayload:
    def test_wire_keys_are_camel_case(self):
        wire = _payload().to_wire()

        assert wire["type"] == "driver_assignment"
        assert set(wire) == {
            "type",
            "orderId",
            "to",
            "orderData",
            "driverData",
            "appSettings",
        }
        assert wire["appSettings"]["companyName"] == "B2B Vegetable"

    def test_vat_only_present_when_set(self):
        without_vat = _payload().to_wire()["appSettings"]
        with_vat = _payload(
            app_settings=BrandingDTO(vat_percentage=Decimal("7.50"))
        ).to_wire()["appSettings"]

        assert "vatPercentage" not in without_vat
        assert with_vat["vatPercentage"] == "7.50"

    def test_recipient_must_be_an_email(self):
        with pytest.raises(ValidationError):
            _payload(to="not-an-email")


# =============================================================================
# Dispatcher
# =============================================================================


class TestDispatcher:
    def test_enqueue_persists_pending_row(self):
        payload = _payload()

        event = NotificationDispatcher().enqueue(payload)

        event.refresh_from_db()
        assert event.status == EventStatus.PENDING
        assert event.aggregate_id == payload.order_id
        assert event.payload["orderId"] == payload.order_id

    def test_delivery_is_scheduled_on_commit(self, django_capture_on_commit_callbacks):
        with patch(
            "modules.notifications.tasks.deliver_notification.delay"
        ) as delay, django_capture_on_commit_callbacks(execute=True):
            event = NotificationDispatcher().enqueue(_payload())

        delay.assert_called_once_with(str(event.id))

    def test_dispatch_many_settles_every_payload(self, caplog):
        dispatcher = NotificationDispatcher()
        good, bad, other = _payload(), _payload(), _payload()
        original = dispatcher.enqueue

        def flaky(payload):
            if payload is bad:
                raise RuntimeError("insert failed")
            return original(payload)

        dispatcher.enqueue = flaky

        result = dispatcher.dispatch_many([good, bad, other])

        assert (result.sent, result.failed) == (2, 1)
        assert result.errors == ["insert failed"]
        assert not result.ok
        assert NotificationOutbox.objects.count() == 2
        assert any(
            "notification.dispatch_failed" in record.getMessage()
            for record in caplog.records
        )

    def test_dispatch_many_validates_raw_fields_per_item(self, caplog):
        fields = {
            "type": NotificationType.ORDER_COMPLETION_ADMIN,
            "order_id": str(uuid.uuid4()),
            "order_data": {"id": "o-2"},
        }

        result = NotificationDispatcher().dispatch_many(
            [
                {**fields, "to": "kitchen@bistro.local"},
                {**fields, "to": "admin@shop.com"},
                _payload(),
            ]
        )

        assert (result.sent, result.failed) == (2, 1)
        assert set(NotificationOutbox.objects.values_list("recipient", flat=True)) == {
            "admin@shop.com",
            "dan@drivers.com",
        }
        assert any(
            "kitchen@bistro.local" in record.getMessage() for record in caplog.records
        )

    def test_dispatch_many_empty(self):
        result = NotificationDispatcher().dispatch_many([])
        assert result.ok
        assert result.sent == 0


# =============================================================================
# Delivery task
# =============================================================================


class TestDeliverNotification:
    @patch("modules.notifications.tasks.httpx.Client")
    def test_success_marks_published(self, mock_client_cls, settings):
        row = _outbox_row()
        client = _mock_client(mock_client_cls, response=_response(200))

        result = deliver_notification(str(row.id))

        assert result["status"] == "published"
        client.post.assert_called_once_with(
            settings.NOTIFICATION_ENDPOINT_URL, json={"type": "invoice"}
        )
        row.refresh_from_db()
        assert row.status == EventStatus.PUBLISHED
        assert row.processed_at is not None

    @patch("modules.notifications.tasks.httpx.Client")
    def test_already_published_is_skipped(self, mock_client_cls):
        row = _outbox_row(status=EventStatus.PUBLISHED)

        assert deliver_notification(str(row.id))["status"] == "skipped"
        mock_client_cls.assert_not_called()

    def test_missing_row(self):
        assert deliver_notification(str(uuid.uuid4()))["status"] == "missing"

    @patch("modules.notifications.tasks.httpx.Client")
    def test_failure_with_retries_left_is_retried(self, mock_client_cls):
        row = _outbox_row()
        _mock_client(mock_client_cls, response=_response(502))

        # Called directly, ``self.retry`` re-raises the original error.
        with pytest.raises(httpx.HTTPStatusError):
            deliver_notification(str(row.id))

        row.refresh_from_db()
        assert row.status == EventStatus.FAILED
        assert row.retry_count == 1
        assert "502" in row.error_message

    @patch("modules.notifications.tasks.httpx.Client")
    def test_failure_after_max_retries_is_abandoned(self, mock_client_cls, settings):
        row = _outbox_row(retry_count=settings.NOTIFICATION_MAX_RETRIES - 1)
        _mock_client(mock_client_cls, error=httpx.ConnectError("refused"))

        result = deliver_notification(str(row.id))

        assert result["status"] == "failed"
        row.refresh_from_db()
        assert row.status == EventStatus.FAILED
        assert row.retry_count == settings.NOTIFICATION_MAX_RETRIES


class TestRetryFailedNotifications:
    def test_schedules_failed_and_stale_pending_rows(self, settings):
        failed = _outbox_row(status=EventStatus.FAILED, retry_count=1)
        _outbox_row(
            status=EventStatus.FAILED, retry_count=settings.NOTIFICATION_MAX_RETRIES
        )
        stale = _outbox_row()
        NotificationOutbox.objects.filter(id=stale.id).update(
            created_at=timezone.now() - timedelta(minutes=30)
        )
        _outbox_row()
        _outbox_row(status=EventStatus.PUBLISHED)

        with patch("modules.notifications.tasks.deliver_notification.delay") as delay:
            result = retry_failed_notifications()

        assert result == {"scheduled": 2}
        scheduled = {call.args[0] for call in delay.call_args_list}
        assert scheduled == {str(failed.id), str(stale.id)}


class TestOutboxModel:
    def test_mark_as_failed_then_published(self):
        row = _outbox_row()

        row.mark_as_failed("timeout")
        row.mark_as_published()

        row.refresh_from_db()
        assert row.status == EventStatus.PUBLISHED
        assert row.retry_count == 1
        assert row.error_message is None

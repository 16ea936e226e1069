from datetime import timedelta
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest
from django.utils import timezone
from pydantic import ValidationError

from modules.orders.constants import OrderStatus
from modules.orders.dtos import DashboardQueryParams
from modules.orders.models import Order

pytestmark = pytest.mark.unit


def _backdate(order, **delta):
    Order.objects.filter(id=order.id).update(
        order_date=timezone.now() - timedelta(**delta)
    )


def _complete(service, order):
    service.update_order_status(str(order.id), OrderStatus.PROCESSING)
    return service.update_order_status(str(order.id), OrderStatus.COMPLETED)


class TestOrderCountsByStatus:
    def test_every_status_is_reported(self, order_service, make_order, tomato):
        make_order(lines=[(tomato, 1)])
        moving = make_order(lines=[(tomato, 1)])
        dropped = make_order(lines=[(tomato, 1)])
        order_service.update_order_status(str(moving.id), OrderStatus.PROCESSING)
        order_service.cancel_order(str(dropped.id))

        counts = order_service.get_order_counts_by_status()

        assert [(c.status, c.count) for c in counts] == [
            (OrderStatus.PENDING, 1),
            (OrderStatus.PROCESSING, 1),
            (OrderStatus.COMPLETED, 0),
            (OrderStatus.CANCELLED, 1),
        ]

    def test_empty_store(self, order_service):
        assert {c.count for c in order_service.get_order_counts_by_status()} == {0}


class TestOrdersHistory:
    def test_fills_missing_days(self, order_service, make_order, tomato):
        make_order(lines=[(tomato, 2)])
        older = make_order(lines=[(tomato, 1)])
        _backdate(older, days=2)
        outside = make_order(lines=[(tomato, 1)])
        _backdate(outside, days=10)

        history = order_service.get_orders_history(days=3)

        today = timezone.localdate()
        assert [h.day for h in history] == [
            today - timedelta(days=2),
            today - timedelta(days=1),
            today,
        ]
        assert [(h.count, h.total) for h in history] == [
            (1, Decimal("2.00")),
            (0, Decimal("0.00")),
            (1, Decimal("4.00")),
        ]


class TestTopSellingProducts:
    def test_ranks_by_quantity_and_skips_cancelled_orders(
        self, order_service, make_order, tomato, carrot
    ):
        make_order(lines=[(tomato, 3)])
        make_order(lines=[(tomato, 2), (carrot, 1)])
        dropped = make_order(lines=[(carrot, 4)])
        order_service.cancel_order(str(dropped.id))

        top = order_service.get_top_selling_products()

        assert [(p.product_name, p.total_quantity) for p in top] == [
            ("Tomato", 5),
            ("Carrot", 1),
        ]
        assert top[0].product_id == tomato.id

    def test_limit(self, order_service, make_order, tomato, carrot):
        make_order(lines=[(tomato, 2), (carrot, 1)])

        assert len(order_service.get_top_selling_products(limit=1)) == 1


class TestDashboardSummary:
    def test_counts_completed_orders_only(
        self, order_service, make_order, customer, other_customer, admin_user, tomato, carrot
    ):
        done = make_order(user=customer, lines=[(tomato, 2), (carrot, 1)])
        _complete(order_service, done)
        make_order(user=other_customer, lines=[(tomato, 1)])

        summary = order_service.get_dashboard_summary()

        assert summary.total_orders == 1
        assert summary.total_revenue == Decimal("5.50")
        assert summary.total_customers == 2
        assert summary.total_products == 2

    def test_empty_store(self, order_service):
        summary = order_service.get_dashboard_summary()

        assert summary.total_orders == 0
        assert summary.total_revenue == Decimal("0.00")


class TestTodaysOrders:
    def test_buckets_by_local_hour(self, order_service, make_order, tomato):
        tz = ZoneInfo("Asia/Ho_Chi_Minh")
        order = make_order(lines=[(tomato, 2)])
        yesterday = make_order(lines=[(tomato, 1)])
        _backdate(yesterday, days=1)

        buckets = order_service.get_todays_orders(tz)

        assert [b.hour for b in buckets] == list(range(24))
        assert sum(b.count for b in buckets) == 1
        hour = timezone.localtime(Order.objects.get(id=order.id).order_date, tz).hour
        assert buckets[hour].count == 1
        assert buckets[hour].revenue == Decimal("4.00")


class TestDashboardQueryParams:
    def test_defaults(self):
        params = DashboardQueryParams()

        assert (params.days, params.limit, params.timezone) == (30, 5, "UTC")
        assert params.tzinfo == ZoneInfo("UTC")

    @pytest.mark.parametrize(
        "raw",
        [{"days": 0}, {"days": 400}, {"limit": 0}, {"timezone": "Mars/Olympus"}],
    )
    def test_rejects_out_of_range(self, raw):
        with pytest.raises(ValidationError):
            DashboardQueryParams(**raw)

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone
from pydantic import ValidationError

from modules.orders.constants import OrderStatus, PaymentStatus
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO, OrderQueryParams
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository

pytestmark = pytest.mark.unit


def _item(product_id=None, quantity=1, unit_price="1.00"):
    return CreateOrderItemDTO(
        product_id=product_id or uuid.uuid4(),
        quantity=quantity,
        unit_price=Decimal(unit_price),
    )


# =============================================================================
# Input DTOs
# =============================================================================


class TestCreateOrderDTO:
    def test_total_amount(self):
        dto = CreateOrderDTO(
            items=[_item(quantity=3, unit_price="1.25"), _item(quantity=2, unit_price="0.10")]
        )
        assert dto.total_amount == Decimal("3.95")

    def test_requires_items(self):
        with pytest.raises(ValidationError):
            CreateOrderDTO(items=[])

    def test_rejects_duplicate_products(self):
        product_id = uuid.uuid4()
        with pytest.raises(ValidationError):
            CreateOrderDTO(items=[_item(product_id), _item(product_id)])

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_rejects_non_positive_quantity(self, quantity):
        with pytest.raises(ValidationError):
            _item(quantity=quantity)

    def test_rejects_negative_price(self):
        with pytest.raises(ValidationError):
            _item(unit_price="-0.01")

    def test_as_guest_clears_user(self):
        dto = CreateOrderDTO(user_id=uuid.uuid4(), items=[_item()])
        assert dto.as_guest().user_id is None


class TestOrderQueryParams:
    def test_defaults(self):
        params = OrderQueryParams()
        assert params.ordering == "-order_date"
        assert (params.limit, params.offset) == (20, 0)

    def test_ascending(self):
        assert OrderQueryParams(sort_by="total_amount", sort_direction="asc").ordering == (
            "total_amount"
        )

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"sort_by": "user__email"},
            {"sort_direction": "sideways"},
            {"limit": 0},
            {"limit": 101},
            {"offset": -1},
            {"status": "shipped"},
        ],
    )
    def test_rejects_invalid_values(self, kwargs):
        with pytest.raises(ValidationError):
            OrderQueryParams(**kwargs)

    def test_filter_data_is_json_safe(self):
        user_id = uuid.uuid4()
        params = OrderQueryParams(user_id=user_id, status="pending")
        assert params.filter_data() == {"user_id": str(user_id), "status": "pending"}


# =============================================================================
# Repository listing
# =============================================================================


class TestOrderListing:
    @pytest.fixture
    def repo(self):
        return OrderDjangoRepository()

    @pytest.fixture
    def orders(self, make_order, order_service, customer, other_customer, make_product):
        small = make_order(user=customer, lines=[(make_product(price="1.00"), 1)])
        large = make_order(
            user=other_customer,
            lines=[(make_product(price="5.00"), 4)],
            address="99 Harbour Road",
        )
        guest = make_order(lines=[(make_product(price="2.00"), 1)])
        order_service.update_order_status(str(large.id), OrderStatus.PROCESSING)
        order_service.update_payment_status(str(guest.id), PaymentStatus.PAID)
        Order.objects.filter(id=small.id).update(
            order_date=timezone.now() - timedelta(days=10)
        )
        return {"small": small, "large": large, "guest": guest}

    def _ids(self, repo, **kwargs):
        orders, count = repo.list(OrderQueryParams(**kwargs))
        return [o.id for o in orders], count

    def test_default_sort_is_newest_first(self, repo, orders):
        ids, count = self._ids(repo)
        assert count == 3
        assert ids[-1] == orders["small"].id

    def test_filter_by_status_and_payment(self, repo, orders):
        assert self._ids(repo, status="processing")[0] == [orders["large"].id]
        assert self._ids(repo, payment_status="paid")[0] == [orders["guest"].id]

    def test_filter_by_user(self, repo, orders, customer):
        assert self._ids(repo, user_id=customer.id)[0] == [orders["small"].id]

    def test_date_range(self, repo, orders):
        today = timezone.localdate()
        ids, count = self._ids(repo, from_date=today)
        assert count == 2
        assert orders["small"].id not in ids
        assert self._ids(repo, to_date=today - timedelta(days=5))[0] == [
            orders["small"].id
        ]

    @pytest.mark.parametrize("term", ["harbour", "Bistro", "kitchen@bistro"])
    def test_search(self, repo, orders, term):
        assert self._ids(repo, search=term)[0] == [orders["large"].id]

    def test_sort_by_total_ascending(self, repo, orders):
        ids, _ = self._ids(repo, sort_by="total_amount", sort_direction="asc")
        assert ids == [orders["small"].id, orders["guest"].id, orders["large"].id]

    def test_pagination_keeps_total_count(self, repo, orders):
        ids, count = self._ids(
            repo, sort_by="total_amount", sort_direction="asc", limit=1, offset=1
        )
        assert ids == [orders["guest"].id]
        assert count == 3

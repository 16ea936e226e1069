"""Compensation paths of the order aggregate builder.

Uses mocked repositories so each failing step can be forced.
"""

import uuid
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from modules.orders.builder import OrderAggregateBuilder
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO
from modules.products.exceptions import InsufficientStock, ProductNotFound
from modules.products.ledger import StockItem
from shared.domain.exceptions import PersistenceError

pytestmark = pytest.mark.unit


P1, P2 = uuid.uuid4(), uuid.uuid4()


@pytest.fixture
def dto():
    return CreateOrderDTO(
        delivery_address="1 Market Street",
        items=[
            CreateOrderItemDTO(product_id=P1, quantity=2, unit_price=Decimal("1.00")),
            CreateOrderItemDTO(product_id=P2, quantity=3, unit_price=Decimal("2.00")),
        ],
    )


@pytest.fixture
def ledger():
    return MagicMock()


@pytest.fixture
def order_repo():
    repo = MagicMock()
    header = MagicMock(id=uuid.uuid4())
    repo.create_header.return_value = header
    repo.get_by_id.return_value = header
    return repo


def _all_items():
    return [StockItem(P1, 2), StockItem(P2, 3)]


class TestHappyPath:
    def test_steps_run_in_order(self, dto, ledger, order_repo):
        order = OrderAggregateBuilder(order_repo, ledger).build(dto)

        ledger.batch_decrease_stock.assert_called_once_with(_all_items())
        order_repo.create_header.assert_called_once_with(dto)
        order_repo.add_items.assert_called_once_with(
            order_repo.create_header.return_value, dto.items
        )
        ledger.batch_increase_stock.assert_not_called()
        assert order is order_repo.get_by_id.return_value


class TestReservationFailure:
    def test_compensates_applied_prefix_only(self, dto, ledger, order_repo):
        error = InsufficientStock(P2, available=1, requested=3)
        error.applied = [StockItem(P1, 2)]
        ledger.batch_decrease_stock.side_effect = error

        with pytest.raises(InsufficientStock):
            OrderAggregateBuilder(order_repo, ledger).build(dto)

        ledger.batch_increase_stock.assert_called_once_with([StockItem(P1, 2)])
        order_repo.create_header.assert_not_called()

    def test_nothing_applied_means_no_compensation(self, dto, ledger, order_repo):
        ledger.batch_decrease_stock.side_effect = ProductNotFound(P1)

        with pytest.raises(ProductNotFound):
            OrderAggregateBuilder(order_repo, ledger).build(dto)

        ledger.batch_increase_stock.assert_not_called()


class TestPersistenceFailure:
    def test_header_failure_restores_all_stock(self, dto, ledger, order_repo):
        order_repo.create_header.side_effect = PersistenceError("db down")

        with pytest.raises(PersistenceError):
            OrderAggregateBuilder(order_repo, ledger).build(dto)

        ledger.batch_increase_stock.assert_called_once_with(_all_items())
        order_repo.add_items.assert_not_called()

    def test_items_failure_restores_stock_and_drops_header(
        self, dto, ledger, order_repo
    ):
        order_repo.add_items.side_effect = PersistenceError("constraint")
        header = order_repo.create_header.return_value

        with pytest.raises(PersistenceError):
            OrderAggregateBuilder(order_repo, ledger).build(dto)

        ledger.batch_increase_stock.assert_called_once_with(_all_items())
        order_repo.delete.assert_called_once_with(str(header.id))

    def test_compensation_failure_does_not_mask_original_error(
        self, dto, ledger, order_repo
    ):
        order_repo.create_header.side_effect = PersistenceError("db down")
        ledger.batch_increase_stock.side_effect = ProductNotFound(P2)

        with pytest.raises(PersistenceError, match="db down"):
            OrderAggregateBuilder(order_repo, ledger).build(dto)

    def test_header_delete_failure_does_not_mask_original_error(
        self, dto, ledger, order_repo
    ):
        order_repo.add_items.side_effect = PersistenceError("constraint")
        order_repo.delete.side_effect = PersistenceError("gone away")

        with pytest.raises(PersistenceError, match="constraint"):
            OrderAggregateBuilder(order_repo, ledger).build(dto)

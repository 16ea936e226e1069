"""Order repository interface.

Extends ``IRepository[Order]`` with the steps the aggregate builder runs
one by one (header insert, item insert, header delete) and the reads
behind the listing endpoints.

The Service Layer depends exclusively on this contract.
"""

from __future__ import annotations

from abc import abstractmethod
from datetime import date, datetime, tzinfo
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO, OrderQueryParams
    from modules.orders.models import Order, OrderItem


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    Write failures surface as ``PersistenceError``.
    """

    @abstractmethod
    def create_header(self, dto: CreateOrderDTO) -> Order:
        """Insert the order row (pending / pending, total from the DTO)."""

    @abstractmethod
    def add_items(self, order: Order, items: Sequence[CreateOrderItemDTO]) -> List[OrderItem]:
        """Insert the order's line items."""

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with its customer, driver and items."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order holding a row lock for a status change."""

    @abstractmethod
    def update(self, order: Order, fields: Dict[str, Any]) -> Order:
        """Write *fields* to the order row."""

    @abstractmethod
    def list(self, params: OrderQueryParams) -> Tuple[List[Order], int]:
        """Return one page of orders and the total match count."""

    # Dashboard aggregates

    @abstractmethod
    def count_by_status(self) -> Dict[str, int]:
        """Order count per status; statuses without orders are absent."""

    @abstractmethod
    def daily_totals(self, since: date) -> List[Dict[str, Any]]:
        """``{day, count, total}`` per local calendar day from *since* on."""

    @abstractmethod
    def hourly_totals(
        self, start: datetime, end: datetime, tz: tzinfo
    ) -> List[Dict[str, Any]]:
        """``{hour, count, total}`` for orders in ``[start, end)``, hours in *tz*."""

    @abstractmethod
    def top_selling_products(self, limit: int) -> List[Dict[str, Any]]:
        """``{product_id, product_name, total_quantity}`` by quantity sold."""

    @abstractmethod
    def completed_totals(self) -> Tuple[int, Decimal]:
        """Number and revenue of completed orders."""

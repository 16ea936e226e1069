"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.  Database
errors are wrapped in ``PersistenceError`` so the service never depends
on driver exception types.

Status changes read the row with ``select_for_update()`` to serialise
concurrent transitions on the same order.
"""

from __future__ import annotations

from datetime import date, datetime, tzinfo
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

import structlog
from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.db.models import Count, Sum
from django.db.models.functions import ExtractHour, TruncDate

from modules.orders.constants import OrderStatus
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO, OrderQueryParams
from modules.orders.filters import OrderFilter
from modules.orders.models import Order, OrderItem
from modules.orders.repositories.interfaces import IOrderRepository
from shared.domain.exceptions import PersistenceError

logger = structlog.get_logger(__name__)


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Create (header and children are separate steps)
    # ------------------------------------------------------------------

    def create_header(self, dto: CreateOrderDTO) -> Order:
        order = Order(
            user_id=dto.user_id,
            delivery_address=dto.delivery_address,
            total_amount=dto.total_amount,
            notes=dto.notes,
        )
        try:
            with transaction.atomic():
                order.save()
        except DatabaseError as exc:
            raise PersistenceError(f"Failed to create order: {exc}") from exc

        logger.info("order.header_created", order_id=str(order.id))
        return order

    def add_items(
        self, order: Order, items: Sequence[CreateOrderItemDTO]
    ) -> List[OrderItem]:
        rows = [
            OrderItem(
                order=order,
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
            )
            for item in items
        ]
        try:
            with transaction.atomic():
                created = OrderItem.objects.bulk_create(rows)
        except DatabaseError as exc:
            raise PersistenceError(
                f"Failed to create items for order {order.id}: {exc}"
            ) from exc

        logger.info("order.items_created", order_id=str(order.id), item_count=len(created))
        return created

    # ------------------------------------------------------------------
    # Update / Delete
    # ------------------------------------------------------------------

    def update(self, order: Order, fields: Dict[str, Any]) -> Order:
        for field, value in fields.items():
            setattr(order, field, value)
        try:
            with transaction.atomic():
                order.save(update_fields=list(fields))
        except DatabaseError as exc:
            raise PersistenceError(f"Failed to update order {order.id}: {exc}") from exc

        logger.info("order.updated", order_id=str(order.id), fields=sorted(fields))
        return order

    def delete(self, id: str) -> bool:
        """Hard-delete an order; its items go with it (CASCADE)."""
        try:
            with transaction.atomic():
                deleted, _ = Order.objects.filter(id=id).delete()
        except (ValueError, ValidationError):
            return False
        except DatabaseError as exc:
            raise PersistenceError(f"Failed to delete order {id}: {exc}") from exc

        if deleted:
            logger.info("order.deleted", order_id=str(id))
        return bool(deleted)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    @staticmethod
    def _base_queryset():
        return Order.objects.select_related("user", "assigned_driver").prefetch_related(
            "items__product"
        )

    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with eager-loaded relations.

        Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return self._base_queryset().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock (SELECT FOR UPDATE).

        Must be called inside ``transaction.atomic()``.
        """
        try:
            locked = Order.objects.select_for_update().filter(id=id).first()
        except (ValueError, ValidationError):
            return None
        if locked is None:
            return None
        return self._base_queryset().filter(id=locked.id).first()

    def list(self, params: OrderQueryParams) -> Tuple[List[Order], int]:
        filterset = OrderFilter(data=params.filter_data(), queryset=self._base_queryset())
        queryset = filterset.qs.order_by(params.ordering, "-id")
        count = queryset.count()
        page = list(queryset[params.offset : params.offset + params.limit])
        return page, count

    # ------------------------------------------------------------------
    # Dashboard aggregates
    # ------------------------------------------------------------------

    def count_by_status(self) -> Dict[str, int]:
        rows = Order.objects.values("status").annotate(count=Count("id")).order_by()
        return {row["status"]: row["count"] for row in rows}

    def daily_totals(self, since: date) -> List[Dict[str, Any]]:
        return list(
            Order.objects.annotate(day=TruncDate("order_date"))
            .filter(day__gte=since)
            .values("day")
            .annotate(count=Count("id"), total=Sum("total_amount"))
            .order_by("day")
        )

    def hourly_totals(
        self, start: datetime, end: datetime, tz: tzinfo
    ) -> List[Dict[str, Any]]:
        return list(
            Order.objects.filter(order_date__gte=start, order_date__lt=end)
            .annotate(hour=ExtractHour("order_date", tzinfo=tz))
            .values("hour")
            .annotate(count=Count("id"), total=Sum("total_amount"))
            .order_by("hour")
        )

    def top_selling_products(self, limit: int) -> List[Dict[str, Any]]:
        rows = (
            OrderItem.objects.exclude(order__status=OrderStatus.CANCELLED)
            .values("product_id", "product__name")
            .annotate(total_quantity=Sum("quantity"))
            .order_by("-total_quantity", "product__name")[:limit]
        )
        return [
            {
                "product_id": row["product_id"],
                "product_name": row["product__name"],
                "total_quantity": row["total_quantity"],
            }
            for row in rows
        ]

    def completed_totals(self) -> Tuple[int, Decimal]:
        totals = Order.objects.filter(status=OrderStatus.COMPLETED).aggregate(
            count=Count("id"), revenue=Sum("total_amount")
        )
        return totals["count"], totals["revenue"] or Decimal("0.00")

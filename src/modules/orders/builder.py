"""Order aggregate builder.

Creates an order in four ordered steps and compensates when a later step
fails, so a stock deduction never outlives a failed order:

1. reserve stock for every line (``batch_decrease_stock``);
2. insert the header;
3. insert the line items;
4. return the order with its items.

Failure handling per step:

* reservation fails → give back whatever part of the batch was applied,
  re-raise the ledger error;
* header fails → give back the whole reservation, raise ``PersistenceError``;
* items fail → give back the reservation, delete the header, raise
  ``PersistenceError``.

Compensation errors are logged as ``CompensationFailure`` and never
replace the error that triggered them.  ``OrderService`` additionally
runs the builder inside ``transaction.atomic()``, so on a transactional
store the database rollback backs the compensation up.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List

import structlog

from modules.products.exceptions import StockError
from modules.products.ledger import StockItem, StockLedger
from shared.domain.exceptions import CompensationFailure, PersistenceError

if TYPE_CHECKING:
    from modules.orders.dtos import CreateOrderDTO
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)


class OrderAggregateBuilder:
    def __init__(self, order_repository: IOrderRepository, ledger: StockLedger) -> None:
        self._order_repo = order_repository
        self._ledger = ledger

    def build(self, dto: CreateOrderDTO) -> Order:
        log = logger.bind(
            user_id=str(dto.user_id) if dto.user_id else None,
            item_count=len(dto.items),
        )
        stock_items = StockItem.from_order_items(dto.items)

        # 1. Reserve stock
        try:
            self._ledger.batch_decrease_stock(stock_items)
        except StockError as exc:
            log.warning("order.stock_reservation_failed", error=str(exc))
            if exc.applied:
                self._compensate(exc.applied, reason="reservation_failed")
            raise
        log.info("order.stock_reserved", total_amount=str(dto.total_amount))

        # 2. Header
        try:
            order = self._order_repo.create_header(dto)
        except PersistenceError as exc:
            log.error("order.header_insert_failed", error=str(exc))
            self._compensate(stock_items, reason="header_insert_failed")
            raise

        log = log.bind(order_id=str(order.id))

        # 3. Items
        try:
            self._order_repo.add_items(order, dto.items)
        except PersistenceError as exc:
            log.error("order.items_insert_failed", error=str(exc))
            self._compensate(stock_items, reason="items_insert_failed")
            self._discard_header(order)
            raise

        log.info("order.created")

        # 4. Order with items
        return self._order_repo.get_by_id(str(order.id)) or order

    # ------------------------------------------------------------------
    # Compensation
    # ------------------------------------------------------------------

    def _compensate(self, items: List[StockItem], reason: str) -> None:
        try:
            self._ledger.batch_increase_stock(items)
        except Exception as exc:
            restored = getattr(exc, "applied", [])
            failure = CompensationFailure(
                f"Stock compensation incomplete: {exc}",
                items=[item for item in items if item not in restored],
            )
            logger.error(
                "order.compensation_failed",
                reason=reason,
                error=str(failure),
                unrestored=[
                    {"product_id": str(i.product_id), "quantity": i.quantity}
                    for i in failure.items
                ],
                exc_info=exc,
            )
            return
        logger.info("order.stock_compensated", reason=reason, item_count=len(items))

    def _discard_header(self, order: Order) -> None:
        try:
            self._order_repo.delete(str(order.id))
        except Exception as exc:
            logger.error(
                "order.compensation_failed",
                reason="header_delete_failed",
                order_id=str(order.id),
                error=str(exc),
                exc_info=exc,
            )

"""Product stock ledger.

The only code path allowed to change ``Product.stock`` once a product
exists.  Single-item operations validate and write in one conditional
statement; batch operations apply items strictly in order and never undo
earlier writes on failure.  The error they raise lists what was already
applied so the caller can compensate.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable, List

import structlog

from modules.products.exceptions import InsufficientStock, ProductNotFound, StockError

if TYPE_CHECKING:
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StockItem:
    product_id: Any
    quantity: int

    @classmethod
    def from_order_items(cls, items: Iterable[Any]) -> List[StockItem]:
        """Build stock lines from order items or item DTOs."""
        return [cls(product_id=item.product_id, quantity=item.quantity) for item in items]


class StockLedger:
    """Decrease / increase stock for one or many products."""

    def __init__(self, product_repository: IProductRepository) -> None:
        self._repo = product_repository

    # ------------------------------------------------------------------
    # Single item
    # ------------------------------------------------------------------

    def decrease_stock(self, product_id: Any, quantity: int) -> int:
        """Reserve *quantity* units and return the remaining stock.

        Raises:
            ProductNotFound: the product id does not resolve.
            InsufficientStock: *quantity* exceeds the available stock.
        """
        _require_positive(quantity)
        remaining = self._repo.decrement_stock(product_id, quantity)
        if remaining is None:
            product = self._repo.get_by_id(str(product_id))
            if product is None:
                raise ProductNotFound(product_id)
            logger.warning(
                "stock.insufficient",
                product_id=str(product_id),
                available=product.stock,
                requested=quantity,
            )
            raise InsufficientStock(
                product_id, available=product.stock, requested=quantity
            )

        logger.info(
            "stock.decreased",
            product_id=str(product_id),
            quantity=quantity,
            remaining=remaining,
        )
        return remaining

    def increase_stock(self, product_id: Any, quantity: int) -> int:
        """Return *quantity* units to stock (no upper bound).

        Raises:
            ProductNotFound: the product id does not resolve.
        """
        _require_positive(quantity)
        new_stock = self._repo.increment_stock(product_id, quantity)
        if new_stock is None:
            raise ProductNotFound(product_id)

        logger.info(
            "stock.increased",
            product_id=str(product_id),
            quantity=quantity,
            new_stock=new_stock,
        )
        return new_stock

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    def batch_decrease_stock(self, items: Iterable[StockItem]) -> List[StockItem]:
        items = list(items)
        applied: List[StockItem] = []
        try:
            for item in items:
                self.decrease_stock(item.product_id, item.quantity)
                applied.append(item)
        except StockError as exc:
            exc.applied = applied
            logger.warning(
                "stock.batch_decrease_failed",
                applied=len(applied),
                total=len(items),
                error=str(exc),
            )
            raise
        logger.info("stock.batch_decreased", count=len(applied))
        return applied

    def batch_increase_stock(self, items: Iterable[StockItem]) -> List[StockItem]:
        items = list(items)
        applied: List[StockItem] = []
        try:
            for item in items:
                self.increase_stock(item.product_id, item.quantity)
                applied.append(item)
        except StockError as exc:
            exc.applied = applied
            logger.warning(
                "stock.batch_increase_failed",
                applied=len(applied),
                total=len(items),
                error=str(exc),
            )
            raise
        logger.info("stock.batch_increased", count=len(applied))
        return applied

    def restore_stock_from_order(self, order_items: Iterable[Any]) -> List[StockItem]:
        """Give back the stock held by an order's line items."""
        return self.batch_increase_stock(StockItem.from_order_items(order_items))


def _require_positive(quantity: int) -> None:
    if quantity < 1:
        raise ValueError(f"Stock quantity must be a positive integer, got {quantity}.")

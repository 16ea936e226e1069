"""Product repository interface.

Extends ``IRepository[Product]`` with SKU look-up and the two
conditional stock writes the ledger is built on.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence, Set

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.products.models import Product


class IProductRepository(IRepository["Product"]):
    """Repository contract for the Product aggregate."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Product]:
        """List products with optional filters."""

    @abstractmethod
    def save(self, entity: Product) -> Product:
        """Persist (create or update) a product."""

    @abstractmethod
    def get_by_sku(self, sku: str) -> Optional[Product]:
        """Retrieve a product by SKU."""

    @abstractmethod
    def bulk_create(self, entities: Sequence[Product]) -> List[Product]:
        """Insert several new products with one statement."""

    @abstractmethod
    def existing_skus(self, skus: Iterable[str]) -> Set[str]:
        """Return the subset of *skus* already registered."""

    @abstractmethod
    def count(self) -> int:
        """Total number of catalogue products."""

    @abstractmethod
    def decrement_stock(self, id: Any, quantity: int) -> Optional[int]:
        """Atomically subtract *quantity* if enough stock remains.

        Returns the new stock value, or ``None`` when no row matched
        (product absent or stock below *quantity*).
        """

    @abstractmethod
    def increment_stock(self, id: Any, quantity: int) -> Optional[int]:
        """Atomically add *quantity*; ``None`` when the product is absent."""

"""Django ORM implementation of the Product repository.

Stock writes are single conditional ``UPDATE`` statements
(``stock = stock - q WHERE id = :id AND stock >= q``) so two concurrent
reservations can never both pass the sufficiency check on a stale read.
Missing rows are reported as ``None``; the ledger decides what that means.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from modules.products.models import Product
from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class ProductDjangoRepository(IProductRepository):
    """Concrete Product repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[Product]:
        """Retrieve a product by primary key.

        Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return Product.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Product]:
        """List products with optional Django ORM look-ups.

        Examples of valid filters::

            {"is_active": True}
            {"name__icontains": "tomato"}
        """
        queryset = Product.objects.all()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    @transaction.atomic
    def save(self, entity: Product) -> Product:
        entity.save()
        logger.info("product.saved", product_id=str(entity.id), sku=entity.sku)
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        try:
            deleted, _ = Product.objects.filter(id=id).delete()
        except (ValueError, ValidationError):
            return False
        if deleted:
            logger.info("product.deleted", product_id=str(id))
        return bool(deleted)

    def get_by_sku(self, sku: str) -> Optional[Product]:
        return Product.objects.filter(sku=sku.strip().upper()).first()

    @transaction.atomic
    def bulk_create(self, entities: Sequence[Product]) -> List[Product]:
        created = Product.objects.bulk_create(entities)
        logger.info("product.bulk_saved", count=len(created))
        return created

    def existing_skus(self, skus: Iterable[str]) -> Set[str]:
        return set(
            Product.objects.filter(sku__in=list(skus)).values_list("sku", flat=True)
        )

    def count(self) -> int:
        return Product.objects.count()

    # ------------------------------------------------------------------
    # Conditional stock writes
    # ------------------------------------------------------------------

    def decrement_stock(self, id: Any, quantity: int) -> Optional[int]:
        try:
            matched = Product.objects.filter(id=id, stock__gte=quantity).update(
                stock=F("stock") - quantity, updated_at=timezone.now()
            )
        except (ValueError, ValidationError):
            return None
        if not matched:
            return None
        return self._current_stock(id)

    def increment_stock(self, id: Any, quantity: int) -> Optional[int]:
        try:
            matched = Product.objects.filter(id=id).update(
                stock=F("stock") + quantity, updated_at=timezone.now()
            )
        except (ValueError, ValidationError):
            return None
        if not matched:
            return None
        return self._current_stock(id)

    @staticmethod
    def _current_stock(id: Any) -> Optional[int]:
        return Product.objects.filter(id=id).values_list("stock", flat=True).first()

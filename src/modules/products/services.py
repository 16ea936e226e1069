"""Product service layer (Use Cases).

Catalogue CRUD for the admin dashboard.  Stock is set once on creation;
afterwards it only changes through ``StockLedger`` (orders reserve and
restore, admins restock).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

import structlog
from django.db import IntegrityError, transaction
from django.db.models import ProtectedError

from modules.products.exceptions import (
    ProductAlreadyExists,
    ProductBatchRejected,
    ProductInUse,
    ProductNotFound,
)
from modules.products.ledger import StockLedger
from modules.products.models import Product

if TYPE_CHECKING:
    from modules.products.dtos import CreateProductDTO, RestockDTO, UpdateProductDTO
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class ProductService:
    """Application service for Product use-cases.

    Receives an ``IProductRepository`` via constructor injection; the
    ledger shares the same repository.
    """

    def __init__(
        self,
        repository: IProductRepository,
        ledger: Optional[StockLedger] = None,
    ) -> None:
        self._repo = repository
        self._ledger = ledger or StockLedger(repository)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_product(self, dto: CreateProductDTO) -> Product:
        """Create a product.

        Raises:
            ProductAlreadyExists: if the SKU is already taken.
        """
        log = logger.bind(sku=dto.sku)

        if self._repo.get_by_sku(dto.sku):
            log.warning("product.duplicate_sku")
            raise ProductAlreadyExists(f"SKU '{dto.sku}' already registered.")

        product = Product(
            sku=dto.sku,
            name=dto.name,
            unit=dto.unit,
            price=dto.price,
            description=dto.description,
            stock=dto.stock,
            is_active=dto.is_active,
        )
        product = self._repo.save(product)
        log.info("product.created", product_id=str(product.id), stock=product.stock)
        return product

    @transaction.atomic
    def batch_create_products(self, dtos: Sequence[CreateProductDTO]) -> List[Product]:
        """Create every product of an import in one transaction.

        The batch is all-or-nothing: a SKU repeated inside the batch or
        already registered rejects the whole import.

        Raises:
            ProductBatchRejected: with one error entry per offending row.
        """
        errors: List[Dict[str, Any]] = []
        taken = self._repo.existing_skus(dto.sku for dto in dtos)
        seen: Dict[str, int] = {}
        for index, dto in enumerate(dtos):
            if dto.sku in taken:
                errors.append(
                    {"index": index, "sku": dto.sku, "error": "SKU already registered."}
                )
            elif dto.sku in seen:
                errors.append(
                    {
                        "index": index,
                        "sku": dto.sku,
                        "error": f"SKU repeats row {seen[dto.sku]}.",
                    }
                )
            else:
                seen[dto.sku] = index

        if errors:
            logger.warning(
                "product.batch_rejected", rows=len(dtos), rejected=len(errors)
            )
            raise ProductBatchRejected(errors)

        rows = [
            Product(
                sku=dto.sku,
                name=dto.name,
                unit=dto.unit,
                price=dto.price,
                description=dto.description,
                stock=dto.stock,
                is_active=dto.is_active,
            )
            for dto in dtos
        ]
        try:
            products = self._repo.bulk_create(rows)
        except IntegrityError as exc:
            raise ProductAlreadyExists(
                "A SKU from the batch was registered concurrently."
            ) from exc
        logger.info("product.batch_created", count=len(products))
        return products

    @transaction.atomic
    def update_product(self, id: str, dto: UpdateProductDTO) -> Product:
        product = self.get_product(id)

        changes = dto.model_dump(exclude_none=True)
        for field, value in changes.items():
            setattr(product, field, value)

        # ``stock`` is owned by the ledger; never write it back from a stale copy.
        product.save(update_fields=list(changes))
        logger.info("product.updated", product_id=str(id), fields=sorted(changes))
        return product

    def restock(self, id: str, dto: RestockDTO) -> Product:
        """Add stock through the ledger and return the refreshed product."""
        self._ledger.increase_stock(id, dto.quantity)
        return self.get_product(id)

    @transaction.atomic
    def delete_product(self, id: str) -> None:
        """Hard-delete a product that no order references.

        Raises:
            ProductNotFound: if the product does not exist.
            ProductInUse: if order items still point at it.
        """
        self.get_product(id)
        try:
            self._repo.delete(id)
        except ProtectedError as exc:
            logger.warning("product.delete_blocked", product_id=str(id))
            raise ProductInUse(
                f"Product {id} is referenced by existing orders; deactivate it instead."
            ) from exc

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_products(self, filters: Optional[Dict[str, Any]] = None) -> List[Product]:
        return self._repo.list(filters)

    def get_product(self, id: str) -> Product:
        """Retrieve a single product by ID.

        Raises:
            ProductNotFound: if the product does not exist.
        """
        product = self._repo.get_by_id(id)
        if not product:
            raise ProductNotFound(id)
        return product

import uuid
from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction

from modules.products.dtos import CreateProductDTO, RestockDTO, UpdateProductDTO
from modules.products.exceptions import (
    ProductAlreadyExists,
    ProductBatchRejected,
    ProductInUse,
    ProductNotFound,
)
from modules.products.models import Product
from modules.products.repositories.django_repository import ProductDjangoRepository
from modules.products.services import ProductService

pytestmark = pytest.mark.unit


@pytest.fixture
def service():
    return ProductService(repository=ProductDjangoRepository())


# =============================================================================
# DTOs
# =============================================================================


class TestProductDTOs:
    def test_sku_is_normalised(self):
        dto = CreateProductDTO(sku="  veg-010 ", name="Leek", price=Decimal("1.00"))
        assert dto.sku == "VEG-010"
        assert dto.unit == "kg"

    def test_negative_price_rejected(self):
        with pytest.raises(ValueError):
            CreateProductDTO(sku="X", name="Leek", price=Decimal("-1"))

    def test_negative_stock_rejected(self):
        with pytest.raises(ValueError):
            CreateProductDTO(sku="X", name="Leek", price=Decimal("1"), stock=-1)

    def test_restock_requires_positive_quantity(self):
        with pytest.raises(ValueError):
            RestockDTO(quantity=0)

    def test_update_dto_has_no_stock_field(self):
        assert "stock" not in UpdateProductDTO.model_fields


# =============================================================================
# Commands
# =============================================================================


class TestCreateProduct:
    def test_creates_with_initial_stock(self, service):
        product = service.create_product(
            CreateProductDTO(sku="herb-001", name="Basil", price="0.80", stock=40)
        )

        stored = Product.objects.get(id=product.id)
        assert stored.sku == "HERB-001"
        assert stored.stock == 40

    def test_duplicate_sku(self, service, tomato):
        with pytest.raises(ProductAlreadyExists):
            service.create_product(
                CreateProductDTO(sku="veg-tom", name="Other", price="1.00")
            )


class TestUpdateProduct:
    def test_updates_only_supplied_fields(self, service, tomato):
        service.update_product(str(tomato.id), UpdateProductDTO(price=Decimal("3.10")))

        tomato.refresh_from_db()
        assert tomato.price == Decimal("3.10")
        assert tomato.name == "Tomato"

    def test_does_not_overwrite_concurrent_stock_change(self, service, tomato):
        Product.objects.filter(id=tomato.id).update(stock=3)

        service.update_product(str(tomato.id), UpdateProductDTO(name="Roma Tomato"))

        tomato.refresh_from_db()
        assert tomato.stock == 3
        assert tomato.name == "Roma Tomato"

    def test_unknown_product(self, service):
        with pytest.raises(ProductNotFound):
            service.update_product(str(uuid.uuid4()), UpdateProductDTO(name="x"))


class TestRestockAndDelete:
    def test_restock_adds_quantity(self, service, tomato):
        product = service.restock(str(tomato.id), RestockDTO(quantity=15))
        assert product.stock == 25

    def test_delete_unreferenced_product(self, service, tomato):
        service.delete_product(str(tomato.id))
        assert not Product.objects.filter(id=tomato.id).exists()

    def test_delete_referenced_product_is_blocked(self, service, tomato, make_order):
        make_order(lines=[(tomato, 1)])

        with pytest.raises(ProductInUse):
            service.delete_product(str(tomato.id))
        assert Product.objects.filter(id=tomato.id).exists()

    def test_list_with_filters(self, service, tomato, carrot):
        carrot.is_active = False
        carrot.save()

        active = service.list_products({"is_active": True})
        assert [p.id for p in active] == [tomato.id]


# =============================================================================
# Batch import
# =============================================================================


def _row(sku, **extra):
    return CreateProductDTO(sku=sku, name=f"Produce {sku}", price=Decimal("1.20"), **extra)


class TestBatchCreate:
    def test_creates_every_row(self, service):
        created = service.batch_create_products(
            [_row("veg-a", stock=4), _row("VEG-B", unit="box")]
        )

        assert [p.sku for p in created] == ["VEG-A", "VEG-B"]
        assert Product.objects.get(sku="VEG-A").stock == 4
        assert Product.objects.get(sku="VEG-B").unit == "box"

    def test_repeated_sku_rejects_whole_batch(self, service):
        with pytest.raises(ProductBatchRejected) as exc_info:
            service.batch_create_products([_row("VEG-A"), _row("VEG-B"), _row("veg-a")])

        assert exc_info.value.errors == [
            {"index": 2, "sku": "VEG-A", "error": "SKU repeats row 0."}
        ]
        assert not Product.objects.exists()

    def test_registered_sku_rejects_whole_batch(self, service, tomato):
        with pytest.raises(ProductBatchRejected) as exc_info:
            service.batch_create_products([_row("VEG-NEW"), _row("VEG-TOM")])

        assert [e["index"] for e in exc_info.value.errors] == [1]
        assert list(Product.objects.values_list("sku", flat=True)) == ["VEG-TOM"]


# =============================================================================
# Table constraints
# =============================================================================


class TestProductConstraints:
    def test_declared_with_condition(self):
        checks = {c.name: c for c in Product._meta.constraints}

        assert set(checks) == {"products_price_non_negative", "products_stock_non_negative"}
        assert all(c.condition is not None for c in checks.values())

    def test_negative_price_rejected_by_database(self, tomato):
        with pytest.raises(IntegrityError), transaction.atomic():
            Product.objects.filter(id=tomato.id).update(price=Decimal("-1.00"))

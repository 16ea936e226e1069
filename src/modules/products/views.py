"""Product API views.

Catalogue reads are public (the storefront lists products for guests);
writes and restocking require the admin role.  Domain exceptions are
caught and translated into HTTP status codes.
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.mixins import ListModelMixin
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from modules.core.permissions import IsAdminRole
from modules.products.dtos import CreateProductDTO, RestockDTO, UpdateProductDTO
from modules.products.exceptions import (
    ProductAlreadyExists,
    ProductBatchRejected,
    ProductInUse,
    ProductNotFound,
)
from modules.products.filters import ProductFilter
from modules.products.models import Product
from modules.products.repositories.django_repository import ProductDjangoRepository
from modules.products.serializers import ProductSerializer
from modules.products.services import ProductService

_NOT_FOUND = {"detail": "Product not found."}


def _dto_fields(data, dto_class) -> dict:
    return {k: v for k, v in data.items() if k in dto_class.model_fields}


class ProductViewSet(ListModelMixin, GenericViewSet):
    """Product CRUD over ``ProductService``.

    Does **not** extend ``ModelViewSet``; writes go through the
    service/ledger layer.
    """

    filterset_class = ProductFilter
    search_fields = ["name", "sku", "description"]
    ordering_fields = ["name", "price", "stock", "created_at"]
    ordering = ["name"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    queryset = Product.objects.all()
    serializer_class = ProductSerializer

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = ProductService(repository=ProductDjangoRepository())

    def get_permissions(self):
        if self.action in ("list", "retrieve"):
            return [AllowAny()]
        return [IsAdminRole()]

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/products/{pk}/"""
        try:
            product = self._service.get_product(pk)
        except ProductNotFound:
            return Response(_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(ProductSerializer(product).data)

    # ------------------------------------------------------------------
    # Create / Update / Destroy
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/products/"""
        try:
            dto = CreateProductDTO(**_dto_fields(request.data, CreateProductDTO))
        except (PydanticValidationError, ValueError) as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        try:
            product = self._service.create_product(dto)
        except ProductAlreadyExists as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)

        return Response(
            ProductSerializer(product).data, status=status.HTTP_201_CREATED
        )

    @action(detail=False, methods=["post"], url_path="batch")
    def batch(self, request: Request) -> Response:
        """POST /api/v1/products/batch/ with ``{"products": [...]}`` (CSV import).

        Every row is validated first; any bad row or clashing SKU rejects
        the whole batch.
        """
        rows = request.data.get("products") if hasattr(request.data, "get") else None
        if not isinstance(rows, list) or not rows:
            return Response(
                {"detail": "'products' must be a non-empty list."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        dtos, errors = [], []
        for index, row in enumerate(rows):
            try:
                if not isinstance(row, dict):
                    raise ValueError("Each product row must be an object.")
                dtos.append(CreateProductDTO(**_dto_fields(row, CreateProductDTO)))
            except (PydanticValidationError, ValueError) as exc:
                errors.append({"index": index, "sku": None, "error": str(exc)})
        if errors:
            return Response(
                {"detail": "Invalid product rows.", "errors": errors},
                status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            products = self._service.batch_create_products(dtos)
        except ProductBatchRejected as exc:
            return Response(
                {"detail": str(exc), "errors": exc.errors},
                status=status.HTTP_409_CONFLICT,
            )
        except ProductAlreadyExists as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)

        return Response(
            {
                "created": len(products),
                "results": ProductSerializer(products, many=True).data,
            },
            status=status.HTTP_201_CREATED,
        )

    def update(self, request: Request, pk: str | None = None) -> Response:
        """PUT/PATCH /api/v1/products/{pk}/"""
        try:
            dto = UpdateProductDTO(**_dto_fields(request.data, UpdateProductDTO))
        except (PydanticValidationError, ValueError) as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        try:
            product = self._service.update_product(pk, dto)
        except ProductNotFound:
            return Response(_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)

        return Response(ProductSerializer(product).data)

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        return self.update(request, pk)

    @action(detail=True, methods=["post"], url_path="restock")
    def restock(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/products/{pk}/restock/ with ``{"quantity": N}``."""
        try:
            dto = RestockDTO(quantity=request.data.get("quantity"))
        except (PydanticValidationError, ValueError) as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        try:
            product = self._service.restock(pk, dto)
        except ProductNotFound:
            return Response(_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)

        return Response(ProductSerializer(product).data)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        """DELETE /api/v1/products/{pk}/"""
        try:
            self._service.delete_product(pk)
        except ProductNotFound:
            return Response(_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        except ProductInUse as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)
        return Response(status=status.HTTP_204_NO_CONTENT)

"""Order API views.

Exposes the ``OrderService`` via HTTP using DRF ViewSets.
Domain exceptions are caught and translated into HTTP status codes:
not found → 404, insufficient stock → 409, invalid transition → 400,
persistence failure → 500.

Visibility: admins see every order, drivers the orders assigned to
them, customers their own.  Orders outside a caller's scope answer 404.
"""

from __future__ import annotations

import structlog
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.core.context import RequestContext
from modules.core.permissions import ROLE_ADMIN, ROLE_DRIVER, IsAdminOrDriverRole, IsAdminRole
from modules.orders.dtos import (
    CreateOrderDTO,
    CreateOrderItemDTO,
    DashboardQueryParams,
    OrderQueryParams,
)
from modules.orders.exceptions import InvalidOrderStatus, OrderNotFound
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import (
    AssignDriverSerializer,
    CancelOrderSerializer,
    CreateOrderSerializer,
    EmailInvoiceSerializer,
    InvoiceSerializer,
    OrderSerializer,
    OrderStatusSerializer,
    PaymentStatusSerializer,
)
from modules.orders.services import OrderService
from modules.products.exceptions import InsufficientStock
from modules.products.repositories.django_repository import ProductDjangoRepository
from modules.users.repositories.django_repository import UserDjangoRepository
from shared.domain.exceptions import NotFoundError, PersistenceError

logger = structlog.get_logger(__name__)

_NOT_FOUND = {"detail": "Order not found."}

_QUERY_KEYS = (
    "status",
    "payment_status",
    "from_date",
    "to_date",
    "user_id",
    "assigned_driver_id",
    "search",
    "sort_by",
    "sort_direction",
    "limit",
    "offset",
)


def _error_response(exc: Exception) -> Response:
    if isinstance(exc, InsufficientStock):
        return Response(
            {"detail": str(exc), **exc.as_dict()},
            status=status.HTTP_409_CONFLICT,
        )
    if isinstance(exc, NotFoundError):
        return Response({"detail": str(exc)}, status=status.HTTP_404_NOT_FOUND)
    if isinstance(exc, (InvalidOrderStatus, ValueError)):
        return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, PersistenceError):
        logger.error("order.persistence_error", error=str(exc))
        return Response(
            {"detail": "The order could not be saved. Please try again."},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    raise exc


class OrderViewSet(GenericViewSet):
    """ViewSet for Order operations.

    Does **not** extend ``ModelViewSet``; all ORM access goes through
    the service/repository layer.
    """

    queryset = Order.objects.all()
    serializer_class = OrderSerializer

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = OrderService(
            order_repository=OrderDjangoRepository(),
            product_repository=ProductDjangoRepository(),
            user_repository=UserDjangoRepository(),
        )

    def get_permissions(self):
        if self.action == "create":
            return [AllowAny()]
        if self.action in {"payment", "assign_driver", "destroy", "summary"}:
            return [IsAdminRole()]
        if self.action in {"partial_update", "assigned"}:
            return [IsAdminOrDriverRole()]
        return [IsAuthenticated()]

    def get_throttles(self) -> list[BaseThrottle]:
        throttle_scope: str | None
        if self.action == "create":
            throttle_scope = "order_creation"
        elif self.action in {"list", "retrieve", "mine", "assigned", "summary"}:
            throttle_scope = "order_listing"
        else:
            throttle_scope = None
        self.throttle_scope = throttle_scope
        return super().get_throttles()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _visible_order(self, ctx: RequestContext, pk: str) -> Order:
        """Load *pk* if the caller may see it, else raise ``OrderNotFound``."""
        order = self._service.get_order_by_id(pk)
        if ctx.role == ROLE_ADMIN:
            return order
        if ctx.role == ROLE_DRIVER and str(order.assigned_driver_id) == ctx.actor_id:
            return order
        if order.user_id is not None and str(order.user_id) == ctx.actor_id:
            return order
        raise OrderNotFound(f"Order {pk} not found.")

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/

        Unauthenticated callers place a guest order.
        """
        ctx = RequestContext.from_request(request)
        serializer = CreateOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        user_id = ctx.actor_id
        if ctx.role == ROLE_ADMIN and data.get("user_id"):
            user_id = data["user_id"]

        try:
            dto = CreateOrderDTO(
                user_id=user_id,
                delivery_address=data["delivery_address"],
                items=[CreateOrderItemDTO(**item) for item in data["items"]],
                notes=data.get("notes", ""),
            )
        except (PydanticValidationError, ValueError) as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        try:
            if ctx.is_guest:
                order = self._service.create_guest_order(dto)
            else:
                order = self._service.create_order(dto)
        except Exception as exc:
            return _error_response(exc)

        logger.info(
            "order.created_via_api",
            order_id=str(order.id),
            guest=order.is_guest,
            correlation_id=ctx.correlation_id,
        )
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/

        Query: status, payment_status, from_date, to_date, user_id,
        assigned_driver_id, search, sort_by, sort_direction, limit, offset.
        Non-admin callers are scoped to their own orders.
        """
        ctx = RequestContext.from_request(request)
        raw = {k: request.query_params[k] for k in _QUERY_KEYS if k in request.query_params}
        if ctx.role == ROLE_DRIVER:
            raw["assigned_driver_id"] = ctx.actor_id
        elif ctx.role != ROLE_ADMIN:
            raw["user_id"] = ctx.actor_id

        try:
            params = OrderQueryParams(**raw)
        except (PydanticValidationError, ValueError) as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        result = self._service.get_all_orders(params)
        return Response(
            {
                "orders": OrderSerializer(result["orders"], many=True).data,
                "count": result["count"],
                "limit": result["limit"],
                "offset": result["offset"],
            }
        )

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        ctx = RequestContext.from_request(request)
        try:
            order = self._visible_order(ctx, pk)
        except OrderNotFound:
            return Response(_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(OrderSerializer(order).data)

    @action(detail=False, methods=["get"])
    def mine(self, request: Request) -> Response:
        """GET /api/v1/orders/mine/"""
        ctx = RequestContext.from_request(request)
        if ctx.actor_id is None:
            return Response([])
        orders = self._service.get_user_orders(ctx.actor_id)
        return Response(OrderSerializer(orders, many=True).data)

    @action(detail=False, methods=["get"])
    def assigned(self, request: Request) -> Response:
        """GET /api/v1/orders/assigned/ (driver's delivery list)."""
        ctx = RequestContext.from_request(request)
        driver_id = request.query_params.get("driver_id")
        if ctx.role != ROLE_ADMIN or not driver_id:
            driver_id = ctx.actor_id
        try:
            orders = self._service.get_driver_orders(driver_id)
        except (PydanticValidationError, ValueError) as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(OrderSerializer(orders, many=True).data)

    @action(detail=False, methods=["get"])
    def summary(self, request: Request) -> Response:
        """GET /api/v1/orders/summary/ (admin dashboard).

        Query: days (history window, default 30), limit (top products,
        default 5), timezone (IANA name for today's hourly buckets).
        """
        raw = {
            key: request.query_params[key]
            for key in ("days", "limit", "timezone")
            if key in request.query_params
        }
        try:
            params = DashboardQueryParams(**raw)
        except (PydanticValidationError, ValueError) as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        def dump(items):
            return [item.model_dump(mode="json") for item in items]

        return Response(
            {
                "summary": self._service.get_dashboard_summary().model_dump(mode="json"),
                "status_counts": dump(self._service.get_order_counts_by_status()),
                "history": dump(self._service.get_orders_history(params.days)),
                "top_products": dump(self._service.get_top_selling_products(params.limit)),
                "today": dump(self._service.get_todays_orders(params.tzinfo)),
                "timezone": params.timezone,
            }
        )

    # ------------------------------------------------------------------
    # Status machine
    # ------------------------------------------------------------------

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/ with ``{"status": ...}``."""
        ctx = RequestContext.from_request(request)
        serializer = OrderStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            self._visible_order(ctx, pk)
            order = self._service.update_order_status(
                pk, serializer.validated_data["status"]
            )
        except Exception as exc:
            return _error_response(exc)
        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["post"])
    def cancel(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/cancel/"""
        ctx = RequestContext.from_request(request)
        serializer = CancelOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            self._visible_order(ctx, pk)
            order = self._service.cancel_order(
                pk, serializer.validated_data.get("reason") or None
            )
        except Exception as exc:
            return _error_response(exc)
        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["post"])
    def payment(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/payment/"""
        serializer = PaymentStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            order = self._service.update_payment_status(
                pk, serializer.validated_data["payment_status"]
            )
        except Exception as exc:
            return _error_response(exc)
        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["post"], url_path="assign-driver")
    def assign_driver(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/assign-driver/"""
        ctx = RequestContext.from_request(request)
        serializer = AssignDriverSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            order = self._service.assign_driver_to_order(
                pk,
                str(serializer.validated_data["driver_id"]),
                admin_id=ctx.actor_id,
            )
        except Exception as exc:
            return _error_response(exc)
        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Invoice
    # ------------------------------------------------------------------

    @action(detail=True, methods=["get"])
    def invoice(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/invoice/"""
        ctx = RequestContext.from_request(request)
        try:
            self._visible_order(ctx, pk)
            invoice = self._service.generate_invoice(pk)
        except Exception as exc:
            return _error_response(exc)
        return Response(InvoiceSerializer(invoice).data)

    @action(detail=True, methods=["post"], url_path="email-invoice")
    def email_invoice(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/email-invoice/"""
        ctx = RequestContext.from_request(request)
        serializer = EmailInvoiceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            self._visible_order(ctx, pk)
            result = self._service.send_invoice_email(
                pk, serializer.validated_data.get("email") or None
            )
        except Exception as exc:
            return _error_response(exc)

        if not result.ok:
            return Response(
                {"detail": "Invoice e-mail could not be queued."},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )
        return Response(
            {"detail": "Invoice e-mail queued."}, status=status.HTTP_202_ACCEPTED
        )

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        """DELETE /api/v1/orders/{pk}/"""
        try:
            self._service.delete_order(pk)
        except Exception as exc:
            return _error_response(exc)
        return Response(status=status.HTTP_204_NO_CONTENT)

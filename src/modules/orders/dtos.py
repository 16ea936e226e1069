"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

- ``CreateOrderItemDTO``: one cart line ``{product_id, quantity, unit_price}``.
- ``CreateOrderDTO``: cart plus delivery details; ``user_id`` is ``None``
  for guest orders.
- ``OrderQueryParams``: filter / sort / pagination for order listings.
- ``OrderOutputDTO``: order snapshot embedded in notification payloads.
- ``InvoiceDTO``: VAT-adjusted invoice figures.
- Dashboard DTOs: aggregate figures for the admin dashboard.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Literal, Optional
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from modules.orders.constants import (
    DEFAULT_LIMIT,
    MAX_LIMIT,
    SORTABLE_FIELDS,
    OrderStatus,
    PaymentStatus,
)

if TYPE_CHECKING:
    from modules.orders.models import Order


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CreateOrderItemDTO(BaseModel):
    """A single cart line.

    ``unit_price`` is the price shown to the buyer when the cart was
    built; it is stored as the line's snapshot.
    """

    model_config = ConfigDict(frozen=True)

    product_id: UUID
    quantity: int
    unit_price: Decimal

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v

    @field_validator("unit_price")
    @classmethod
    def unit_price_must_not_be_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Unit price cannot be negative.")
        return v

    @property
    def subtotal(self) -> Decimal:
        return self.quantity * self.unit_price


class CreateOrderDTO(BaseModel):
    """Immutable DTO for order creation requests.

    Validates:
    - ``items`` must contain at least one item.
    - A product may appear only once.
    """

    model_config = ConfigDict(frozen=True)

    user_id: Optional[UUID] = None
    delivery_address: str = ""
    items: List[CreateOrderItemDTO]
    notes: str = ""

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(
        cls, v: List[CreateOrderItemDTO]
    ) -> List[CreateOrderItemDTO]:
        if not v:
            raise ValueError("Order must have at least one item.")
        return v

    @model_validator(mode="after")
    def no_duplicate_products(self):
        product_ids = [item.product_id for item in self.items]
        if len(product_ids) != len(set(product_ids)):
            raise ValueError("Duplicate product IDs are not allowed in the same order.")
        return self

    @property
    def total_amount(self) -> Decimal:
        return sum((item.subtotal for item in self.items), Decimal("0.00"))

    def as_guest(self) -> CreateOrderDTO:
        return self.model_copy(update={"user_id": None})


class OrderQueryParams(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    user_id: Optional[UUID] = None
    assigned_driver_id: Optional[UUID] = None
    search: Optional[str] = None
    sort_by: str = "order_date"
    sort_direction: Literal["asc", "desc"] = "desc"
    limit: int = Field(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT)
    offset: int = Field(default=0, ge=0)

    @field_validator("sort_by")
    @classmethod
    def sort_field_must_be_known(cls, v: str) -> str:
        if v not in SORTABLE_FIELDS:
            raise ValueError(
                f"Cannot sort by '{v}'. Allowed: {', '.join(sorted(SORTABLE_FIELDS))}."
            )
        return v

    @property
    def ordering(self) -> str:
        return self.sort_by if self.sort_direction == "asc" else f"-{self.sort_by}"

    def filter_data(self) -> Dict[str, Any]:
        """Filter values in the shape ``OrderFilter`` expects."""
        data = self.model_dump(
            include={
                "status",
                "payment_status",
                "from_date",
                "to_date",
                "user_id",
                "assigned_driver_id",
                "search",
            },
            exclude_none=True,
            mode="json",
        )
        return data


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class OrderItemOutputDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    product_id: UUID
    product_name: str
    product_sku: str
    unit: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


class OrderOutputDTO(BaseModel):
    """Order snapshot in the shape of the ``orders`` row plus its items."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    user_id: Optional[UUID]
    customer: Optional[Dict[str, Any]]
    delivery_address: str
    order_date: datetime
    total_amount: Decimal
    status: str
    payment_status: str
    assigned_driver_id: Optional[UUID]
    notes: str
    items: List[OrderItemOutputDTO]

    @classmethod
    def from_entity(cls, order: Order) -> OrderOutputDTO:
        """Build an output DTO from an Order model instance.

        Assumes ``user`` and ``items__product`` are eager-loaded.
        """
        items = [
            OrderItemOutputDTO(
                id=item.id,
                product_id=item.product_id,
                product_name=item.product.name,
                product_sku=item.product.sku,
                unit=item.product.unit,
                quantity=item.quantity,
                unit_price=item.unit_price,
                subtotal=item.subtotal,
            )
            for item in order.items.all()
        ]
        return cls(
            id=order.id,
            user_id=order.user_id,
            customer=order.user.to_contact() if order.user else None,
            delivery_address=order.delivery_address,
            order_date=order.order_date,
            total_amount=order.total_amount,
            status=order.status,
            payment_status=order.payment_status,
            assigned_driver_id=order.assigned_driver_id,
            notes=order.notes,
            items=items,
        )

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class InvoiceDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: UUID
    order_date: datetime
    customer_email: Optional[str]
    company_name: str
    currency: str
    subtotal: Decimal
    vat_percentage: Decimal
    vat_amount: Decimal
    total: Decimal
    download_url: str


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


class DashboardQueryParams(BaseModel):
    """Window sizes for the admin dashboard; ``timezone`` is an IANA name."""

    model_config = ConfigDict(frozen=True)

    days: int = Field(default=30, ge=1, le=365)
    limit: int = Field(default=5, ge=1, le=50)
    timezone: str = "UTC"

    @field_validator("timezone")
    @classmethod
    def timezone_must_exist(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown time zone '{v}'.") from exc
        return v

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class StatusCountDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: OrderStatus
    count: int


class DailyOrdersDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: date
    count: int
    total: Decimal


class HourlyOrdersDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    hour: int
    count: int
    revenue: Decimal


class TopProductDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: UUID
    product_name: str
    total_quantity: int


class DashboardSummaryDTO(BaseModel):
    """Headline figures; orders and revenue count completed orders only."""

    model_config = ConfigDict(frozen=True)

    total_orders: int
    total_revenue: Decimal
    total_customers: int
    total_products: int

"""Order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.constants import OrderStatus, PaymentStatus
from modules.orders.models import Order, OrderItem

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class CreateOrderItemSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)


class CreateOrderSerializer(serializers.Serializer):
    """Validates the order creation request payload.

    ``user_id`` is honoured for admins placing an order on a customer's
    behalf; everyone else orders as themselves (or as a guest).
    """

    user_id = serializers.UUIDField(required=False, allow_null=True)
    delivery_address = serializers.CharField(allow_blank=True, default="")
    items = CreateOrderItemSerializer(many=True, allow_empty=False)
    notes = serializers.CharField(required=False, default="", allow_blank=True)


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)


class CancelOrderSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class PaymentStatusSerializer(serializers.Serializer):
    payment_status = serializers.ChoiceField(choices=PaymentStatus.choices)


class AssignDriverSerializer(serializers.Serializer):
    driver_id = serializers.UUIDField()


class EmailInvoiceSerializer(serializers.Serializer):
    email = serializers.EmailField(required=False, allow_blank=True, default="")


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)
    product_sku = serializers.CharField(source="product.sku", read_only=True)
    unit = serializers.CharField(source="product.unit", read_only=True)
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product_id",
            "product_name",
            "product_sku",
            "unit",
            "quantity",
            "unit_price",
            "subtotal",
        ]
        read_only_fields = fields


class ContactSerializer(serializers.Serializer):
    id = serializers.UUIDField(read_only=True)
    name = serializers.CharField(read_only=True)
    email = serializers.EmailField(read_only=True)
    phone = serializers.CharField(read_only=True)


class OrderSerializer(serializers.ModelSerializer):
    """Read serializer for orders with nested items and contacts."""

    items = OrderItemSerializer(many=True, read_only=True)
    customer = ContactSerializer(source="user", read_only=True, allow_null=True)
    driver = ContactSerializer(source="assigned_driver", read_only=True, allow_null=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "user_id",
            "customer",
            "delivery_address",
            "order_date",
            "total_amount",
            "status",
            "payment_status",
            "assigned_driver_id",
            "driver",
            "notes",
            "created_at",
            "updated_at",
            "items",
        ]
        read_only_fields = fields


class InvoiceSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    order_date = serializers.DateTimeField()
    customer_email = serializers.EmailField(allow_null=True)
    company_name = serializers.CharField()
    currency = serializers.CharField()
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2)
    vat_percentage = serializers.DecimalField(max_digits=5, decimal_places=2)
    vat_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    total = serializers.DecimalField(max_digits=12, decimal_places=2)
    download_url = serializers.CharField()

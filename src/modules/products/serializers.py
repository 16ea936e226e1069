"""Product DRF serializers for API output.

Input is validated by the Pydantic DTOs in ``dtos.py``; ``stock`` is
read-only over HTTP and moves through the restock action instead.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.products.models import Product


class ProductSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = [
            "id",
            "sku",
            "name",
            "description",
            "unit",
            "price",
            "stock",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

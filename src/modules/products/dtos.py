"""Product DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
DTOs are immutable (``frozen=True``).

- ``CreateProductDTO``: input for product creation (initial stock).
- ``UpdateProductDTO``: partial catalogue update; stock is not editable
  here and only moves through the ledger.
- ``RestockDTO``: quantity to add to a product's stock.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CreateProductDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    sku: str
    name: str
    price: Decimal
    unit: str = "kg"
    description: str = ""
    stock: int = 0
    is_active: bool = True

    @field_validator("price")
    @classmethod
    def price_must_not_be_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Price cannot be negative.")
        return v

    @field_validator("stock")
    @classmethod
    def stock_must_be_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Stock cannot be negative.")
        return v

    @field_validator("sku")
    @classmethod
    def sku_must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("SKU must not be empty.")
        return v.strip().upper()

    @field_validator("name")
    @classmethod
    def name_must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Name must not be empty.")
        return v.strip()


class UpdateProductDTO(BaseModel):
    """All fields optional; only supplied fields are updated."""

    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    price: Optional[Decimal] = None
    unit: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("price")
    @classmethod
    def price_must_not_be_negative(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None and v < 0:
            raise ValueError("Price cannot be negative.")
        return v


class RestockDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    quantity: int = Field(ge=1)

"""Settings DTOs.

``BrandingDTO`` is the ``appSettings`` block embedded in every
notification payload; it serialises with camelCase keys.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator
from pydantic.alias_generators import to_camel

from modules.appsettings.models import DEFAULT_COMPANY_NAME, DEFAULT_CURRENCY


class BrandingDTO(BaseModel):
    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )

    company_name: str = DEFAULT_COMPANY_NAME
    logo_url: str = ""
    support_email: str = ""
    support_phone: str = ""
    currency: str = DEFAULT_CURRENCY
    vat_percentage: Optional[Decimal] = None


class UpdateAppSettingsDTO(BaseModel):
    """Partial update; ``None`` fields are left untouched."""

    model_config = ConfigDict(frozen=True)

    company_name: Optional[str] = None
    logo_url: Optional[str] = None
    vat_percentage: Optional[Decimal] = None
    default_currency: Optional[str] = None
    default_language: Optional[str] = None
    support_email: Optional[EmailStr] = None
    support_phone: Optional[str] = None

    @field_validator("vat_percentage")
    @classmethod
    def vat_in_range(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None and not (Decimal("0") <= v <= Decimal("100")):
            raise ValueError("VAT percentage must be between 0 and 100.")
        return v

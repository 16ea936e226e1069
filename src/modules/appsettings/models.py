"""Storefront-wide settings (branding, VAT, currency).

A single row is expected; the oldest row wins if more exist.
"""

from __future__ import annotations

from decimal import Decimal

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from modules.core.models import BaseModel

DEFAULT_COMPANY_NAME = "B2B Vegetable"
DEFAULT_CURRENCY = "USD"


class Currency(models.TextChoices):
    USD = "USD", "US Dollar"
    EUR = "EUR", "Euro"
    VND = "VND", "Vietnamese Dong"


class AppSettings(BaseModel):
    company_name = models.CharField(max_length=255, blank=True, default="")
    logo_url = models.URLField(max_length=500, blank=True, default="")
    vat_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("100"))],
    )
    default_currency = models.CharField(
        max_length=3,
        choices=Currency.choices,
        default=Currency.USD,
    )
    default_language = models.CharField(max_length=8, default="en")
    support_email = models.EmailField(blank=True, default="")
    support_phone = models.CharField(max_length=32, blank=True, default="")

    class Meta:
        db_table = "settings"
        ordering = ["created_at"]
        verbose_name_plural = "app settings"

    def __str__(self) -> str:
        return self.company_name or DEFAULT_COMPANY_NAME

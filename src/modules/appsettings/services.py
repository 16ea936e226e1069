"""App settings service.

Reads never fail for lack of a row: callers get ``None`` and fall back
to the defaults baked into ``BrandingDTO``.
"""

from __future__ import annotations

from typing import Optional

import structlog
from django.db import transaction

from modules.appsettings.dtos import BrandingDTO, UpdateAppSettingsDTO
from modules.appsettings.models import DEFAULT_COMPANY_NAME, DEFAULT_CURRENCY, AppSettings

logger = structlog.get_logger(__name__)


class AppSettingsService:
    def get_app_settings(self) -> Optional[AppSettings]:
        return AppSettings.objects.order_by("created_at").first()

    @transaction.atomic
    def update_app_settings(self, dto: UpdateAppSettingsDTO) -> AppSettings:
        """Update the settings row, creating it on first use."""
        current = (
            AppSettings.objects.select_for_update().order_by("created_at").first()
        )
        created = current is None
        if created:
            current = AppSettings()

        changes = dto.model_dump(exclude_none=True)
        for field, value in changes.items():
            setattr(current, field, value)
        current.save()

        logger.info(
            "settings.created" if created else "settings.updated",
            fields=sorted(changes),
        )
        return current

    def branding(self, include_vat: bool = False) -> BrandingDTO:
        """Build the ``appSettings`` block used in notification payloads."""
        current = self.get_app_settings()
        if current is None:
            return BrandingDTO(vat_percentage=0 if include_vat else None)
        return BrandingDTO(
            company_name=current.company_name or DEFAULT_COMPANY_NAME,
            logo_url=current.logo_url or "",
            support_email=current.support_email or "",
            support_phone=current.support_phone or "",
            currency=current.default_currency or DEFAULT_CURRENCY,
            vat_percentage=current.vat_percentage if include_vat else None,
        )

"""Notification payload sent to the templated e-mail endpoint.

Wire format (camelCase keys)::

    {type, orderId, to, orderData, driverData?, adminData?, appSettings}

``driverData`` / ``adminData`` are omitted when not relevant to the
notification type.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, EmailStr
from pydantic.alias_generators import to_camel

from modules.appsettings.dtos import BrandingDTO
from modules.notifications.models import NotificationType


class NotificationPayload(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    type: NotificationType
    order_id: str
    to: EmailStr
    order_data: Dict[str, Any]
    driver_data: Optional[Dict[str, Any]] = None
    admin_data: Optional[Dict[str, Any]] = None
    app_settings: BrandingDTO = BrandingDTO()

    def to_wire(self) -> Dict[str, Any]:
        """JSON-safe dict with camelCase keys, optional blocks dropped."""
        wire = self.model_dump(mode="json", by_alias=True)
        wire["appSettings"] = self.app_settings.model_dump(
            mode="json", by_alias=True, exclude_none=True
        )
        return {key: value for key, value in wire.items() if value is not None}

"""Settings endpoint for the admin dashboard."""

from __future__ import annotations

from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.appsettings.dtos import UpdateAppSettingsDTO
from modules.appsettings.serializers import AppSettingsSerializer
from modules.appsettings.services import AppSettingsService
from modules.core.permissions import IsAdminRole


class AppSettingsView(APIView):
    """GET/PUT /api/v1/settings/"""

    permission_classes = [IsAdminRole]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = AppSettingsService()

    def get(self, request: Request) -> Response:
        current = self._service.get_app_settings()
        if current is None:
            return Response(
                {"detail": "Settings have not been configured yet."},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response(AppSettingsSerializer(current).data)

    def put(self, request: Request) -> Response:
        fields = UpdateAppSettingsDTO.model_fields
        try:
            dto = UpdateAppSettingsDTO(
                **{k: v for k, v in request.data.items() if k in fields}
            )
        except (PydanticValidationError, ValueError) as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        current = self._service.update_app_settings(dto)
        return Response(AppSettingsSerializer(current).data)

    def patch(self, request: Request) -> Response:
        return self.put(request)

"""Driver listing used by the admin dashboard to assign deliveries."""

from __future__ import annotations

from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.core.permissions import IsAdminRole
from modules.users.models import UserRole
from modules.users.repositories.django_repository import UserDjangoRepository
from modules.users.serializers import DriverSerializer


class DriverListView(APIView):
    """GET /api/v1/drivers/: active drivers, ordered by name."""

    permission_classes = [IsAdminRole]

    def get(self, request: Request) -> Response:
        drivers = UserDjangoRepository().list_active_by_role(UserRole.DRIVER)
        return Response(DriverSerializer(drivers, many=True).data)

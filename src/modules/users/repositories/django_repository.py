"""Django ORM implementation of the User repository.

Returns ``None`` for missing rows instead of raising; the Service Layer
decides whether an absent user is fatal.
"""

from __future__ import annotations

from typing import List, Optional

import structlog
from django.core.exceptions import ValidationError

from modules.users.models import AppUser, UserRole, UserStatus
from modules.users.repositories.interfaces import IUserRepository

logger = structlog.get_logger(__name__)


class UserDjangoRepository(IUserRepository):
    def get_by_id(self, id: str) -> Optional[AppUser]:
        try:
            return AppUser.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_driver(self, id: str) -> Optional[AppUser]:
        try:
            return AppUser.objects.filter(id=id, role=UserRole.DRIVER).first()
        except (ValueError, ValidationError):
            return None

    def list_active_by_role(self, role: str) -> List[AppUser]:
        return list(
            AppUser.objects.filter(role=role, status=UserStatus.ACTIVE).order_by(
                "name"
            )
        )

    def delete(self, id: str) -> bool:
        deleted, _ = AppUser.objects.filter(id=id).delete()
        if deleted:
            logger.info("user.deleted", user_id=str(id))
        return bool(deleted)

    def count_by_role(self, role: str) -> int:
        return AppUser.objects.filter(role=role).count()

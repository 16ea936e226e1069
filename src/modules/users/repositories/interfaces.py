"""User repository interface."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.users.models import AppUser


class IUserRepository(IRepository["AppUser"]):
    """Read-mostly contract over the ``users`` table."""

    @abstractmethod
    def list_active_by_role(self, role: str) -> List[AppUser]:
        """Return active users holding *role*, ordered by name."""

    @abstractmethod
    def get_driver(self, id: str) -> Optional[AppUser]:
        """Retrieve a user only if it has the driver role."""

    @abstractmethod
    def count_by_role(self, role: str) -> int:
        """Number of users holding *role*, whatever their status."""

"""User domain exceptions."""

from __future__ import annotations

from shared.domain.exceptions import NotFoundError


class UserNotFound(NotFoundError):
    """The referenced user (customer, driver or admin) does not exist."""

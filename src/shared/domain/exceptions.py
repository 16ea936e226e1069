"""Error taxonomy shared by every bounded context.

Module-specific exceptions subclass these so views can translate a
whole family (e.g. any ``NotFoundError``) into one HTTP status.
"""

from __future__ import annotations


class NotFoundError(Exception):
    """An order, product or user could not be resolved."""


class PersistenceError(Exception):
    """A read or write against the relational store failed.

    Wraps the backend error so callers never depend on driver-specific
    exception types.
    """


class CompensationFailure(Exception):
    """A corrective stock increment could not be completed.

    Never raised to callers: instances are built and logged so the
    failure shows up in server logs with its cause attached.
    """

    def __init__(self, message: str, items: list | None = None) -> None:
        super().__init__(message)
        self.items = list(items or [])

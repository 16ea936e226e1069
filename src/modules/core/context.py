"""Per-request context passed explicitly to the service layer.

Views build one ``RequestContext`` per request from the authenticated
principal and the correlation ID; services receive the pieces they need
(e.g. the acting admin) as arguments instead of reading process-wide
session state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class RequestContext:
    correlation_id: str = ""
    actor_id: Optional[str] = None
    role: Optional[str] = None

    @property
    def is_guest(self) -> bool:
        return self.actor_id is None

    @classmethod
    def from_request(cls, request: Any) -> RequestContext:
        user = getattr(request, "user", None)
        actor_id: Optional[str] = None
        role: Optional[str] = None
        if user is not None and getattr(user, "is_authenticated", False):
            # Managed-auth principals carry the users-table id in ``sub``.
            actor_id = getattr(user, "sub", None) or None
            role = getattr(user, "role", None)
            if role is None and getattr(user, "is_staff", False):
                role = "admin"
        return cls(
            correlation_id=getattr(request, "correlation_id", ""),
            actor_id=actor_id,
            role=role,
        )

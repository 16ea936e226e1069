"""Managed-auth JWT authentication backend for Django REST Framework.

The hosted backend issues HS256 access tokens signed with the project's
JWT secret.  ``sub`` is the id of the row in the ``users`` table and the
application role (admin / customer / driver) travels in the
``user_role`` claim, falling back to ``app_metadata.role``.

Security decisions
------------------
* **Fail Closed**: any decode / validation error returns 401.
* ``algorithms`` is pinned to the configured value; never derived from
  the incoming token header.
* Audience is always validated.
"""

import jwt as pyjwt
import structlog
from django.conf import settings
from jwt.exceptions import PyJWTError

from rest_framework.authentication import BaseAuthentication
from rest_framework.exceptions import AuthenticationFailed

logger = structlog.get_logger(__name__)


class ManagedAuthUser:
    """Lightweight principal for requests authenticated by the managed backend.

    The hosted auth service is the source of truth; no local Django
    ``User`` row is required.  Views read ``request.user.sub`` and
    ``request.user.role`` to make authorisation decisions.
    """

    def __init__(self, payload: dict):
        self.payload = payload
        self.sub: str = payload.get("sub", "")
        self.email: str = payload.get("email", "")
        app_metadata = payload.get("app_metadata") or {}
        self.role: str = payload.get("user_role") or app_metadata.get(
            "role", "customer"
        )

    # DRF checks
    is_authenticated = True
    is_active = True
    is_staff = False

    def __str__(self) -> str:  # pragma: no cover
        return self.sub


class ManagedAuthJSONWebTokenAuthentication(BaseAuthentication):
    """DRF authentication class that validates managed-auth Bearer tokens."""

    keyword = "Bearer"

    def authenticate(self, request):
        """Return ``(ManagedAuthUser, token)`` or ``None`` (no credentials)."""
        header = request.META.get("HTTP_AUTHORIZATION", "")
        if not header:
            return None

        token = self._extract_token(header)
        payload = self._decode_token(token)
        user = ManagedAuthUser(payload)
        logger.info("jwt_authenticated", sub=user.sub, role=user.role)
        return (user, token)

    def authenticate_header(self, request):
        """Value for the ``WWW-Authenticate`` response header on 401."""
        return f'{self.keyword} realm="api"'

    @staticmethod
    def _extract_token(header: str) -> str:
        parts = header.split()
        if len(parts) != 2 or parts[0].lower() != "bearer":
            raise AuthenticationFailed("Invalid Authorization header format.")
        return parts[1]

    @staticmethod
    def _decode_token(token: str) -> dict:
        secret = settings.MANAGED_AUTH_JWT_SECRET
        if not secret:
            raise AuthenticationFailed(
                "Managed auth is not configured (MANAGED_AUTH_JWT_SECRET missing)."
            )
        try:
            payload = pyjwt.decode(
                token,
                secret,
                algorithms=[settings.MANAGED_AUTH_ALGORITHM],
                audience=settings.MANAGED_AUTH_AUDIENCE,
                options={"require": ["sub", "exp"]},
            )
        except PyJWTError as exc:
            logger.warning("jwt_validation_failed", error=str(exc))
            raise AuthenticationFailed(f"Token validation failed: {exc}") from exc
        return payload

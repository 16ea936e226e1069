import time
from types import SimpleNamespace

import jwt as pyjwt
import pytest
from rest_framework.exceptions import AuthenticationFailed

from modules.core.authentication import (
    ManagedAuthJSONWebTokenAuthentication,
    ManagedAuthUser,
)
from modules.core.context import RequestContext
from modules.core.permissions import principal_role

pytestmark = pytest.mark.unit


def _request(authorization=""):
    meta = {"HTTP_AUTHORIZATION": authorization} if authorization else {}
    return SimpleNamespace(META=meta)


# =============================================================================
# Authentication
# =============================================================================


class TestManagedAuthentication:
    def test_no_header_is_anonymous(self):
        assert ManagedAuthJSONWebTokenAuthentication().authenticate(_request()) is None

    def test_valid_token(self, make_token):
        token = make_token(sub="abc", role="driver", email="dan@drivers.com")

        user, raw = ManagedAuthJSONWebTokenAuthentication().authenticate(
            _request(f"Bearer {token}")
        )

        assert raw == token
        assert (user.sub, user.role, user.email) == ("abc", "driver", "dan@drivers.com")

    def test_role_falls_back_to_app_metadata(self):
        user = ManagedAuthUser({"sub": "x", "app_metadata": {"role": "admin"}})
        assert user.role == "admin"

    def test_role_defaults_to_customer(self):
        assert ManagedAuthUser({"sub": "x"}).role == "customer"

    def test_wrong_scheme(self, make_token):
        with pytest.raises(AuthenticationFailed):
            ManagedAuthJSONWebTokenAuthentication().authenticate(
                _request(f"Token {make_token()}")
            )

    def test_expired_token(self, make_token):
        token = make_token(exp=int(time.time()) - 10)
        with pytest.raises(AuthenticationFailed):
            ManagedAuthJSONWebTokenAuthentication().authenticate(
                _request(f"Bearer {token}")
            )

    def test_wrong_audience(self, make_token):
        token = make_token(aud="someone-else")
        with pytest.raises(AuthenticationFailed):
            ManagedAuthJSONWebTokenAuthentication().authenticate(
                _request(f"Bearer {token}")
            )

    def test_wrong_secret(self, settings):
        token = pyjwt.encode(
            {
                "sub": "x",
                "aud": settings.MANAGED_AUTH_AUDIENCE,
                "exp": int(time.time()) + 60,
            },
            "another-secret-that-is-long-enough-000",
            algorithm="HS256",
        )
        with pytest.raises(AuthenticationFailed):
            ManagedAuthJSONWebTokenAuthentication().authenticate(
                _request(f"Bearer {token}")
            )

    def test_missing_secret_fails_closed(self, settings, make_token):
        token = make_token()
        settings.MANAGED_AUTH_JWT_SECRET = ""
        with pytest.raises(AuthenticationFailed):
            ManagedAuthJSONWebTokenAuthentication().authenticate(
                _request(f"Bearer {token}")
            )


# =============================================================================
# Request context / roles
# =============================================================================


class TestRequestContext:
    def test_anonymous_request_is_guest(self):
        request = SimpleNamespace(
            user=SimpleNamespace(is_authenticated=False), correlation_id="cid-1"
        )

        ctx = RequestContext.from_request(request)

        assert ctx.is_guest
        assert ctx.role is None
        assert ctx.correlation_id == "cid-1"

    def test_managed_principal(self):
        user = ManagedAuthUser({"sub": "user-1", "user_role": "driver"})

        ctx = RequestContext.from_request(SimpleNamespace(user=user))

        assert ctx.actor_id == "user-1"
        assert ctx.role == "driver"
        assert not ctx.is_guest

    def test_principal_role(self):
        assert principal_role(None) is None
        assert principal_role(ManagedAuthUser({"sub": "x", "user_role": "admin"})) == "admin"
        staff = SimpleNamespace(is_authenticated=True, is_staff=True)
        assert principal_role(staff) == "admin"


# =============================================================================
# Log masking
# =============================================================================


class TestSensitiveDataMasking:
    def test_masks_secrets_in_values(self):
        from config.settings import mask_sensitive_data

        event = mask_sensitive_data(
            None,
            None,
            {"event": "login", "detail": "password=hunter2 token: abc.def"},
        )

        assert "hunter2" not in event["detail"]
        assert "abc.def" not in event["detail"]
        assert "***MASKED***" in event["detail"]

    def test_leaves_other_values_alone(self):
        from config.settings import mask_sensitive_data

        event = mask_sensitive_data(None, None, {"event": "order.created", "count": 3})
        assert event == {"event": "order.created", "count": 3}

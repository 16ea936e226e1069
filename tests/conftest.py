import time
from decimal import Decimal

import jwt as pyjwt
import pytest
from django.conf import settings
from rest_framework.test import APIClient

from modules.appsettings.models import AppSettings
from modules.core.authentication import ManagedAuthUser
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.products.models import Product
from modules.products.repositories.django_repository import ProductDjangoRepository
from modules.users.models import AppUser, UserRole
from modules.users.repositories.django_repository import UserDjangoRepository


@pytest.fixture(autouse=True)
def _use_db(db):
    """Enable DB access for all tests automatically."""


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------


def _principal(user: AppUser) -> ManagedAuthUser:
    return ManagedAuthUser(
        {"sub": str(user.id), "email": user.email, "user_role": user.role}
    )


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def admin_client(admin_user):
    client = APIClient()
    client.force_authenticate(user=_principal(admin_user))
    return client


@pytest.fixture
def customer_client(customer):
    client = APIClient()
    client.force_authenticate(user=_principal(customer))
    return client


@pytest.fixture
def driver_client(driver):
    client = APIClient()
    client.force_authenticate(user=_principal(driver))
    return client


@pytest.fixture
def make_token():
    """Mint an HS256 access token the way the managed auth backend does."""

    def _make(sub="00000000-0000-0000-0000-000000000001", role="customer", **claims):
        payload = {
            "sub": sub,
            "aud": settings.MANAGED_AUTH_AUDIENCE,
            "exp": int(time.time()) + 3600,
            "user_role": role,
            **claims,
        }
        return pyjwt.encode(
            payload,
            settings.MANAGED_AUTH_JWT_SECRET,
            algorithm=settings.MANAGED_AUTH_ALGORITHM,
        )

    return _make


# ---------------------------------------------------------------------------
# Users / catalogue / settings
# ---------------------------------------------------------------------------


@pytest.fixture
def admin_user():
    return AppUser.objects.create(
        name="Alice Admin", email="admin@shop.com", role=UserRole.ADMIN
    )


@pytest.fixture
def customer():
    return AppUser.objects.create(
        name="Green Grocer",
        email="buyer@grocer.com",
        phone="+1 555 0101",
        address="1 Market Street",
        role=UserRole.CUSTOMER,
    )


@pytest.fixture
def other_customer():
    return AppUser.objects.create(
        name="Bistro Verde", email="kitchen@bistro.com", role=UserRole.CUSTOMER
    )


@pytest.fixture
def driver():
    return AppUser.objects.create(
        name="Dan Driver",
        email="dan@drivers.com",
        phone="+1 555 0199",
        role=UserRole.DRIVER,
    )


@pytest.fixture
def make_product():
    counter = {"n": 0}

    def _make(stock=10, price="2.50", **kwargs):
        counter["n"] += 1
        defaults = {
            "sku": f"VEG-{counter['n']:03d}",
            "name": f"Vegetable {counter['n']}",
            "price": Decimal(price),
            "stock": stock,
        }
        defaults.update(kwargs)
        return Product.objects.create(**defaults)

    return _make


@pytest.fixture
def tomato(make_product):
    return make_product(sku="VEG-TOM", name="Tomato", stock=10, price="2.00")


@pytest.fixture
def carrot(make_product):
    return make_product(sku="VEG-CAR", name="Carrot", stock=5, price="1.50")


@pytest.fixture
def app_settings():
    return AppSettings.objects.create(
        company_name="Fresh Fields",
        vat_percentage=Decimal("10.00"),
        default_currency="EUR",
        support_email="help@freshfields.com",
    )


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@pytest.fixture
def order_service():
    return OrderService(
        order_repository=OrderDjangoRepository(),
        product_repository=ProductDjangoRepository(),
        user_repository=UserDjangoRepository(),
    )


@pytest.fixture
def make_order(order_service):
    def _make(user=None, lines=None, address="1 Market Street"):
        dto = CreateOrderDTO(
            user_id=user.id if user else None,
            delivery_address=address,
            items=[
                CreateOrderItemDTO(
                    product_id=product.id, quantity=qty, unit_price=product.price
                )
                for product, qty in lines
            ],
        )
        return order_service.create_order(dto)

    return _make

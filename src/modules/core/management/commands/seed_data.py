from __future__ import annotations

import random
from decimal import Decimal

from django.core.management.base import BaseCommand

from modules.appsettings.models import DEFAULT_COMPANY_NAME, AppSettings
from modules.orders.constants import OrderStatus
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.products.exceptions import StockError
from modules.products.models import Product
from modules.products.repositories.django_repository import ProductDjangoRepository
from modules.users.models import AppUser, UserRole
from modules.users.repositories.django_repository import UserDjangoRepository


class Command(BaseCommand):
    help = "Seed database with realistic development data."

    def add_arguments(self, parser):
        parser.add_argument("--orders", type=int, default=30)

    def handle(self, *args, **options):
        random.seed(42)
        self.stdout.write("Seeding development data...")

        self._seed_settings()
        users = self._seed_users()
        products = self._seed_products()
        orders_created = self._seed_orders(users, products, options["orders"])

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"users={sum(len(v) for v in users.values())}, "
                f"products={len(products)}, "
                f"orders={orders_created}"
            )
        )

    def _seed_settings(self) -> None:
        if not AppSettings.objects.exists():
            AppSettings.objects.create(
                company_name=DEFAULT_COMPANY_NAME,
                vat_percentage=Decimal("10.00"),
                support_email="support@b2bvegetable.example.com",
                support_phone="+1 555 0100",
            )

    def _seed_users(self) -> dict[str, list[AppUser]]:
        self.stdout.write("Creating users...")
        seed_users = [
            ("Alice Admin", "admin@b2bvegetable.example.com", UserRole.ADMIN),
            ("Dan Driver", "dan.driver@b2bvegetable.example.com", UserRole.DRIVER),
            ("Dora Driver", "dora.driver@b2bvegetable.example.com", UserRole.DRIVER),
            ("Green Grocer Ltd", "orders@greengrocer.example.com", UserRole.CUSTOMER),
            ("Bistro Verde", "kitchen@bistroverde.example.com", UserRole.CUSTOMER),
            ("Corner Deli", "buying@cornerdeli.example.com", UserRole.CUSTOMER),
        ]
        users: dict[str, list[AppUser]] = {role: [] for role in UserRole.values}
        for name, email, role in seed_users:
            user, _ = AppUser.objects.get_or_create(
                email=email,
                defaults={"name": name, "role": role, "address": "12 Market Street"},
            )
            users[user.role].append(user)
        self.stdout.write(self.style.SUCCESS("Creating users... Done!"))
        return users

    def _seed_products(self) -> list[Product]:
        self.stdout.write("Creating products...")
        products: list[Product] = []
        catalog = [
            ("VEG-001", "Tomato", "kg", Decimal("2.40")),
            ("VEG-002", "Cucumber", "kg", Decimal("1.80")),
            ("VEG-003", "Carrot", "kg", Decimal("1.20")),
            ("VEG-004", "Red Onion", "kg", Decimal("1.50")),
            ("VEG-005", "Potato", "kg", Decimal("0.90")),
            ("VEG-006", "Bell Pepper", "kg", Decimal("3.10")),
            ("VEG-007", "Broccoli", "head", Decimal("1.70")),
            ("VEG-008", "Lettuce", "head", Decimal("1.10")),
            ("HERB-001", "Basil", "bunch", Decimal("0.80")),
            ("HERB-002", "Coriander", "bunch", Decimal("0.70")),
        ]
        for sku, name, unit, price in catalog:
            product, _ = Product.objects.get_or_create(
                sku=sku,
                defaults={
                    "name": name,
                    "unit": unit,
                    "price": price,
                    "stock": random.randint(50, 400),
                },
            )
            products.append(product)
        self.stdout.write(self.style.SUCCESS("Creating products... Done!"))
        return products

    def _seed_orders(
        self,
        users: dict[str, list[AppUser]],
        products: list[Product],
        count: int,
    ) -> int:
        self.stdout.write("Creating orders...")
        customers = users[UserRole.CUSTOMER]
        drivers = users[UserRole.DRIVER]
        admin = next(iter(users[UserRole.ADMIN]), None)
        if not customers or not products:
            self.stdout.write(self.style.WARNING("Skipping orders (no customers/products)."))
            return 0

        service = OrderService(
            order_repository=OrderDjangoRepository(),
            product_repository=ProductDjangoRepository(),
            user_repository=UserDjangoRepository(),
        )
        outcomes = ["pending", "processing", "completed", "cancelled"]
        weights = [0.3, 0.3, 0.25, 0.15]
        created = 0

        for i in range(count):
            customer = random.choice(customers + [None])
            lines = random.sample(products, k=random.randint(1, 4))
            dto = CreateOrderDTO(
                user_id=customer.id if customer else None,
                delivery_address=customer.address if customer else "Guest pickup",
                notes=f"Seed order {i + 1}",
                items=[
                    CreateOrderItemDTO(
                        product_id=p.id,
                        quantity=random.randint(1, 10),
                        unit_price=p.price,
                    )
                    for p in lines
                ],
            )
            try:
                order = service.create_order(dto)
            except StockError as exc:
                self.stdout.write(self.style.WARNING(f"Skipped order {i + 1}: {exc}"))
                continue
            created += 1

            outcome = random.choices(outcomes, weights=weights, k=1)[0]
            if outcome == "cancelled":
                service.cancel_order(str(order.id), "Seeded cancellation")
                continue
            if outcome == "pending":
                continue
            if drivers:
                service.assign_driver_to_order(
                    str(order.id),
                    str(random.choice(drivers).id),
                    admin_id=str(admin.id) if admin else None,
                )
            service.update_order_status(str(order.id), OrderStatus.PROCESSING)
            if outcome == "completed":
                service.update_order_status(str(order.id), OrderStatus.COMPLETED)

        self.stdout.write(self.style.SUCCESS("Creating orders... Done!"))
        return created

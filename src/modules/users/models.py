"""Application user mirrored from the managed backend's ``users`` table.

Authentication lives in the hosted auth service; this table only carries
the profile and authorisation data the ordering workflow reads: the
customer's e-mail for completion notices, drivers for assignment, and
active admins for completion reports.
"""

from __future__ import annotations

from django.db import models

from modules.core.models import BaseModel


class UserRole(models.TextChoices):
    ADMIN = "admin", "Admin"
    CUSTOMER = "customer", "Customer"
    DRIVER = "driver", "Driver"


class UserStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"


class AppUser(BaseModel):
    name = models.CharField(max_length=255, blank=True, default="")
    email = models.EmailField(max_length=254, blank=True, default="")
    phone = models.CharField(max_length=32, blank=True, default="")
    address = models.TextField(blank=True, default="")
    role = models.CharField(
        max_length=20,
        choices=UserRole.choices,
        default=UserRole.CUSTOMER,
    )
    status = models.CharField(
        max_length=20,
        choices=UserStatus.choices,
        default=UserStatus.ACTIVE,
    )

    class Meta:
        db_table = "users"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["role", "status"], name="users_role_status_idx"),
        ]

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE

    def to_contact(self) -> dict:
        """Contact card embedded in notification payloads."""
        return {
            "id": str(self.id),
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
        }

    def __str__(self) -> str:
        return f"{self.name or self.email} ({self.role})"

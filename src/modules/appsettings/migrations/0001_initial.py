from decimal import Decimal

import django.core.validators
import uuid6
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="AppSettings",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid6.uuid7,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company_name", models.CharField(blank=True, default="", max_length=255)),
                ("logo_url", models.URLField(blank=True, default="", max_length=500)),
                (
                    "vat_percentage",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        max_digits=5,
                        validators=[
                            django.core.validators.MinValueValidator(Decimal("0")),
                            django.core.validators.MaxValueValidator(Decimal("100")),
                        ],
                    ),
                ),
                (
                    "default_currency",
                    models.CharField(
                        choices=[
                            ("USD", "US Dollar"),
                            ("EUR", "Euro"),
                            ("VND", "Vietnamese Dong"),
                        ],
                        default="USD",
                        max_length=3,
                    ),
                ),
                ("default_language", models.CharField(default="en", max_length=8)),
                ("support_email", models.EmailField(blank=True, default="", max_length=254)),
                ("support_phone", models.CharField(blank=True, default="", max_length=32)),
            ],
            options={
                "db_table": "settings",
                "ordering": ["created_at"],
                "verbose_name_plural": "app settings",
            },
        ),
    ]

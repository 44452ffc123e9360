from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Property",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "Draft"),
                            ("active", "Active"),
                            ("inactive", "Inactive"),
                            ("blocked", "Blocked"),
                        ],
                        default="active",
                        max_length=20,
                    ),
                ),
                (
                    "base_price",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Nightly price used when a date has no override.",
                        max_digits=10,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                    ),
                ),
                ("currency", models.CharField(default="USD", max_length=3)),
                (
                    "max_adults",
                    models.PositiveSmallIntegerField(
                        default=0,
                        help_text="0 means no limit when max_children is also 0.",
                    ),
                ),
                ("max_children", models.PositiveSmallIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "owner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="properties",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Property",
                "verbose_name_plural": "Properties",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["owner", "status"], name="property_owner_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="AvailabilityDay",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("date", models.DateField()),
                ("is_available", models.BooleanField(default=True)),
                (
                    "price_override",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=10,
                        null=True,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                    ),
                ),
                ("min_stay", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("max_stay", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("is_instant_book", models.BooleanField(blank=True, null=True)),
                ("blocked_reason", models.CharField(blank=True, max_length=255, null=True)),
                ("check_in_allowed", models.BooleanField(blank=True, null=True)),
                ("check_out_allowed", models.BooleanField(blank=True, null=True)),
                ("notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "property",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="availability_days",
                        to="properties.property",
                    ),
                ),
            ],
            options={
                "verbose_name": "Availability day",
                "verbose_name_plural": "Availability days",
                "ordering": ["property", "date"],
                "indexes": [
                    models.Index(fields=["property", "is_available", "date"], name="availability_day_open_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("property", "date"),
                        name="availability_day_unique_per_property",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("min_stay__isnull", True),
                            ("max_stay__isnull", True),
                            ("max_stay__gte", models.F("min_stay")),
                            _connector="OR",
                        ),
                        name="availability_day_stay_limits",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="CancellationPolicy",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "policy_type",
                    models.CharField(
                        choices=[
                            ("FLEXIBLE", "Flexible"),
                            ("MODERATE", "Moderate"),
                            ("STRICT", "Strict"),
                            ("SUPER_STRICT_30", "Super Strict 30"),
                            ("SUPER_STRICT_60", "Super Strict 60"),
                            ("NON_REFUNDABLE", "Non-refundable"),
                        ],
                        max_length=20,
                    ),
                ),
                (
                    "refund_percentage",
                    models.DecimalField(
                        decimal_places=2,
                        max_digits=5,
                        validators=[
                            django.core.validators.MinValueValidator(Decimal("0")),
                            django.core.validators.MaxValueValidator(Decimal("100")),
                        ],
                    ),
                ),
                ("days_before_checkin", models.PositiveSmallIntegerField()),
                ("description", models.CharField(blank=True, max_length=500)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "property",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="cancellation_policies",
                        to="properties.property",
                    ),
                ),
            ],
            options={
                "verbose_name": "Cancellation policy",
                "verbose_name_plural": "Cancellation policies",
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("is_active", True)),
                        fields=("property",),
                        name="cancellation_policy_one_active",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("refund_percentage__gte", 0), ("refund_percentage__lte", 100)),
                        name="cancellation_policy_refund_range",
                    ),
                ],
            },
        ),
    ]

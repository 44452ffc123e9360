import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("bookings", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="BookingGuest",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("full_name", models.CharField(max_length=100)),
                ("email", models.EmailField(max_length=100)),
                ("phone", models.CharField(blank=True, max_length=20)),
                ("age", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("is_primary", models.BooleanField(default=False)),
                ("special_requests", models.CharField(blank=True, max_length=500)),
                ("dietary_restrictions", models.CharField(blank=True, max_length=300)),
                ("emergency_contact_name", models.CharField(blank=True, max_length=100)),
                ("emergency_contact_phone", models.CharField(blank=True, max_length=20)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "booking",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="roster",
                        to="bookings.booking",
                    ),
                ),
            ],
            options={
                "verbose_name": "Booking guest",
                "verbose_name_plural": "Booking guests",
                "ordering": ["booking", "-is_primary", "pk"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("is_primary", True)),
                        fields=("booking",),
                        name="booking_guest_one_primary",
                    ),
                ],
            },
        ),
    ]

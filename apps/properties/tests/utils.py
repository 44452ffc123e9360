"""Object builders shared by the reservation engine tests."""

from __future__ import annotations

from decimal import Decimal

from django.contrib.auth import get_user_model

from apps.properties.models import Property

User = get_user_model()


def make_user(username: str, **extra):
    return User.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password="StrongPass123",
        **extra,
    )


def make_property(owner, **overrides) -> Property:
    values = {
        "owner": owner,
        "title": "Современная квартира",
        "description": "Просторная квартира в центре города.",
        "status": Property.Status.ACTIVE,
        "base_price": Decimal("100.00"),
        "currency": "USD",
        "max_adults": 2,
        "max_children": 1,
    }
    values.update(overrides)
    return Property.objects.create(**values)

"""Booking builders for tests that need rows without running the lifecycle."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from apps.bookings.models import Booking
from apps.properties.models import Property


def make_booking(
    property_obj: Property,
    guest,
    check_in: date,
    check_out: date,
    status: str = Booking.Status.CONFIRMED.value,
    total_amount: Decimal = Decimal("300.00"),
) -> Booking:
    return Booking.objects.create(
        property=property_obj,
        guest=guest,
        host=property_obj.owner,
        confirmation_code=Booking.generate_confirmation_code(),
        check_in=check_in,
        check_out=check_out,
        status=status,
        nightly_rate=Decimal("100.00"),
        total_amount=total_amount,
        currency=property_obj.currency,
    )

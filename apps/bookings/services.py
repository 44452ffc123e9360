"""Domain services for booking workflows."""

from __future__ import annotations

import dataclasses
from datetime import date
from typing import Optional

from apps.bookings.domain.availability import AvailabilityResult, evaluate_stay
from apps.bookings.domain.inventory import Inventory
from apps.properties.models import Property
from apps.properties.services import (
    lock_queryset_if_possible,
    availability_store,
    booking_block_reason,
    get_property,
)
from shared.domain.exceptions import ValidationError
from shared.domain.value_objects import DateRange

from .models import Booking


def stay_range(check_in: date, check_out: date) -> DateRange:
    try:
        return DateRange(check_in, check_out)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Check-out date must be after check-in date") from exc


def validate_occupancy(adults: int, children: int) -> None:
    if adults < 1:
        raise ValidationError("At least one adult is required")
    if children < 0:
        raise ValidationError("Children count cannot be negative")


def load_inventory(property_id: int, stay: DateRange, *, exclude_booking_id: Optional[int] = None) -> Inventory:
    """Confirmed and checked-in bookings overlapping ``stay``."""

    bookings = Booking.objects.filter(property_id=property_id).blocking().overlapping(
        stay.start_date, stay.end_date
    )
    if exclude_booking_id is not None:
        bookings = bookings.exclude(pk=exclude_booking_id)
    bookings = lock_queryset_if_possible(bookings)
    return Inventory.from_ranges(property_id, bookings.values_list("pk", "check_in", "check_out"))


def check_availability(
    property_id: int,
    check_in: date,
    check_out: date,
    adults: int = 1,
    children: int = 0,
    *,
    exclude_booking_id: Optional[int] = None,
    property_obj: Optional[Property] = None,
) -> AvailabilityResult:
    """Decide whether a stay can be booked and what it costs.

    Read-only. When ``exclude_booking_id`` is given, that booking's own
    holds do not count against the stay.
    """

    stay = stay_range(check_in, check_out)
    validate_occupancy(adults, children)
    if property_obj is None:
        property_obj = get_property(property_id)

    rules = availability_store.day_rules(property_obj.pk, stay)
    if exclude_booking_id is not None:
        own_reason = booking_block_reason(exclude_booking_id)
        rules = {
            day: dataclasses.replace(rule, is_available=True, blocked_reason=None)
            if rule.blocked_reason == own_reason
            else rule
            for day, rule in rules.items()
        }

    inventory = load_inventory(property_obj.pk, stay, exclude_booking_id=exclude_booking_id)
    return evaluate_stay(property_obj.to_terms(), stay, rules, inventory, adults=adults, children=children)

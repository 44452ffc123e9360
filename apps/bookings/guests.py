"""Guest roster services.

The booking's guest account manages the list of people staying under the
booking; the host can read it and correct entries. The roster counts
against the property's capacity together with the booking's adults and
children, and at most one entry is the primary guest.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping

from django.db import transaction  # type: ignore

from apps.bookings.domain.entities import BookingStatus
from apps.properties.services import lock_queryset_if_possible
from shared.domain.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from shared.domain.value_objects import Actor

from .models import Booking, BookingGuest
from .serializers import BookingGuestInputSerializer

logger = logging.getLogger(__name__)

CLOSED_STATUSES = (BookingStatus.CANCELLED, BookingStatus.COMPLETED)


def _load_booking(booking_id: int, *, lock: bool = False) -> Booking:
    queryset = Booking.objects.select_related("property").filter(pk=booking_id)
    if lock:
        queryset = lock_queryset_if_possible(queryset)
    booking = queryset.first()
    if booking is None:
        raise NotFoundError(f"Booking {booking_id} not found")
    return booking


def _ensure_guest(booking: Booking, actor: Actor) -> None:
    if not (booking.is_guest(actor) or actor.is_staff):
        raise PermissionDeniedError("Only the booking guest can manage its guest list")


def _ensure_involved(booking: Booking, actor: Actor) -> None:
    if not (booking.involves(actor) or actor.is_staff):
        raise PermissionDeniedError("You are not allowed to view this booking")


def _ensure_open(booking: Booking) -> None:
    if booking.current_status() in CLOSED_STATUSES:
        raise ValidationError("Cannot change guests of a cancelled or completed booking")


def _ensure_capacity(booking: Booking, adding: int) -> None:
    limit = booking.property.max_guests
    if not limit:
        return
    occupants = booking.adults + booking.children + booking.roster.count() + adding
    if occupants > limit:
        raise ValidationError(
            f"Adding {adding} guest(s) would exceed the property capacity of {limit}",
            details={"capacity": limit, "requested": occupants},
        )


def _parse_guest(data: Mapping, *, partial: bool = False) -> dict:
    serializer = BookingGuestInputSerializer(data=dict(data), partial=partial)
    if not serializer.is_valid():
        raise ValidationError("Invalid guest details", details=serializer.errors)
    return dict(serializer.validated_data)


def _get_entry(booking: Booking, guest_id: int) -> BookingGuest:
    entry = booking.roster.filter(pk=guest_id).first()
    if entry is None:
        raise NotFoundError(f"Guest {guest_id} not found on booking {booking.pk}")
    return entry


def add_guest(booking_id: int, actor: Actor, data: Mapping) -> BookingGuest:
    """Add one person to the booking's roster."""

    values = _parse_guest(data)
    with transaction.atomic():
        booking = _load_booking(booking_id, lock=True)
        _ensure_guest(booking, actor)
        _ensure_open(booking)
        _ensure_capacity(booking, 1)
        if values.get("is_primary") and booking.roster.filter(is_primary=True).exists():
            raise ValidationError("Booking already has a primary guest")
        entry = BookingGuest.objects.create(booking=booking, **values)

    logger.info(f"Added guest {entry.pk} to booking {booking_id}")
    return entry


def add_guests(booking_id: int, actor: Actor, payloads: Iterable[Mapping]) -> list[BookingGuest]:
    """Add several people at once; either all of them are added or none."""

    entries = [_parse_guest(data) for data in payloads]
    if not entries:
        raise ValidationError("At least one guest is required")
    primaries = sum(1 for values in entries if values.get("is_primary"))
    if primaries > 1:
        raise ValidationError("Cannot add more than one primary guest")

    with transaction.atomic():
        booking = _load_booking(booking_id, lock=True)
        _ensure_guest(booking, actor)
        _ensure_open(booking)
        _ensure_capacity(booking, len(entries))
        if primaries and booking.roster.filter(is_primary=True).exists():
            raise ValidationError("Booking already has a primary guest")
        created = [BookingGuest.objects.create(booking=booking, **values) for values in entries]

    logger.info(f"Added {len(created)} guest(s) to booking {booking_id}")
    return created


def update_guest(booking_id: int, guest_id: int, actor: Actor, data: Mapping) -> BookingGuest:
    """Change a roster entry; the guest and the host may both correct details."""

    changes = _parse_guest(data, partial=True)
    with transaction.atomic():
        booking = _load_booking(booking_id, lock=True)
        _ensure_involved(booking, actor)
        if booking.current_status() == BookingStatus.CANCELLED:
            raise ValidationError("Cannot change guests of a cancelled booking")
        entry = _get_entry(booking, guest_id)
        if changes.get("is_primary") and booking.roster.filter(is_primary=True).exclude(pk=entry.pk).exists():
            raise ValidationError("Another guest is already set as primary")
        for field, value in changes.items():
            setattr(entry, field, value)
        if changes:
            entry.save(update_fields=[*changes, "updated_at"])

    logger.info(f"Updated guest {guest_id} of booking {booking_id}")
    return entry


def remove_guest(booking_id: int, guest_id: int, actor: Actor) -> None:
    with transaction.atomic():
        booking = _load_booking(booking_id, lock=True)
        _ensure_guest(booking, actor)
        _ensure_open(booking)
        entry = _get_entry(booking, guest_id)
        if entry.is_primary and booking.roster.exclude(pk=entry.pk).exists():
            raise ValidationError("Cannot remove the primary guest while other guests exist")
        entry.delete()

    logger.info(f"Removed guest {guest_id} from booking {booking_id}")


def list_guests(booking_id: int, actor: Actor) -> list[BookingGuest]:
    booking = _load_booking(booking_id)
    _ensure_involved(booking, actor)
    return list(booking.roster.all())


def get_guest(booking_id: int, guest_id: int, actor: Actor) -> BookingGuest:
    booking = _load_booking(booking_id)
    _ensure_involved(booking, actor)
    return _get_entry(booking, guest_id)

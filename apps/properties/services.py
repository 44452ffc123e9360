"""Availability calendar services.

``AvailabilityStore`` owns the per-date records of a property and the
reserved nights held by bookings. The reservation lifecycle talks to it
through ``reserve`` and ``release``; hosts edit the calendar through the
owner-checked operations at the bottom of the class.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Mapping, Optional

from django.db import IntegrityError, transaction  # type: ignore
from django.db.utils import NotSupportedError  # type: ignore
from django.utils import timezone  # type: ignore

from apps.bookings.domain.availability import DayRule
from apps.bookings.models import ReservedNight
from shared.application.clock import system_clock
from shared.domain.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from shared.domain.value_objects import Actor, DateRange

from .models import AvailabilityDay, Property
from .serializers import AvailabilityDayFieldsSerializer, AvailabilityEntrySerializer

logger = logging.getLogger(__name__)

HOST_BLOCK_REASON = "Blocked by host"


def booking_block_reason(booking_id: int) -> str:
    """Reason written on day-records blocked for a booking."""

    return f"Booked (Booking #{booking_id})"


def lock_queryset_if_possible(queryset):
    """Apply select_for_update when inside transaction.atomic()."""

    if not transaction.get_connection().in_atomic_block:
        return queryset

    try:
        return queryset.select_for_update()
    except NotSupportedError:
        return queryset


def get_property(property_id: int, *, lock: bool = False) -> Property:
    queryset = Property.objects.filter(pk=property_id)
    if lock:
        queryset = lock_queryset_if_possible(queryset)
    property_obj = queryset.first()
    if property_obj is None:
        raise NotFoundError(f"Property {property_id} not found")
    return property_obj


def _inclusive_days(start: date, end: date) -> list[date]:
    if start > end:
        raise ValidationError("Start date must not be after end date")
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


@dataclass(frozen=True)
class ReservationToken:
    """Proof that a booking holds a set of nights."""

    property_id: int
    booking_id: int
    dates: DateRange
    nights: tuple[date, ...]


class AvailabilityStore:
    """Per-date availability of properties."""

    def __init__(self, clock=system_clock):
        self.clock = clock

    # ------------------------------------------------------------------
    # Core reads and writes
    # ------------------------------------------------------------------

    def get(self, property_id: int, day: date) -> Optional[AvailabilityDay]:
        """Day-record for a date, or None when the property defaults apply."""

        return AvailabilityDay.objects.filter(property_id=property_id, date=day).first()

    def get_range(self, property_id: int, start: date, end: date) -> dict[date, AvailabilityDay]:
        """Day-records in [start, end) keyed by date, in date order."""

        records = AvailabilityDay.objects.filter(
            property_id=property_id,
            date__gte=start,
            date__lt=end,
        ).order_by("date")
        return {record.date: record for record in records}

    def day_rules(self, property_id: int, stay: DateRange) -> dict[date, DayRule]:
        return {
            day: record.to_rule()
            for day, record in self.get_range(property_id, stay.start_date, stay.end_date).items()
        }

    def held_nights(self, property_id: int, days: Iterable[date]) -> dict[date, int]:
        """Nights among ``days`` held by a booking, mapped to the booking id."""

        rows = ReservedNight.objects.filter(property_id=property_id, night__in=list(days))
        return {night: booking_id for night, booking_id in rows.values_list("night", "booking_id")}

    def upsert(self, property_id: int, day: date, fields: Mapping) -> AvailabilityDay:
        """Create or update the day-record of ``day`` with validated fields."""

        serializer = AvailabilityDayFieldsSerializer(data=dict(fields), partial=True)
        if not serializer.is_valid():
            raise ValidationError("Invalid availability data", details=serializer.errors)
        data = serializer.validated_data

        with transaction.atomic():
            get_property(property_id)
            # a held day stays owned by its booking until released
            touches_block = "is_available" in data or "blocked_reason" in data
            if touches_block and day in self.held_nights(property_id, [day]):
                raise ConflictError(f"Date {day.isoformat()} is reserved by a booking")

            record, created = AvailabilityDay.objects.get_or_create(property_id=property_id, date=day)
            for name, value in data.items():
                setattr(record, name, value)
            if data.get("is_available") is True and "blocked_reason" not in data:
                record.blocked_reason = None

            if record.min_stay is not None and record.max_stay is not None and record.min_stay > record.max_stay:
                raise ValidationError("Minimum stay cannot exceed maximum stay.")
            record.save()

        logger.info(f"{'Created' if created else 'Updated'} availability for property {property_id} on {day}")
        return record

    def set_range_availability(
        self,
        property_id: int,
        start: date,
        end: date,
        available: bool,
        reason: Optional[str] = None,
    ) -> list[AvailabilityDay]:
        """Open or close every day of [start, end], end inclusive.

        Idempotent. Missing records are created. Days reserved by a booking
        are left untouched.
        """

        days = _inclusive_days(start, end)

        with transaction.atomic():
            get_property(property_id)
            held = self.held_nights(property_id, days)
            existing = self.get_range(property_id, start, end + timedelta(days=1))
            now = timezone.now()
            to_create: list[AvailabilityDay] = []
            to_update: list[AvailabilityDay] = []

            for day in days:
                if day in held:
                    logger.info(f"Skipping {day} of property {property_id}: reserved by booking {held[day]}")
                    continue
                record = existing.get(day)
                if record is None:
                    record = AvailabilityDay(property_id=property_id, date=day)
                    to_create.append(record)
                else:
                    to_update.append(record)
                record.is_available = available
                record.blocked_reason = None if available else reason
                record.updated_at = now

            AvailabilityDay.objects.bulk_create(to_create)
            AvailabilityDay.objects.bulk_update(to_update, ["is_available", "blocked_reason", "updated_at"])

        return sorted(to_create + to_update, key=lambda record: record.date)

    def reserve(self, property_id: int, stay: DateRange, booking_id: int) -> ReservationToken:
        """Hold every night of ``stay`` for a booking and block the days.

        Idempotent for the same booking. Raises ConflictError when another
        booking holds any of the nights.
        """

        nights = list(stay.nights())

        with transaction.atomic():
            held = lock_queryset_if_possible(
                ReservedNight.objects.filter(property_id=property_id, night__in=nights)
            )
            own: set[date] = set()
            foreign: list[date] = []
            for row in held:
                if row.booking_id == booking_id:
                    own.add(row.night)
                else:
                    foreign.append(row.night)
            if foreign:
                raise ConflictError(
                    "Dates are already reserved by another booking",
                    details=[night.isoformat() for night in sorted(foreign)],
                )

            missing = [
                ReservedNight(property_id=property_id, booking_id=booking_id, night=night)
                for night in nights
                if night not in own
            ]
            try:
                with transaction.atomic():
                    ReservedNight.objects.bulk_create(missing)
            except IntegrityError as exc:
                raise ConflictError("Dates were reserved by another booking") from exc

            self._block_days(property_id, nights, booking_block_reason(booking_id))

        logger.info(f"Reserved {len(nights)} nights of property {property_id} for booking {booking_id}")
        return ReservationToken(
            property_id=property_id,
            booking_id=booking_id,
            dates=stay,
            nights=tuple(nights),
        )

    def release(self, property_id: int, stay: DateRange, booking_id: int) -> list[AvailabilityDay]:
        """Drop a booking's nights and reopen the days blocked for it.

        Only days whose reason names this booking are reopened.
        """

        reason = booking_block_reason(booking_id)

        with transaction.atomic():
            ReservedNight.objects.filter(property_id=property_id, booking_id=booking_id).delete()
            records = list(
                lock_queryset_if_possible(
                    AvailabilityDay.objects.filter(
                        property_id=property_id,
                        date__gte=stay.start_date,
                        date__lt=stay.end_date,
                        blocked_reason=reason,
                    )
                )
            )
            now = timezone.now()
            for record in records:
                record.is_available = True
                record.blocked_reason = None
                record.updated_at = now
            AvailabilityDay.objects.bulk_update(records, ["is_available", "blocked_reason", "updated_at"])

        logger.info(f"Released {len(records)} days of property {property_id} held by booking {booking_id}")
        return records

    def purge_before(self, cutoff: date) -> dict[str, int]:
        """Delete day-records and reserved nights strictly before ``cutoff``."""

        with transaction.atomic():
            days_deleted, _ = AvailabilityDay.objects.filter(date__lt=cutoff).delete()
            nights_deleted, _ = ReservedNight.objects.filter(night__lt=cutoff).delete()
        return {"days": days_deleted, "nights": nights_deleted}

    def _block_days(self, property_id: int, days: list[date], reason: str) -> None:
        existing = self.get_range(property_id, days[0], days[-1] + timedelta(days=1))
        now = timezone.now()
        to_create: list[AvailabilityDay] = []
        to_update: list[AvailabilityDay] = []
        for day in days:
            record = existing.get(day)
            if record is None:
                to_create.append(
                    AvailabilityDay(property_id=property_id, date=day, is_available=False, blocked_reason=reason)
                )
                continue
            record.is_available = False
            record.blocked_reason = reason
            record.updated_at = now
            to_update.append(record)
        AvailabilityDay.objects.bulk_create(to_create)
        AvailabilityDay.objects.bulk_update(to_update, ["is_available", "blocked_reason", "updated_at"])

    # ------------------------------------------------------------------
    # Host operations
    # ------------------------------------------------------------------

    def _owned_property(self, property_id: int, actor: Actor) -> Property:
        property_obj = get_property(property_id)
        if not (property_obj.is_owned_by(actor.user_id) or actor.is_staff):
            raise PermissionDeniedError("Only the property owner can manage availability")
        return property_obj

    def set_availability(self, property_id: int, actor: Actor, day: date, fields: Mapping) -> AvailabilityDay:
        self._owned_property(property_id, actor)
        return self.upsert(property_id, day, fields)

    def bulk_set_availability(self, property_id: int, actor: Actor, entries: list[Mapping]) -> list[AvailabilityDay]:
        """Apply many day edits at once; nothing is saved if one fails."""

        self._owned_property(property_id, actor)
        serializer = AvailabilityEntrySerializer(data=list(entries), many=True, partial=True)
        if not serializer.is_valid():
            raise ValidationError("Invalid availability data", details=serializer.errors)

        dates = [entry["date"] for entry in serializer.validated_data]
        if len(set(dates)) != len(dates):
            raise ValidationError("Each date may appear only once in a bulk update")

        with transaction.atomic():
            return [self.upsert(property_id, day, entry) for day, entry in zip(dates, entries)]

    def block_dates(
        self,
        property_id: int,
        actor: Actor,
        start: date,
        end: date,
        reason: Optional[str] = None,
    ) -> list[AvailabilityDay]:
        self._owned_property(property_id, actor)
        return self.set_range_availability(property_id, start, end, False, reason or HOST_BLOCK_REASON)

    def release_dates(self, property_id: int, actor: Actor, start: date, end: date) -> list[AvailabilityDay]:
        self._owned_property(property_id, actor)
        return self.set_range_availability(property_id, start, end, True)

    def delete_day(self, property_id: int, actor: Actor, day: date) -> None:
        self._owned_property(property_id, actor)
        with transaction.atomic():
            if day in self.held_nights(property_id, [day]):
                raise ConflictError(f"Date {day.isoformat()} is reserved by a booking")
            deleted, _ = AvailabilityDay.objects.filter(property_id=property_id, date=day).delete()
        if not deleted:
            raise NotFoundError(f"No availability record for {day.isoformat()}")

    # ------------------------------------------------------------------
    # Calendar reads
    # ------------------------------------------------------------------

    def _window(self, start: Optional[date], end: Optional[date]) -> tuple[date, date]:
        from apps.bookings.conf import engine_setting

        start = start or self.clock.today()
        end = end or start + timedelta(days=engine_setting("CALENDAR_WINDOW_DAYS"))
        if start > end:
            raise ValidationError("Start date must not be after end date")
        return start, end

    def calendar(self, property_id: int, start: Optional[date] = None, end: Optional[date] = None) -> list[AvailabilityDay]:
        """Day-records in [start, end], end inclusive."""

        get_property(property_id)
        start, end = self._window(start, end)
        return list(self.get_range(property_id, start, end + timedelta(days=1)).values())

    def blocked_dates(self, property_id: int, start: Optional[date] = None, end: Optional[date] = None) -> list[AvailabilityDay]:
        return [record for record in self.calendar(property_id, start, end) if not record.is_available]

    def available_dates(
        self,
        property_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
        *,
        instant_only: bool = False,
    ) -> list[date]:
        """Dates of [start, end] a new stay could use, end inclusive."""

        get_property(property_id)
        start, end = self._window(start, end)
        days = _inclusive_days(start, end)
        records = self.get_range(property_id, start, end + timedelta(days=1))
        held = self.held_nights(property_id, days)

        result = []
        for day in days:
            if day in held:
                continue
            record = records.get(day)
            if record is not None and not record.is_available:
                continue
            if instant_only and record is not None and record.is_instant_book is False:
                continue
            result.append(day)
        return result


availability_store = AvailabilityStore()

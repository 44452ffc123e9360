"""Tests for the availability calendar and reserved nights."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

from django.test import TestCase

from apps.bookings.models import ReservedNight
from apps.bookings.tests.utils import make_booking
from apps.properties.models import AvailabilityDay
from apps.properties.serializers import AvailabilityDaySerializer
from apps.properties.services import AvailabilityStore, booking_block_reason
from shared.application.clock import FixedClock
from shared.domain.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from shared.domain.value_objects import Actor, DateRange

from .utils import make_property, make_user

TODAY = date(2030, 1, 10)


def day(offset: int) -> date:
    return TODAY + timedelta(days=offset)


class AvailabilityStoreTestCase(TestCase):
    def setUp(self) -> None:
        self.owner = make_user("host")
        self.guest = make_user("guest")
        self.other_guest = make_user("other-guest")
        self.property = make_property(self.owner)
        self.store = AvailabilityStore(FixedClock(TODAY))
        self.owner_actor = Actor.for_user(self.owner)

    def _reserve(self, guest, check_in: date, check_out: date):
        booking = make_booking(self.property, guest, check_in, check_out)
        self.store.reserve(self.property.pk, DateRange(check_in, check_out), booking.pk)
        return booking


class ReserveReleaseTests(AvailabilityStoreTestCase):
    def test_reserve_holds_nights_and_blocks_days(self) -> None:
        booking = make_booking(self.property, self.guest, day(1), day(4))

        token = self.store.reserve(self.property.pk, DateRange(day(1), day(4)), booking.pk)

        self.assertEqual(token.nights, (day(1), day(2), day(3)))
        self.assertEqual(ReservedNight.objects.filter(booking=booking).count(), 3)
        records = self.store.get_range(self.property.pk, day(1), day(4))
        self.assertEqual(list(records), [day(1), day(2), day(3)])
        for record in records.values():
            self.assertFalse(record.is_available)
            self.assertEqual(record.blocked_reason, f"Booked (Booking #{booking.pk})")
        self.assertIsNone(self.store.get(self.property.pk, day(4)))

    def test_reserve_is_idempotent_for_the_same_booking(self) -> None:
        booking = self._reserve(self.guest, day(1), day(4))

        self.store.reserve(self.property.pk, DateRange(day(1), day(4)), booking.pk)

        self.assertEqual(ReservedNight.objects.filter(booking=booking).count(), 3)
        self.assertEqual(AvailabilityDay.objects.filter(property=self.property).count(), 3)

    def test_reserve_rejects_nights_held_by_another_booking(self) -> None:
        self._reserve(self.guest, day(1), day(4))
        intruder = make_booking(self.property, self.other_guest, day(3), day(5))

        with self.assertRaises(ConflictError) as ctx:
            self.store.reserve(self.property.pk, DateRange(day(3), day(5)), intruder.pk)

        self.assertEqual(ctx.exception.details, [day(3).isoformat()])
        self.assertFalse(ReservedNight.objects.filter(booking=intruder).exists())
        self.assertIsNone(self.store.get(self.property.pk, day(4)))

    def test_adjacent_stays_can_both_be_reserved(self) -> None:
        first = self._reserve(self.guest, day(1), day(3))
        second = self._reserve(self.other_guest, day(3), day(5))

        self.assertEqual(ReservedNight.objects.filter(booking=first).count(), 2)
        self.assertEqual(ReservedNight.objects.filter(booking=second).count(), 2)

    def test_release_reopens_only_days_of_that_booking(self) -> None:
        first = self._reserve(self.guest, day(1), day(3))
        second = self._reserve(self.other_guest, day(3), day(5))

        released = self.store.release(self.property.pk, DateRange(day(1), day(5)), first.pk)

        self.assertEqual([record.date for record in released], [day(1), day(2)])
        self.assertFalse(ReservedNight.objects.filter(booking=first).exists())
        self.assertEqual(ReservedNight.objects.filter(booking=second).count(), 2)
        records = self.store.get_range(self.property.pk, day(1), day(5))
        self.assertTrue(records[day(1)].is_available)
        self.assertIsNone(records[day(2)].blocked_reason)
        self.assertFalse(records[day(3)].is_available)
        self.assertEqual(records[day(4)].blocked_reason, booking_block_reason(second.pk))

    def test_release_keeps_host_blocks(self) -> None:
        booking = self._reserve(self.guest, day(1), day(3))
        self.store.set_range_availability(self.property.pk, day(3), day(3), False, "Renovation")

        self.store.release(self.property.pk, DateRange(day(1), day(4)), booking.pk)

        record = self.store.get(self.property.pk, day(3))
        self.assertFalse(record.is_available)
        self.assertEqual(record.blocked_reason, "Renovation")

    def test_purge_before_drops_past_records(self) -> None:
        self._reserve(self.guest, day(-3), day(-1))
        self.store.upsert(self.property.pk, day(1), {"price_override": "120.00"})

        deleted = self.store.purge_before(TODAY)

        self.assertEqual(deleted, {"days": 2, "nights": 2})
        self.assertIsNotNone(self.store.get(self.property.pk, day(1)))
        self.assertFalse(ReservedNight.objects.exists())


class UpsertTests(AvailabilityStoreTestCase):
    def test_upsert_creates_then_updates_the_record(self) -> None:
        created = self.store.upsert(self.property.pk, day(1), {"price_override": "150.00", "min_stay": 2})
        updated = self.store.upsert(
            self.property.pk,
            day(1),
            {"is_available": False, "blocked_reason": "Owner stay"},
        )

        self.assertEqual(created.pk, updated.pk)
        self.assertEqual(updated.price_override, Decimal("150.00"))
        self.assertEqual(updated.min_stay, 2)
        self.assertFalse(updated.is_available)
        self.assertEqual(updated.blocked_reason, "Owner stay")

    def test_reopening_clears_the_blocked_reason(self) -> None:
        self.store.upsert(self.property.pk, day(1), {"is_available": False, "blocked_reason": "Owner stay"})

        record = self.store.upsert(self.property.pk, day(1), {"is_available": True})

        self.assertTrue(record.is_available)
        self.assertIsNone(record.blocked_reason)

    def test_upsert_rejects_inconsistent_stay_limits(self) -> None:
        with self.assertRaises(ValidationError):
            self.store.upsert(self.property.pk, day(1), {"min_stay": 5, "max_stay": 2})
        self.assertFalse(AvailabilityDay.objects.exists())

        self.store.upsert(self.property.pk, day(1), {"max_stay": 3})
        with self.assertRaises(ValidationError) as ctx:
            self.store.upsert(self.property.pk, day(1), {"min_stay": 5})

        self.assertEqual(ctx.exception.message, "Minimum stay cannot exceed maximum stay.")
        record = self.store.get(self.property.pk, day(1))
        self.assertIsNone(record.min_stay)

    def test_upsert_cannot_reopen_a_reserved_day(self) -> None:
        self._reserve(self.guest, day(1), day(2))

        with self.assertRaises(ConflictError):
            self.store.upsert(self.property.pk, day(1), {"is_available": True})

        record = self.store.upsert(self.property.pk, day(1), {"price_override": "120.00"})
        self.assertFalse(record.is_available)
        self.assertEqual(record.price_override, Decimal("120.00"))

    def test_upsert_cannot_take_over_the_block_of_a_reserved_day(self) -> None:
        booking = self._reserve(self.guest, day(1), day(2))

        with self.assertRaises(ConflictError):
            self.store.upsert(self.property.pk, day(1), {"is_available": False})
        with self.assertRaises(ConflictError):
            self.store.upsert(self.property.pk, day(1), {"blocked_reason": "Owner stay"})

        self.assertEqual(self.store.get(self.property.pk, day(1)).blocked_reason, booking_block_reason(booking.pk))

    def test_unknown_property_raises_not_found(self) -> None:
        with self.assertRaises(NotFoundError):
            self.store.upsert(999999, day(1), {"price_override": "120.00"})


class RangeAvailabilityTests(AvailabilityStoreTestCase):
    def test_set_range_is_inclusive_and_idempotent(self) -> None:
        records = self.store.set_range_availability(self.property.pk, day(1), day(3), False, "Maintenance")
        self.store.set_range_availability(self.property.pk, day(1), day(3), False, "Maintenance")

        self.assertEqual([record.date for record in records], [day(1), day(2), day(3)])
        self.assertEqual(AvailabilityDay.objects.filter(property=self.property).count(), 3)
        self.assertTrue(
            all(record.blocked_reason == "Maintenance" for record in AvailabilityDay.objects.all())
        )

        self.store.set_range_availability(self.property.pk, day(1), day(3), True)

        self.assertFalse(AvailabilityDay.objects.filter(is_available=False).exists())
        self.assertFalse(AvailabilityDay.objects.exclude(blocked_reason=None).exists())

    def test_set_range_skips_reserved_days(self) -> None:
        booking = self._reserve(self.guest, day(2), day(3))

        records = self.store.set_range_availability(self.property.pk, day(1), day(3), True)

        self.assertEqual([record.date for record in records], [day(1), day(3)])
        held = self.store.get(self.property.pk, day(2))
        self.assertFalse(held.is_available)
        self.assertEqual(held.blocked_reason, booking_block_reason(booking.pk))

    def test_reversed_range_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            self.store.set_range_availability(self.property.pk, day(3), day(1), False)


class HostOperationTests(AvailabilityStoreTestCase):
    def test_only_the_owner_manages_the_calendar(self) -> None:
        stranger = Actor.for_user(self.guest)

        with self.assertRaises(PermissionDeniedError):
            self.store.set_availability(self.property.pk, stranger, day(1), {"price_override": "90.00"})
        with self.assertRaises(PermissionDeniedError):
            self.store.block_dates(self.property.pk, stranger, day(1), day(2))
        with self.assertRaises(PermissionDeniedError):
            self.store.release_dates(self.property.pk, stranger, day(1), day(2))
        with self.assertRaises(PermissionDeniedError):
            self.store.bulk_set_availability(self.property.pk, stranger, [{"date": day(1).isoformat()}])
        with self.assertRaises(PermissionDeniedError):
            self.store.delete_day(self.property.pk, stranger, day(1))
        self.assertFalse(AvailabilityDay.objects.exists())

    def test_staff_may_manage_any_calendar(self) -> None:
        staff = Actor(user_id=self.guest.pk, is_staff=True)

        records = self.store.block_dates(self.property.pk, staff, day(1), day(1))

        self.assertEqual(len(records), 1)

    def test_block_dates_uses_the_default_reason(self) -> None:
        self.store.block_dates(self.property.pk, self.owner_actor, day(1), day(2))

        reasons = set(AvailabilityDay.objects.values_list("blocked_reason", flat=True))
        self.assertEqual(reasons, {"Blocked by host"})

        self.store.release_dates(self.property.pk, self.owner_actor, day(1), day(2))
        self.assertEqual(AvailabilityDay.objects.filter(is_available=True).count(), 2)

    def test_set_availability_edits_one_day(self) -> None:
        record = self.store.set_availability(
            self.property.pk,
            self.owner_actor,
            day(1),
            {"is_instant_book": False, "notes": "Cleaning in the morning"},
        )

        self.assertFalse(record.is_instant_book)
        self.assertEqual(record.notes, "Cleaning in the morning")

    def test_bulk_update_applies_every_entry(self) -> None:
        records = self.store.bulk_set_availability(
            self.property.pk,
            self.owner_actor,
            [
                {"date": day(1).isoformat(), "price_override": "120.00"},
                {"date": day(2).isoformat(), "is_available": False, "blocked_reason": "Owner stay"},
            ],
        )

        self.assertEqual([record.date for record in records], [day(1), day(2)])
        self.assertEqual(records[0].price_override, Decimal("120.00"))
        self.assertFalse(records[1].is_available)

    def test_bulk_update_rejects_duplicate_and_malformed_dates(self) -> None:
        with self.assertRaises(ValidationError):
            self.store.bulk_set_availability(
                self.property.pk,
                self.owner_actor,
                [{"date": day(1).isoformat()}, {"date": day(1).isoformat(), "min_stay": 2}],
            )
        with self.assertRaises(ValidationError) as ctx:
            self.store.bulk_set_availability(self.property.pk, self.owner_actor, [{"date": "not-a-date"}])

        self.assertIsNotNone(ctx.exception.details)
        self.assertFalse(AvailabilityDay.objects.exists())

    def test_bulk_update_is_all_or_nothing(self) -> None:
        self._reserve(self.guest, day(2), day(3))

        with self.assertRaises(ConflictError):
            self.store.bulk_set_availability(
                self.property.pk,
                self.owner_actor,
                [
                    {"date": day(1).isoformat(), "price_override": "120.00"},
                    {"date": day(2).isoformat(), "is_available": True},
                ],
            )

        self.assertIsNone(self.store.get(self.property.pk, day(1)))

    def test_delete_day(self) -> None:
        self.store.block_dates(self.property.pk, self.owner_actor, day(1), day(1))

        self.store.delete_day(self.property.pk, self.owner_actor, day(1))

        self.assertIsNone(self.store.get(self.property.pk, day(1)))
        with self.assertRaises(NotFoundError):
            self.store.delete_day(self.property.pk, self.owner_actor, day(1))

    def test_delete_day_refuses_reserved_days(self) -> None:
        self._reserve(self.guest, day(1), day(2))

        with self.assertRaises(ConflictError):
            self.store.delete_day(self.property.pk, self.owner_actor, day(1))

        self.assertIsNotNone(self.store.get(self.property.pk, day(1)))


class CalendarReadTests(AvailabilityStoreTestCase):
    def test_default_window_runs_from_today_for_31_days(self) -> None:
        for offset in (-1, 0, 31, 32):
            self.store.upsert(self.property.pk, day(offset), {"price_override": "110.00"})

        records = self.store.calendar(self.property.pk)

        self.assertEqual([record.date for record in records], [day(0), day(31)])

    def test_calendar_serializes_day_records(self) -> None:
        self.store.upsert(self.property.pk, day(1), {"min_stay": 2})

        data = AvailabilityDaySerializer(self.store.calendar(self.property.pk, day(0), day(5)), many=True).data

        self.assertEqual(len(data), 1)
        self.assertEqual(data[0]["date"], day(1).isoformat())
        self.assertEqual(data[0]["property_id"], self.property.pk)
        self.assertEqual(data[0]["min_stay"], 2)

    def test_blocked_and_available_dates(self) -> None:
        self.store.block_dates(self.property.pk, self.owner_actor, day(1), day(1))
        self._reserve(self.guest, day(2), day(3))
        self.store.upsert(self.property.pk, day(3), {"is_instant_book": False})

        blocked = self.store.blocked_dates(self.property.pk, day(0), day(4))
        available = self.store.available_dates(self.property.pk, day(0), day(4))
        instant = self.store.available_dates(self.property.pk, day(0), day(4), instant_only=True)

        self.assertEqual([record.date for record in blocked], [day(1), day(2)])
        self.assertEqual(available, [day(0), day(3), day(4)])
        self.assertEqual(instant, [day(0), day(4)])

    def test_reads_of_unknown_property_raise_not_found(self) -> None:
        with self.assertRaises(NotFoundError):
            self.store.calendar(999999)
        with self.assertRaises(NotFoundError):
            self.store.available_dates(999999)

"""Tests for the periodic booking maintenance tasks."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

from django.conf import settings
from django.test import TestCase, override_settings
from django.utils import timezone

from apps.bookings import tasks
from apps.bookings.application.command_handlers import CreateBookingCommand, CreateBookingHandler
from apps.bookings.models import Booking, ReservedNight
from apps.properties.models import AvailabilityDay
from apps.properties.services import AvailabilityStore
from apps.properties.tests.utils import make_property, make_user
from shared.application.clock import FixedClock
from shared.domain.value_objects import Actor, DateRange

from .utils import make_booking


def day(offset: int) -> date:
    return timezone.localdate() + timedelta(days=offset)


class ExpirePendingBookingsTests(TestCase):
    def setUp(self) -> None:
        self.host = make_user("expiry-host")
        self.guest = make_user("expiry-guest")
        self.property = make_property(self.host)
        AvailabilityStore().upsert(self.property.pk, day(10), {"is_instant_book": False})
        self.booking = CreateBookingHandler().handle(
            CreateBookingCommand(
                actor=Actor.for_user(self.guest),
                property_id=self.property.pk,
                check_in=day(10),
                check_out=day(12),
            )
        )

    def _age(self, hours: int) -> None:
        Booking.objects.filter(pk=self.booking.pk).update(created_at=timezone.now() - timedelta(hours=hours))

    def test_fresh_pending_booking_is_kept(self) -> None:
        self.assertEqual(tasks.expire_stale_bookings(), 0)

        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.Status.PENDING.value)

    def test_stale_pending_booking_is_cancelled_and_released(self) -> None:
        self._age(25)

        result = tasks.expire_pending_bookings()

        self.assertEqual(result, {"expired": 1})
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.Status.CANCELLED.value)
        self.assertEqual(self.booking.cancellation_source, Booking.CancellationSource.SYSTEM.value)
        self.assertEqual(self.booking.cancellation_reason, "Expired: not confirmed within 24 hours")
        self.assertEqual(self.booking.refund_amount, Decimal("0.00"))
        self.assertEqual(self.booking.version, 2)
        self.assertFalse(ReservedNight.objects.exists())
        self.assertTrue(AvailabilityStore().get(self.property.pk, day(11)).is_available)

    def test_ttl_comes_from_settings(self) -> None:
        self._age(5)

        with override_settings(BOOKING_ENGINE={**settings.BOOKING_ENGINE, "PENDING_TTL_HOURS": 4}):
            self.assertEqual(tasks.expire_stale_bookings(), 1)

    def test_confirmed_bookings_never_expire(self) -> None:
        Booking.objects.filter(pk=self.booking.pk).update(status=Booking.Status.CONFIRMED.value)
        self._age(100)

        self.assertEqual(tasks.expire_stale_bookings(), 0)


class CompleteFinishedBookingsTests(TestCase):
    def setUp(self) -> None:
        self.today = date(2030, 1, 10)
        self.host = make_user("complete-host")
        self.guest = make_user("complete-guest")
        self.property = make_property(self.host)

    def test_checked_in_bookings_past_check_out_are_completed(self) -> None:
        finished = make_booking(
            self.property, self.guest, self.today - timedelta(days=3), self.today, Booking.Status.CHECKED_IN.value
        )
        staying = make_booking(
            self.property,
            self.guest,
            self.today - timedelta(days=1),
            self.today + timedelta(days=2),
            Booking.Status.CHECKED_IN.value,
        )

        completed = tasks.complete_checked_out_bookings(clock=FixedClock(self.today))

        self.assertEqual(completed, 1)
        finished.refresh_from_db()
        staying.refresh_from_db()
        self.assertEqual(finished.status, Booking.Status.COMPLETED.value)
        self.assertIsNotNone(finished.checked_out_at)
        self.assertEqual(staying.status, Booking.Status.CHECKED_IN.value)


class PurgePastAvailabilityTests(TestCase):
    def test_only_records_before_the_retention_cutoff_are_purged(self) -> None:
        today = date(2030, 1, 10)
        host = make_user("purge-host")
        guest = make_user("purge-guest")
        property_obj = make_property(host)
        store = AvailabilityStore()
        past = make_booking(property_obj, guest, today - timedelta(days=6), today - timedelta(days=4))
        store.reserve(property_obj.pk, DateRange(past.check_in, past.check_out), past.pk)
        store.upsert(property_obj.pk, today - timedelta(days=1), {"price_override": "90.00"})
        store.upsert(property_obj.pk, today, {"price_override": "90.00"})

        with override_settings(BOOKING_ENGINE={**settings.BOOKING_ENGINE, "AVAILABILITY_RETENTION_DAYS": 2}):
            deleted = tasks.purge_past_days(clock=FixedClock(today))

        self.assertEqual(deleted, {"days": 2, "nights": 2})
        remaining = sorted(AvailabilityDay.objects.values_list("date", flat=True))
        self.assertEqual(remaining, [today - timedelta(days=1), today])

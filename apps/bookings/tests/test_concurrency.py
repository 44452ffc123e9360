"""Concurrent reservations against a real database connection per thread."""

from __future__ import annotations

import threading
from datetime import date, timedelta

from django.db import connections
from django.test import TransactionTestCase

from apps.bookings.application.command_handlers import (
    CancelBookingCommand,
    CancelBookingHandler,
    CreateBookingCommand,
    CreateBookingHandler,
)
from apps.bookings.models import Booking, ReservedNight
from apps.properties import policies
from apps.properties.models import CancellationPolicy
from apps.properties.tests.utils import make_property, make_user
from shared.application.clock import FixedClock
from shared.domain.exceptions import DomainError
from shared.domain.value_objects import Actor

TODAY = date(2030, 1, 10)
THREADS = 4


def run_concurrently(calls):
    """Start every call at the same moment; return (results, errors)."""

    barrier = threading.Barrier(len(calls))
    results = []
    errors = []
    lock = threading.Lock()

    def worker(call):
        try:
            barrier.wait()
            outcome = call()
            with lock:
                results.append(outcome)
        except DomainError as exc:
            with lock:
                errors.append(exc)
        finally:
            connections.close_all()

    threads = [threading.Thread(target=worker, args=(call,)) for call in calls]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return results, errors


class ConcurrentReservationTests(TransactionTestCase):
    def setUp(self) -> None:
        self.clock = FixedClock(TODAY)
        self.host = make_user("race-host")
        self.guests = [make_user(f"race-guest-{index}") for index in range(THREADS)]
        self.property = make_property(self.host)

    def test_only_one_of_many_overlapping_requests_wins(self) -> None:
        handler = CreateBookingHandler(clock=self.clock)

        def book(guest, offset):
            check_in = TODAY + timedelta(days=10 + offset)
            return lambda: handler.handle(
                CreateBookingCommand(
                    actor=Actor.for_user(guest),
                    property_id=self.property.pk,
                    check_in=check_in,
                    check_out=check_in + timedelta(days=3),
                )
            )

        results, errors = run_concurrently([book(guest, index % 2) for index, guest in enumerate(self.guests)])

        self.assertEqual(len(results), 1)
        self.assertEqual(len(errors), THREADS - 1)
        self.assertEqual(Booking.objects.count(), 1)
        winner = Booking.objects.get()
        self.assertEqual(
            list(ReservedNight.objects.values_list("night", flat=True)),
            [winner.check_in + timedelta(days=offset) for offset in range(3)],
        )

    def test_only_one_cancellation_of_a_booking_succeeds(self) -> None:
        guest = self.guests[0]
        booking = CreateBookingHandler(clock=self.clock).handle(
            CreateBookingCommand(
                actor=Actor.for_user(guest),
                property_id=self.property.pk,
                check_in=TODAY + timedelta(days=10),
                check_out=TODAY + timedelta(days=13),
            )
        )
        handler = CancelBookingHandler(clock=self.clock)

        def cancel(actor):
            return lambda: handler.handle(CancelBookingCommand(actor=actor, booking_id=booking.pk))

        results, errors = run_concurrently([cancel(Actor.for_user(guest)), cancel(Actor.for_user(self.host))])

        self.assertEqual(len(results), 1)
        self.assertEqual(len(errors), 1)
        booking.refresh_from_db()
        self.assertEqual(booking.status, Booking.Status.CANCELLED.value)
        self.assertEqual(booking.version, 2)

    def test_concurrent_policy_edits_leave_one_active_policy(self) -> None:
        actor = Actor.for_user(self.host)
        payloads = [
            {"policy_type": "STRICT", "refund_percentage": "50", "days_before_checkin": 7},
            {"policy_type": "FLEXIBLE", "refund_percentage": "100", "days_before_checkin": 1},
        ]

        def activate(payload):
            return lambda: policies.set_cancellation_policy(self.property.pk, actor, payload)

        results, errors = run_concurrently([activate(payload) for payload in payloads])

        self.assertEqual(len(results) + len(errors), 2)
        self.assertEqual(CancellationPolicy.objects.filter(property=self.property, is_active=True).count(), 1)

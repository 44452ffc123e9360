"""Tests for refunds executed after a cancellation is committed."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

from django.conf import settings
from django.test import TestCase, override_settings

from apps.bookings.application.command_handlers import (
    CancelBookingCommand,
    CancelBookingHandler,
    CreateBookingCommand,
    CreateBookingHandler,
)
from apps.bookings.domain.events import BookingCancelled, BookingCreated
from apps.bookings.models import Booking
from apps.bookings.payments import PaymentResult
from apps.properties.tests.utils import make_property, make_user
from shared.application.clock import FixedClock
from shared.application.message_bus import MessageBus
from shared.application.uow import DjangoUnitOfWork
from shared.domain.exceptions import StorageError
from shared.domain.value_objects import Actor

TODAY = date(2030, 1, 10)


class RejectingPaymentExecutor:
    def refund(self, booking, amount, reason):
        return PaymentResult(success=False, error="Card expired")


class BrokenPaymentExecutor:
    def refund(self, booking, amount, reason):
        raise RuntimeError("Gateway unreachable")


class RefundExecutionTests(TestCase):
    def setUp(self) -> None:
        self.clock = FixedClock(TODAY)
        self.host = make_user("refund-host")
        self.guest = make_user("refund-guest")
        self.property = make_property(self.host)
        self.guest_actor = Actor.for_user(self.guest)

    def _book_and_cancel(self, days_ahead: int = 10) -> Booking:
        check_in = TODAY + timedelta(days=days_ahead)
        booking = CreateBookingHandler(clock=self.clock).handle(
            CreateBookingCommand(
                actor=self.guest_actor,
                property_id=self.property.pk,
                check_in=check_in,
                check_out=check_in + timedelta(days=3),
            )
        )
        with self.captureOnCommitCallbacks(execute=True):
            CancelBookingHandler(clock=self.clock).handle(
                CancelBookingCommand(actor=self.guest_actor, booking_id=booking.pk, reason="Plans changed")
            )
        booking.refresh_from_db()
        return booking

    def test_refund_is_paid_after_commit(self) -> None:
        booking = self._book_and_cancel()

        self.assertEqual(booking.refund_amount, Decimal("150.00"))
        self.assertEqual(booking.refund_status, Booking.RefundStatus.REFUNDED.value)

    @override_settings(BOOKING_ENGINE={
        **settings.BOOKING_ENGINE,
        "PAYMENT_EXECUTOR": "apps.bookings.tests.test_refunds.RejectingPaymentExecutor",
    })
    def test_rejected_refund_is_marked_failed(self) -> None:
        booking = self._book_and_cancel()

        self.assertEqual(booking.refund_status, Booking.RefundStatus.FAILED.value)

    @override_settings(BOOKING_ENGINE={
        **settings.BOOKING_ENGINE,
        "PAYMENT_EXECUTOR": "apps.bookings.tests.test_refunds.BrokenPaymentExecutor",
    })
    def test_executor_error_does_not_undo_the_cancellation(self) -> None:
        booking = self._book_and_cancel()

        self.assertEqual(booking.status, Booking.Status.CANCELLED.value)
        self.assertEqual(booking.refund_status, Booking.RefundStatus.FAILED.value)

    def test_nothing_is_paid_without_a_refund(self) -> None:
        booking = self._book_and_cancel(days_ahead=2)

        self.assertEqual(booking.refund_amount, Decimal("0.00"))
        self.assertEqual(booking.refund_status, Booking.RefundStatus.NOT_APPLICABLE.value)


class UnitOfWorkTests(TestCase):
    def setUp(self) -> None:
        self.bus = MessageBus()
        self.received = []
        self.bus.register_event_handler(BookingCreated, self.received.append)

    def test_events_are_published_only_after_commit(self) -> None:
        with self.captureOnCommitCallbacks() as callbacks:
            with DjangoUnitOfWork() as uow:
                uow.add_event(BookingCreated(aggregate_id=1, booking_id=1))

        self.assertEqual(len(callbacks), 1)

    def test_events_are_dropped_on_rollback(self) -> None:
        with self.captureOnCommitCallbacks() as callbacks:
            with self.assertRaises(RuntimeError):
                with DjangoUnitOfWork() as uow:
                    uow.add_event(BookingCreated(aggregate_id=1, booking_id=1))
                    raise RuntimeError("boom")

        self.assertEqual(callbacks, [])

    def test_database_errors_become_storage_errors(self) -> None:
        property_obj = make_property(make_user("uow-host"))
        guest = make_user("uow-guest")

        with self.assertRaises(StorageError):
            with DjangoUnitOfWork():
                Booking.objects.create(
                    property=property_obj,
                    guest=guest,
                    host=property_obj.owner,
                    confirmation_code="BKDEADBEEF",
                    check_in=TODAY + timedelta(days=3),
                    check_out=TODAY,
                )

    def test_handler_errors_do_not_stop_other_handlers(self) -> None:
        def failing(event):
            raise RuntimeError("handler failed")

        self.bus.register_event_handler(BookingCancelled, failing)
        cancelled = []
        self.bus.register_event_handler(BookingCancelled, cancelled.append)

        self.bus.publish_events([BookingCancelled(booking_id=1), BookingCreated(booking_id=2)])

        self.assertEqual(len(cancelled), 1)
        self.assertEqual(len(self.received), 1)

    def test_one_handler_per_command(self) -> None:
        self.bus.register_command_handler(CancelBookingCommand, lambda command: command)

        with self.assertRaises(ValueError):
            self.bus.register_command_handler(CancelBookingCommand, lambda command: None)
        with self.assertRaises(ValueError):
            self.bus.handle_command(CreateBookingCommand(actor=None, property_id=1, check_in=TODAY, check_out=TODAY))

"""Refund execution.

The refund amount is decided when a booking is cancelled. Moving money is
the job of a payment executor, configured by dotted path in
``BOOKING_ENGINE["PAYMENT_EXECUTOR"]`` and invoked after the cancellation
has been committed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol

from django.utils.module_loading import import_string  # type: ignore

from apps.bookings.conf import engine_setting
from apps.bookings.domain.entities import RefundStatus
from apps.bookings.domain.events import BookingCancelled

from .models import Booking

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentResult:
    success: bool
    reference: str = ""
    error: Optional[str] = None


class PaymentExecutor(Protocol):
    def refund(self, booking: Booking, amount: Decimal, reason: str) -> PaymentResult:
        ...


class LoggingPaymentExecutor:
    """Executor that only records the refund request in the log."""

    def refund(self, booking: Booking, amount: Decimal, reason: str) -> PaymentResult:
        logger.info(
            f"Refund of {amount} {booking.currency} requested for booking "
            f"{booking.confirmation_code}: {reason}"
        )
        return PaymentResult(success=True, reference=f"refund-{booking.confirmation_code}")


def get_payment_executor() -> PaymentExecutor:
    executor_class = import_string(engine_setting("PAYMENT_EXECUTOR"))
    return executor_class()


def execute_refund(event: BookingCancelled) -> None:
    """Pay out the refund decided at cancellation and record the outcome."""

    if event.refund_amount <= 0:
        return

    booking = Booking.objects.filter(pk=event.booking_id).first()
    if booking is None:
        logger.error(f"Cannot refund booking {event.booking_id}: booking not found")
        return

    try:
        result = get_payment_executor().refund(booking, event.refund_amount, event.reason)
    except Exception as exc:
        logger.error(f"Refund for booking {event.booking_id} failed: {exc}", exc_info=True)
        result = PaymentResult(success=False, error=str(exc))

    status = RefundStatus.REFUNDED if result.success else RefundStatus.FAILED
    Booking.objects.filter(pk=booking.pk, refund_status=RefundStatus.PENDING.value).update(
        refund_status=status.value
    )
    if result.success:
        logger.info(f"Refunded {event.refund_amount} {event.currency} for booking {event.booking_id}")
    else:
        logger.warning(f"Refund for booking {event.booking_id} not completed: {result.error}")

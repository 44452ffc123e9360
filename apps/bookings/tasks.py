"""Celery tasks for the booking domain."""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task  # type: ignore

from apps.properties.services import AvailabilityStore
from shared.application.clock import system_clock
from shared.domain.exceptions import DomainError

from .application.command_handlers import (
    CompleteBookingCommand,
    CompleteBookingHandler,
    ExpireBookingCommand,
    ExpireBookingHandler,
)
from .conf import engine_setting
from .domain.entities import BookingStatus
from .models import Booking

logger = logging.getLogger(__name__)


def expire_stale_bookings(clock=system_clock) -> int:
    """Cancel pending bookings older than the approval window."""

    cutoff = clock.now() - timedelta(hours=engine_setting("PENDING_TTL_HOURS"))
    candidates = Booking.objects.filter(
        status=BookingStatus.PENDING.value,
        created_at__lte=cutoff,
    ).values_list("pk", flat=True)

    handler = ExpireBookingHandler(clock=clock)
    expired = 0
    for booking_id in list(candidates):
        try:
            if handler.handle(ExpireBookingCommand(booking_id=booking_id)) is not None:
                expired += 1
        except DomainError as exc:
            logger.warning(f"Could not expire booking {booking_id}: {exc.message}")
        except Exception as exc:
            logger.error(f"Error expiring booking {booking_id}: {exc}", exc_info=True)

    if expired:
        logger.info(f"Expired {expired} pending bookings")
    return expired


def complete_checked_out_bookings(clock=system_clock) -> int:
    """Complete checked-in bookings whose check-out date has passed."""

    candidates = Booking.objects.filter(
        status=BookingStatus.CHECKED_IN.value,
        check_out__lte=clock.today(),
    ).values_list("pk", flat=True)

    handler = CompleteBookingHandler(clock=clock)
    completed = 0
    for booking_id in list(candidates):
        try:
            handler.handle(CompleteBookingCommand(actor=None, booking_id=booking_id))
            completed += 1
        except DomainError as exc:
            logger.warning(f"Could not complete booking {booking_id}: {exc.message}")
        except Exception as exc:
            logger.error(f"Error completing booking {booking_id}: {exc}", exc_info=True)

    if completed:
        logger.info(f"Completed {completed} bookings after check-out")
    return completed


def purge_past_days(clock=system_clock) -> dict[str, int]:
    """Drop availability and reserved nights older than the retention window."""

    cutoff = clock.today() - timedelta(days=engine_setting("AVAILABILITY_RETENTION_DAYS"))
    deleted = AvailabilityStore(clock).purge_before(cutoff)
    logger.info(f"Purged availability before {cutoff}: {deleted}")
    return deleted


# ============================================================================
# PERIODIC TASKS (run by Celery Beat)
# ============================================================================

@shared_task(name="bookings.expire_pending_bookings")
def expire_pending_bookings() -> dict[str, int]:
    """
    Cancel pending bookings the host did not approve in time.

    Returns:
        dict: {"expired": number of cancelled bookings}
    """
    return {"expired": expire_stale_bookings()}


@shared_task(name="bookings.complete_finished_bookings")
def complete_finished_bookings() -> dict[str, int]:
    """
    Mark checked-in bookings as completed after check-out.

    Returns:
        dict: {"completed": number of completed bookings}
    """
    return {"completed": complete_checked_out_bookings()}


@shared_task(name="bookings.purge_past_availability")
def purge_past_availability() -> dict[str, int]:
    """
    Retention cleanup of the availability calendar.

    Returns:
        dict: {"days": deleted day-records, "nights": deleted reserved nights}
    """
    return purge_past_days()

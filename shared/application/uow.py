"""
Unit of Work

Every booking operation runs inside one ``DjangoUnitOfWork``: a single
``transaction.atomic`` block whose queued domain events reach the
message bus only after the outermost transaction commits.
"""

from typing import List
import logging

from django.db import DatabaseError, transaction

from shared.domain.base import DomainEvent
from shared.domain.exceptions import StorageError

logger = logging.getLogger(__name__)


class DjangoUnitOfWork:
    """
    Transaction boundary for a booking operation

    Usage:
        with DjangoUnitOfWork() as uow:
            booking = Booking.objects.select_for_update().get(pk=booking_id)
            booking.status = BookingStatus.CONFIRMED.value
            booking.save()
            uow.add_event(BookingConfirmed(aggregate_id=booking.pk))

    A ``DatabaseError`` escaping the block rolls the transaction back and
    is re-raised as ``StorageError``; domain errors propagate unchanged.
    """

    def __init__(self, using=None):
        self.using = using
        self._events: List[DomainEvent] = []
        self._atomic = None

    def __enter__(self):
        self._atomic = transaction.atomic(using=self.using)
        self._atomic.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self._schedule_publish()
        elif self._events:
            logger.warning(f"Rolled back, dropping {len(self._events)} unpublished event(s)")
        self._events = []
        try:
            self._atomic.__exit__(exc_type, exc_val, exc_tb)
        except DatabaseError as commit_error:
            raise StorageError(f"Commit failed: {commit_error}") from commit_error
        if isinstance(exc_val, DatabaseError):
            raise StorageError(f"Database operation failed: {exc_val}") from exc_val
        return False

    def add_event(self, event: DomainEvent):
        self._events.append(event)

    def _schedule_publish(self):
        if not self._events:
            return
        events = list(self._events)
        logger.debug(f"Queued {len(events)} event(s) for publishing on commit")
        transaction.on_commit(lambda: self._publish(events), using=self.using)

    @staticmethod
    def _publish(events: List[DomainEvent]):
        from shared.application.message_bus import message_bus

        message_bus.publish_events(events)

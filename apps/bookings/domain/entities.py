"""
Booking Domain Entities

Core states of the booking domain:
- BookingStatus: FSM states for booking lifecycle
- CancellationSource: who ended a booking early
- RefundStatus: progress of the refund decided at cancellation
"""

from enum import Enum
from typing import Dict, FrozenSet

from shared.domain.exceptions import ValidationError


class BookingStatus(str, Enum):
    """
    Booking Status Finite State Machine

    State transitions:
    - PENDING -> CONFIRMED (host approved, or instant-book at creation)
    - PENDING -> CANCELLED (guest/host cancelled, or approval timed out)
    - CONFIRMED -> CHECKED_IN (guest arrived)
    - CONFIRMED -> CANCELLED (guest or host cancelled)
    - CHECKED_IN -> COMPLETED (guest checked out)
    - CHECKED_IN -> CANCELLED (only when allowed by configuration)
    """
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    CHECKED_IN = 'checked_in'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'

    @classmethod
    def choices(cls):
        return [(status.value, status.label) for status in cls]

    @property
    def label(self) -> str:
        return self.value.replace('_', ' ').capitalize()

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def blocks_calendar(self) -> bool:
        """Counts against availability in the conflict check"""
        return self in BLOCKING_STATUSES


class CancellationSource(str, Enum):
    GUEST = 'guest'
    HOST = 'host'
    SYSTEM = 'system'

    @classmethod
    def choices(cls):
        return [(source.value, source.value.capitalize()) for source in cls]


class RefundStatus(str, Enum):
    NOT_APPLICABLE = 'not_applicable'
    PENDING = 'pending'
    REFUNDED = 'refunded'
    FAILED = 'failed'

    @classmethod
    def choices(cls):
        return [(status.value, status.value.replace('_', ' ').capitalize()) for status in cls]


TERMINAL_STATUSES: FrozenSet[BookingStatus] = frozenset({
    BookingStatus.COMPLETED,
    BookingStatus.CANCELLED,
})

# Statuses that make a night unavailable to other guests
BLOCKING_STATUSES: FrozenSet[BookingStatus] = frozenset({
    BookingStatus.CONFIRMED,
    BookingStatus.CHECKED_IN,
})

# Statuses that own reserved nights
LIVE_STATUSES: FrozenSet[BookingStatus] = frozenset({
    BookingStatus.PENDING,
    BookingStatus.CONFIRMED,
    BookingStatus.CHECKED_IN,
})

ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CHECKED_IN, BookingStatus.CANCELLED}),
    BookingStatus.CHECKED_IN: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

CHECKED_IN_CANCELLATION_MODES = ('refund', 'no_refund', 'forbidden')


def ensure_transition(current, target, *, checked_in_cancellation: str = 'refund'):
    """
    Validate a status change against the state machine.

    Raises ValidationError for transitions the lifecycle does not allow.
    """
    current = BookingStatus(current)
    target = BookingStatus(target)

    if target == BookingStatus.CANCELLED:
        if current == BookingStatus.CANCELLED:
            raise ValidationError("Booking is already cancelled")
        if current == BookingStatus.COMPLETED:
            raise ValidationError("Cannot cancel a completed booking")
        if current == BookingStatus.CHECKED_IN and checked_in_cancellation == 'forbidden':
            raise ValidationError("Cannot cancel a booking after check-in")

    if target not in ALLOWED_TRANSITIONS[current]:
        raise ValidationError(
            f"Cannot change booking status from {current.value} to {target.value}"
        )

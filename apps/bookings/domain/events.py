"""
Booking Domain Events

Events that represent things that have happened in the booking domain.
These are published after successful transaction commits.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from shared.domain.base import DomainEvent
from shared.domain.value_objects import DateRange


@dataclass
class BookingCreated(DomainEvent):
    """
    Event: A new booking was created (PENDING or instant CONFIRMED)

    Triggers:
    - Notify property owner of a request awaiting approval
    - Send confirmation to guest for instant bookings
    """
    booking_id: int = 0
    property_id: int = 0
    guest_id: int = 0
    dates: Optional[DateRange] = None
    total_amount: Decimal = Decimal('0')
    status: str = ''


@dataclass
class BookingConfirmed(DomainEvent):
    """Event: Host approved the booking (PENDING -> CONFIRMED)"""
    booking_id: int = 0
    property_id: int = 0
    guest_id: int = 0
    dates: Optional[DateRange] = None


@dataclass
class BookingUpdated(DomainEvent):
    """Event: Booking details changed without a status transition"""
    booking_id: int = 0
    changed_fields: tuple = field(default_factory=tuple)


@dataclass
class BookingCheckedIn(DomainEvent):
    """Event: Guest has checked in (CONFIRMED -> CHECKED_IN)"""
    booking_id: int = 0
    property_id: int = 0


@dataclass
class BookingCompleted(DomainEvent):
    """Event: Guest has checked out (CHECKED_IN -> COMPLETED)"""
    booking_id: int = 0
    property_id: int = 0


@dataclass
class BookingCancelled(DomainEvent):
    """
    Event: Booking was cancelled by guest or host

    The refund amount was decided inside the cancelling transaction.

    Triggers:
    - Execute the refund through the payment executor
    - Notify the other party
    """
    booking_id: int = 0
    property_id: int = 0
    cancelled_by_id: Optional[int] = None
    source: str = ''
    reason: str = ''
    refund_amount: Decimal = Decimal('0')
    currency: str = 'USD'


@dataclass
class BookingExpired(DomainEvent):
    """Event: A pending booking was not approved in time and was cancelled"""
    booking_id: int = 0
    property_id: int = 0

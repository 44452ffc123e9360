"""
Booking Queries

Read-side use cases. Each takes the acting user and only returns
bookings the actor is a party to (staff may read everything).
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional

from django.db.models import Count, Q, Sum

from apps.bookings.conf import engine_setting
from apps.bookings.domain.entities import BookingStatus
from apps.bookings.models import Booking
from apps.properties.services import get_property
from shared.application.clock import system_clock
from shared.domain.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from shared.domain.value_objects import Actor

REVENUE_STATUSES = (
    BookingStatus.CONFIRMED.value,
    BookingStatus.CHECKED_IN.value,
    BookingStatus.COMPLETED.value,
)


@dataclass
class PropertyStatistics:
    property_id: int
    start_date: date
    end_date: date
    total_bookings: int = 0
    bookings_by_status: Dict[str, int] = field(default_factory=dict)
    total_revenue: Decimal = Decimal('0.00')
    average_booking_value: Decimal = Decimal('0.00')
    currency: str = 'USD'


def _status_filter(queryset, status):
    if status is None:
        return queryset
    try:
        return queryset.filter(status=BookingStatus(status).value)
    except ValueError:
        raise ValidationError(f"Unknown booking status: {status}")


def _ensure_can_read(booking: Booking, actor: Actor) -> Booking:
    if not (booking.involves(actor) or actor.is_staff):
        raise PermissionDeniedError("You are not allowed to view this booking")
    return booking


def _ensure_owner(property_id: int, actor: Actor):
    property_obj = get_property(property_id)
    if not (property_obj.is_owned_by(actor.user_id) or actor.is_staff):
        raise PermissionDeniedError("Only the property owner can view its bookings")
    return property_obj


def get_booking(booking_id: int, actor: Actor) -> Booking:
    booking = Booking.objects.select_related('property').filter(pk=booking_id).first()
    if booking is None:
        raise NotFoundError(f"Booking {booking_id} not found")
    return _ensure_can_read(booking, actor)


def get_booking_by_code(confirmation_code: str, actor: Actor) -> Booking:
    booking = Booking.objects.select_related('property').filter(
        confirmation_code=confirmation_code.strip().upper()
    ).first()
    if booking is None:
        raise NotFoundError(f"Booking {confirmation_code} not found")
    return _ensure_can_read(booking, actor)


def list_guest_bookings(actor: Actor, status: Optional[str] = None) -> List[Booking]:
    queryset = Booking.objects.filter(guest_id=actor.user_id)
    return list(_status_filter(queryset, status).order_by('-check_in', '-pk'))


def list_host_bookings(actor: Actor, status: Optional[str] = None) -> List[Booking]:
    queryset = Booking.objects.filter(host_id=actor.user_id)
    return list(_status_filter(queryset, status).order_by('-check_in', '-pk'))


def list_property_bookings(
    property_id: int,
    actor: Actor,
    status: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[Booking]:
    """Bookings of a property, optionally those overlapping [start, end)"""
    _ensure_owner(property_id, actor)
    queryset = _status_filter(Booking.objects.filter(property_id=property_id), status)
    if start is not None:
        queryset = queryset.filter(check_out__gt=start)
    if end is not None:
        queryset = queryset.filter(check_in__lt=end)
    return list(queryset.order_by('check_in', 'pk'))


def upcoming_check_ins(actor: Actor, days: int = 7, clock=system_clock) -> List[Booking]:
    """Host's confirmed bookings arriving within the next ``days`` days"""
    today = clock.today()
    return list(
        Booking.objects.filter(
            host_id=actor.user_id,
            status=BookingStatus.CONFIRMED.value,
            check_in__gte=today,
            check_in__lte=today + timedelta(days=days),
        ).order_by('check_in', 'pk')
    )


def upcoming_check_outs(actor: Actor, days: int = 7, clock=system_clock) -> List[Booking]:
    """Host's checked-in bookings leaving within the next ``days`` days"""
    today = clock.today()
    return list(
        Booking.objects.filter(
            host_id=actor.user_id,
            status=BookingStatus.CHECKED_IN.value,
            check_out__gte=today,
            check_out__lte=today + timedelta(days=days),
        ).order_by('check_out', 'pk')
    )


def property_statistics(
    property_id: int,
    actor: Actor,
    start: Optional[date] = None,
    end: Optional[date] = None,
    clock=system_clock,
) -> PropertyStatistics:
    """
    Booking counts and revenue of a property

    Counts bookings whose whole stay lies within [start, end]. Revenue is
    the total of confirmed, checked-in and completed bookings.
    """
    property_obj = _ensure_owner(property_id, actor)
    end = end or clock.today()
    start = start or end - timedelta(days=engine_setting('STATISTICS_WINDOW_DAYS'))
    if start > end:
        raise ValidationError("Start date must not be after end date")

    bookings = Booking.objects.filter(property_id=property_id, check_in__gte=start, check_out__lte=end)
    by_status = {status.value: 0 for status in BookingStatus}
    for row in bookings.order_by().values('status').annotate(count=Count('id')):
        by_status[row['status']] = row['count']

    revenue = bookings.aggregate(
        total=Sum('total_amount', filter=Q(status__in=REVENUE_STATUSES)),
        paid=Count('id', filter=Q(status__in=REVENUE_STATUSES)),
    )
    total_revenue = revenue['total'] or Decimal('0.00')
    average = Decimal('0.00')
    if revenue['paid']:
        average = (total_revenue / revenue['paid']).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)

    return PropertyStatistics(
        property_id=property_id,
        start_date=start,
        end_date=end,
        total_bookings=sum(by_status.values()),
        bookings_by_status=by_status,
        total_revenue=total_revenue,
        average_booking_value=average,
        currency=property_obj.currency,
    )

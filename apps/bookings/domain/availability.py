"""
Stay Availability

Pure evaluation of whether a property can be booked for a stay. Takes the
property defaults, the per-date overrides and the inventory of existing
bookings; touches no storage.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Mapping, Optional

from apps.bookings.domain.inventory import Inventory
from shared.domain.value_objects import DateRange, Money

MESSAGE_INSTANT = "Property is available for instant booking"
MESSAGE_REQUIRES_APPROVAL = "Property is available but requires host approval"
MESSAGE_UNAVAILABLE = "Property is not available for the selected dates"


@dataclass(frozen=True)
class DayRule:
    """Per-date override of the property defaults"""
    is_available: bool = True
    price_override: Optional[Decimal] = None
    min_stay: Optional[int] = None
    max_stay: Optional[int] = None
    is_instant_book: Optional[bool] = None
    blocked_reason: Optional[str] = None


@dataclass(frozen=True)
class PropertyTerms:
    """Property defaults the evaluation falls back to"""
    property_id: int
    base_price: Money
    max_adults: int = 0
    max_children: int = 0
    accepting_bookings: bool = True

    @property
    def max_guests(self) -> int:
        """Zero means no limit"""
        return self.max_adults + self.max_children


@dataclass
class AvailabilityResult:
    property_id: int
    check_in: date
    check_out: date
    adults: int
    children: int
    total_nights: int
    is_available: bool
    is_instant_bookable: bool
    total_price: Money
    average_nightly_rate: Money
    unavailable_dates: List[date] = field(default_factory=list)
    restrictions: List[str] = field(default_factory=list)
    min_stay_required: Optional[int] = None
    max_stay_allowed: Optional[int] = None
    message: str = ''

    @property
    def bookable(self) -> bool:
        return self.is_available


def evaluate_stay(
    terms: PropertyTerms,
    stay: DateRange,
    days: Mapping[date, DayRule],
    inventory: Inventory,
    adults: int = 1,
    children: int = 0,
) -> AvailabilityResult:
    """
    Decide bookability, price and instant-book eligibility of a stay.

    Nights covered by an existing booking are unavailable. Otherwise the
    day-record decides: an unavailable record blocks the night, an available
    one may override the price and tighten the stay limits. Nights without a
    record are available at the base price.
    """
    currency = terms.base_price.currency
    total = Money.zero(currency)
    unavailable: List[date] = []
    restrictions: List[str] = []
    min_stay: Optional[int] = None
    max_stay: Optional[int] = None
    all_instant = True

    for night in stay.nights():
        if inventory.is_night_taken(night):
            unavailable.append(night)
            continue

        rule = days.get(night)
        if rule is None:
            total += terms.base_price
            continue

        if not rule.is_available:
            unavailable.append(night)
            if rule.blocked_reason:
                restrictions.append(f"Date {night.isoformat()}: {rule.blocked_reason}")
            continue

        if rule.price_override is not None:
            total += Money(rule.price_override, currency)
        else:
            total += terms.base_price

        if rule.is_instant_book is False:
            all_instant = False
        if rule.min_stay is not None:
            min_stay = rule.min_stay if min_stay is None else max(min_stay, rule.min_stay)
        if rule.max_stay is not None:
            max_stay = rule.max_stay if max_stay is None else min(max_stay, rule.max_stay)

    nights = len(stay)
    stay_ok = True
    if min_stay is not None and nights < min_stay:
        stay_ok = False
        restrictions.append(f"Minimum stay requirement: {min_stay} nights")
    if max_stay is not None and nights > max_stay:
        stay_ok = False
        restrictions.append(f"Maximum stay requirement: {max_stay} nights")

    capacity_ok = True
    if terms.max_guests > 0 and adults + children > terms.max_guests:
        capacity_ok = False
        restrictions.append(f"Property capacity exceeded. Maximum guests: {terms.max_guests}")

    if not terms.accepting_bookings:
        restrictions.append("Property is not accepting bookings")

    bookable = not unavailable and stay_ok and capacity_ok and terms.accepting_bookings
    instant = all_instant and not unavailable

    if bookable and instant:
        message = MESSAGE_INSTANT
    elif bookable:
        message = MESSAGE_REQUIRES_APPROVAL
    else:
        message = MESSAGE_UNAVAILABLE

    return AvailabilityResult(
        property_id=terms.property_id,
        check_in=stay.start_date,
        check_out=stay.end_date,
        adults=adults,
        children=children,
        total_nights=nights,
        is_available=bookable,
        is_instant_bookable=instant,
        total_price=total.rounded(),
        average_nightly_rate=(total / nights).rounded(),
        unavailable_dates=unavailable,
        restrictions=restrictions,
        min_stay_required=min_stay,
        max_stay_allowed=max_stay,
        message=message,
    )

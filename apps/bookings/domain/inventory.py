"""
Inventory

In-memory view of the stays already allocated on a property. The conflict
checker asks it which nights are taken; booking creation asks it whether a
new stay can be allocated at all.

Overlap uses half-open ranges: [a, b) and [c, e) intersect iff a < e and
c < b, so a checkout day can be the next guest's check-in day.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Optional

from shared.domain.value_objects import DateRange


@dataclass(frozen=True)
class Allocation:
    """A booked stay occupying a range of nights"""
    booking_id: int
    dates: DateRange


@dataclass
class Inventory:
    """
    Allocations of one property.

    Usage:
        inventory = Inventory.from_ranges(property_id, [(booking.pk, booking.check_in, booking.check_out)])
        if not inventory.can_allocate(requested):
            raise ConflictError(...)
    """

    property_id: int
    allocations: List[Allocation] = field(default_factory=list)

    @classmethod
    def from_ranges(cls, property_id: int, rows: Iterable) -> 'Inventory':
        return cls(
            property_id=property_id,
            allocations=[
                Allocation(booking_id=booking_id, dates=DateRange(check_in, check_out))
                for booking_id, check_in, check_out in rows
            ],
        )

    def can_allocate(self, dates: DateRange) -> bool:
        return not self.get_allocations_for_period(dates)

    def get_allocations_for_period(self, dates: DateRange) -> List[Allocation]:
        """All allocations that overlap with the given period"""
        return [a for a in self.allocations if a.dates.overlaps_with(dates)]

    def allocation_covering(self, night: date) -> Optional[Allocation]:
        return next((a for a in self.allocations if a.dates.contains(night)), None)

    def is_night_taken(self, night: date) -> bool:
        return self.allocation_covering(night) is not None

    def __str__(self):
        return f"Inventory(property={self.property_id}, allocations={len(self.allocations)})"

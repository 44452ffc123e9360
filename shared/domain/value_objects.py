"""
Common Value Objects

Value objects used across the reservation domain:
- Money: Represents monetary amounts with currency
- DateRange: Represents a range of nights (check-in to check-out)
- Actor: The identity on whose behalf an operation runs
"""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterator

from shared.domain.base import ValueObject

CENT = Decimal('0.01')


@dataclass(frozen=True)
class Money(ValueObject):
    """
    Money value object

    Represents a non-negative monetary amount with an ISO 4217 currency code.
    Immutable and supports arithmetic within a single currency.
    """
    amount: Decimal
    currency: str = 'USD'

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', Decimal(str(self.amount)))
        if self.amount < 0:
            raise ValueError("Amount cannot be negative")
        if not self.currency:
            raise ValueError("Currency is required")
        if len(self.currency) != 3 or not self.currency.isalpha() or not self.currency.isupper():
            raise ValueError(f"Unsupported currency: {self.currency}")

    @classmethod
    def zero(cls, currency: str = 'USD') -> 'Money':
        return cls(Decimal('0'), currency)

    def rounded(self) -> 'Money':
        """Round half-up to cents"""
        return Money(self.amount.quantize(CENT, rounding=ROUND_HALF_UP), self.currency)

    def __add__(self, other: 'Money') -> 'Money':
        """Add two money objects"""
        if not isinstance(other, Money):
            raise TypeError("Can only add Money to Money")
        if self.currency != other.currency:
            raise ValueError(f"Cannot add different currencies: {self.currency} and {other.currency}")
        return Money(self.amount + other.amount, self.currency)

    def __mul__(self, factor) -> 'Money':
        """Multiply money by a factor"""
        if not isinstance(factor, (int, float, Decimal)):
            raise TypeError("Can only multiply Money by number")
        return Money(self.amount * Decimal(str(factor)), self.currency)

    def __truediv__(self, factor) -> 'Money':
        """Divide money by a factor"""
        if not isinstance(factor, (int, float, Decimal)):
            raise TypeError("Can only divide Money by number")
        if factor == 0:
            raise ValueError("Cannot divide by zero")
        return Money(self.amount / Decimal(str(factor)), self.currency)

    def __lt__(self, other: 'Money') -> bool:
        if self.currency != other.currency:
            raise ValueError(f"Cannot compare different currencies: {self.currency} and {other.currency}")
        return self.amount < other.amount

    def __str__(self):
        return f"{self.amount:,.2f} {self.currency}"

    def __repr__(self):
        return f"Money({self.amount}, '{self.currency}')"


@dataclass(frozen=True)
class DateRange(ValueObject):
    """
    Date range value object

    Represents a range from start_date (inclusive) to end_date (exclusive).
    Each date in the range is one night of a stay.
    """
    start_date: date
    end_date: date

    def __post_init__(self):
        if self.start_date >= self.end_date:
            raise ValueError(f"Start date ({self.start_date}) must be before end date ({self.end_date})")

    def overlaps_with(self, other: 'DateRange') -> bool:
        """
        Check if this range overlaps with another

        Note: end_date is exclusive, so adjacent ranges don't overlap.

        Examples:
            - DateRange(25, 28) overlaps with DateRange(27, 30) -> True
            - DateRange(25, 28) overlaps with DateRange(28, 31) -> False (adjacent)
        """
        if not isinstance(other, DateRange):
            raise TypeError("Can only check overlap with another DateRange")

        return (self.start_date < other.end_date and
                other.start_date < self.end_date)

    def contains(self, check_date: date) -> bool:
        """Start date is inclusive, end date is exclusive"""
        return self.start_date <= check_date < self.end_date

    def nights(self) -> Iterator[date]:
        """Yield every night of the range in order"""
        current = self.start_date
        while current < self.end_date:
            yield current
            current += timedelta(days=1)

    def __iter__(self) -> Iterator[date]:
        return self.nights()

    def __len__(self) -> int:
        """Number of nights"""
        return (self.end_date - self.start_date).days

    def __str__(self):
        return f"{self.start_date.isoformat()} - {self.end_date.isoformat()}"

    def __repr__(self):
        return f"DateRange({self.start_date}, {self.end_date})"


@dataclass(frozen=True)
class Actor(ValueObject):
    """
    The user an operation is performed for.

    Passed explicitly into every reservation operation; nothing reads
    the current user from ambient request state.
    """
    user_id: int
    is_staff: bool = False

    @classmethod
    def for_user(cls, user) -> 'Actor':
        return cls(user_id=user.pk, is_staff=bool(getattr(user, 'is_staff', False)))

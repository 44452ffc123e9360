"""
Cancellation Policy Evaluator

Turns a property's cancellation policy, a booking total and the dates of
the cancellation and the check-in into a refund amount. Also checks that a
policy's numbers agree with its declared type.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, assert_never

from shared.domain.exceptions import ValidationError
from shared.domain.value_objects import Money

HUNDRED = Decimal('100')


class PolicyType(str, Enum):
    """Policy types, most to least guest-favorable"""

    FLEXIBLE = ('FLEXIBLE', 'Flexible', 'Full refund 1 day prior to arrival', Decimal('100'), 1)
    MODERATE = ('MODERATE', 'Moderate', 'Full refund 5 days prior to arrival', Decimal('100'), 5)
    STRICT = ('STRICT', 'Strict', '50% refund up until 1 week prior to arrival', Decimal('50'), 7)
    SUPER_STRICT_30 = (
        'SUPER_STRICT_30', 'Super Strict 30', '50% refund up until 30 days prior to arrival', Decimal('50'), 30,
    )
    SUPER_STRICT_60 = (
        'SUPER_STRICT_60', 'Super Strict 60', '50% refund up until 60 days prior to arrival', Decimal('50'), 60,
    )
    NON_REFUNDABLE = ('NON_REFUNDABLE', 'Non-refundable', 'No refund', Decimal('0'), 0)

    def __new__(cls, value, display_name, description, default_refund_percentage, default_days_before_checkin):
        obj = str.__new__(cls, value)
        obj._value_ = value
        obj.display_name = display_name
        obj.description = description
        obj.default_refund_percentage = default_refund_percentage
        obj.default_days_before_checkin = default_days_before_checkin
        return obj

    @classmethod
    def choices(cls):
        return [(policy_type.value, policy_type.display_name) for policy_type in cls]


@dataclass(frozen=True)
class PolicyTerms:
    """The numbers of a cancellation policy"""
    policy_type: PolicyType
    refund_percentage: Decimal
    days_before_checkin: int
    description: str = ''

    def __post_init__(self):
        object.__setattr__(self, 'policy_type', PolicyType(self.policy_type))
        if not isinstance(self.refund_percentage, Decimal):
            object.__setattr__(self, 'refund_percentage', Decimal(str(self.refund_percentage)))
        if not Decimal('0') <= self.refund_percentage <= HUNDRED:
            raise ValueError("Refund percentage must be between 0 and 100")
        if self.days_before_checkin < 0:
            raise ValueError("Days before check-in cannot be negative")

    @classmethod
    def template(cls, policy_type: PolicyType) -> 'PolicyTerms':
        """Default terms of a policy type"""
        policy_type = PolicyType(policy_type)
        return cls(
            policy_type=policy_type,
            refund_percentage=policy_type.default_refund_percentage,
            days_before_checkin=policy_type.default_days_before_checkin,
            description=policy_type.description,
        )


DEFAULT_POLICY = PolicyTerms(
    policy_type=PolicyType.MODERATE,
    refund_percentage=Decimal('50'),
    days_before_checkin=5,
    description='Moderate cancellation policy - 50% refund if cancelled 5+ days before check-in',
)


def days_until_check_in(check_in: date, cancellation_date: date) -> int:
    """Whole days left before check-in, never negative"""
    return max(0, (check_in - cancellation_date).days)


def _late_refund_percentage(policy_type: PolicyType, days_left: int) -> Decimal:
    """Percentage refunded when the policy's notice period was missed"""
    match policy_type:
        case PolicyType.FLEXIBLE:
            return Decimal('50') if days_left >= 1 else Decimal('0')
        case PolicyType.MODERATE:
            return Decimal('50') if days_left >= 5 else Decimal('0')
        case (
            PolicyType.STRICT
            | PolicyType.SUPER_STRICT_30
            | PolicyType.SUPER_STRICT_60
            | PolicyType.NON_REFUNDABLE
        ):
            return Decimal('0')
        case _:
            assert_never(policy_type)


def calculate_refund(
    terms: PolicyTerms,
    total: Money,
    cancellation_date: date,
    check_in: date,
) -> Money:
    """
    Refund owed for cancelling a stay on ``cancellation_date``.

    With enough notice the policy percentage applies. Otherwise FLEXIBLE and
    MODERATE still return half while at least 1 or 5 days remain; the other
    types return nothing. The result is rounded half-up to cents and never
    exceeds the total.
    """
    days_left = days_until_check_in(check_in, cancellation_date)

    if days_left >= terms.days_before_checkin:
        percentage = terms.refund_percentage
    else:
        percentage = _late_refund_percentage(terms.policy_type, days_left)

    refund = (total * percentage / HUNDRED).rounded()
    if total < refund:
        return total
    return refund


def policy_violations(terms: PolicyTerms) -> List[str]:
    """Reasons the terms disagree with their policy type"""
    pct = terms.refund_percentage
    days = terms.days_before_checkin
    errors: List[str] = []

    match terms.policy_type:
        case PolicyType.FLEXIBLE:
            if pct < 80:
                errors.append("Flexible policy should offer at least 80% refund")
            if days > 1:
                errors.append("Flexible policy should require cancellation at most 1 day before check-in")
        case PolicyType.MODERATE:
            if pct < 50:
                errors.append("Moderate policy should offer at least 50% refund")
            if days < 5 or days > 7:
                errors.append("Moderate policy should require cancellation 5-7 days before check-in")
        case PolicyType.STRICT:
            if pct > 50:
                errors.append("Strict policy should offer at most 50% refund")
            if days < 7:
                errors.append("Strict policy should require cancellation at least 7 days before check-in")
        case PolicyType.SUPER_STRICT_30 | PolicyType.SUPER_STRICT_60:
            if pct > 50:
                errors.append("Super strict policy should offer limited refund (max 50%)")
        case PolicyType.NON_REFUNDABLE:
            if pct > 0:
                errors.append("Non-refundable policy should offer no refund")
        case _:
            assert_never(terms.policy_type)

    return errors


def validate_policy_terms(terms: PolicyTerms) -> PolicyTerms:
    """Raise ValidationError unless the terms are consistent with their type"""
    errors = policy_violations(terms)
    if errors:
        raise ValidationError(errors[0], details=errors)
    return terms


def default_templates() -> List[PolicyTerms]:
    return [PolicyTerms.template(policy_type) for policy_type in PolicyType]

"""Property domain models for the reservation engine.

Holds the minimal property record the engine reads, the per-date
availability calendar and the host's cancellation policies.
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings  # type: ignore
from django.core.validators import MaxValueValidator, MinValueValidator  # type: ignore
from django.db import models  # type: ignore
from django.db.models import F, Q  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from apps.bookings.domain.availability import DayRule, PropertyTerms
from apps.bookings.domain.cancellation import PolicyTerms, PolicyType
from shared.domain.value_objects import Money


class Property(models.Model):
    """Rental listing a guest can reserve."""

    class Status(models.TextChoices):
        DRAFT = "draft", _("Draft")
        ACTIVE = "active", _("Active")
        INACTIVE = "inactive", _("Inactive")
        BLOCKED = "blocked", _("Blocked")

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="properties",
    )
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.ACTIVE,
    )
    base_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0"))],
        help_text=_("Nightly price used when a date has no override."),
    )
    currency = models.CharField(max_length=3, default="USD")
    max_adults = models.PositiveSmallIntegerField(
        default=0,
        help_text=_("0 means no limit when max_children is also 0."),
    )
    max_children = models.PositiveSmallIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Property")
        verbose_name_plural = _("Properties")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["owner", "status"], name="property_owner_status_idx"),
        ]

    def __str__(self) -> str:
        return self.title

    @property
    def max_guests(self) -> int:
        return self.max_adults + self.max_children

    def is_owned_by(self, user_id: int) -> bool:
        return self.owner_id == user_id

    def to_terms(self) -> PropertyTerms:
        return PropertyTerms(
            property_id=self.pk,
            base_price=Money(self.base_price, self.currency),
            max_adults=self.max_adults,
            max_children=self.max_children,
            accepting_bookings=self.status == self.Status.ACTIVE,
        )


class AvailabilityDay(models.Model):
    """Per-date override of a property's defaults.

    A date without a row is available at the base price.
    """

    property = models.ForeignKey(
        Property,
        on_delete=models.CASCADE,
        related_name="availability_days",
    )
    date = models.DateField()
    is_available = models.BooleanField(default=True)
    price_override = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0"))],
    )
    min_stay = models.PositiveSmallIntegerField(null=True, blank=True)
    max_stay = models.PositiveSmallIntegerField(null=True, blank=True)
    is_instant_book = models.BooleanField(null=True, blank=True)
    blocked_reason = models.CharField(max_length=255, null=True, blank=True)
    check_in_allowed = models.BooleanField(null=True, blank=True)
    check_out_allowed = models.BooleanField(null=True, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Availability day")
        verbose_name_plural = _("Availability days")
        ordering = ["property", "date"]
        constraints = [
            models.UniqueConstraint(
                fields=["property", "date"],
                name="availability_day_unique_per_property",
            ),
            models.CheckConstraint(
                condition=Q(min_stay__isnull=True)
                | Q(max_stay__isnull=True)
                | Q(max_stay__gte=F("min_stay")),
                name="availability_day_stay_limits",
            ),
        ]
        indexes = [
            models.Index(fields=["property", "is_available", "date"], name="availability_day_open_idx"),
        ]

    def __str__(self) -> str:
        state = "available" if self.is_available else "blocked"
        return f"{self.property_id} {self.date.isoformat()} ({state})"

    def to_rule(self) -> DayRule:
        return DayRule(
            is_available=self.is_available,
            price_override=self.price_override,
            min_stay=self.min_stay,
            max_stay=self.max_stay,
            is_instant_book=self.is_instant_book,
            blocked_reason=self.blocked_reason,
        )


class CancellationPolicy(models.Model):
    """Host-defined cancellation policy of a property."""

    property = models.ForeignKey(
        Property,
        on_delete=models.CASCADE,
        related_name="cancellation_policies",
    )
    policy_type = models.CharField(max_length=20, choices=PolicyType.choices())
    refund_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("100"))],
    )
    days_before_checkin = models.PositiveSmallIntegerField()
    description = models.CharField(max_length=500, blank=True)
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Cancellation policy")
        verbose_name_plural = _("Cancellation policies")
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["property"],
                condition=Q(is_active=True),
                name="cancellation_policy_one_active",
            ),
            models.CheckConstraint(
                condition=Q(refund_percentage__gte=0) & Q(refund_percentage__lte=100),
                name="cancellation_policy_refund_range",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.get_policy_type_display()} ({self.refund_percentage}%, {self.days_before_checkin}d)"

    def to_terms(self) -> PolicyTerms:
        return PolicyTerms(
            policy_type=PolicyType(self.policy_type),
            refund_percentage=self.refund_percentage,
            days_before_checkin=self.days_before_checkin,
            description=self.description,
        )

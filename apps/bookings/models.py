"""Booking domain models for the reservation engine."""

from __future__ import annotations

import secrets
from decimal import Decimal

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from apps.bookings.domain.entities import (
    BLOCKING_STATUSES,
    LIVE_STATUSES,
    BookingStatus,
    CancellationSource,
    RefundStatus,
)
from shared.domain.value_objects import Actor, DateRange, Money


class BookingQuerySet(models.QuerySet):
    def live(self):
        return self.filter(status__in=[status.value for status in LIVE_STATUSES])

    def blocking(self):
        return self.filter(status__in=[status.value for status in BLOCKING_STATUSES])

    def overlapping(self, check_in, check_out):
        """Bookings whose [check_in, check_out) intersects the given range"""
        return self.filter(check_in__lt=check_out, check_out__gt=check_in)


class Booking(models.Model):
    """Reservation of a property by a guest for the nights [check_in, check_out)."""

    Status = BookingStatus
    CancellationSource = CancellationSource
    RefundStatus = RefundStatus

    property = models.ForeignKey(
        "properties.Property",
        on_delete=models.CASCADE,
        related_name="bookings",
    )
    guest = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="guest_bookings",
    )
    host = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="host_bookings",
    )
    confirmation_code = models.CharField(max_length=16, unique=True, editable=False)
    check_in = models.DateField()
    check_out = models.DateField()
    adults = models.PositiveSmallIntegerField(default=1)
    children = models.PositiveSmallIntegerField(default=0)
    status = models.CharField(
        max_length=20,
        choices=BookingStatus.choices(),
        default=BookingStatus.PENDING.value,
    )
    nightly_rate = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text=_("Average nightly price fixed when the booking was priced."),
    )
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    currency = models.CharField(max_length=3, default="USD")
    special_requests = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    host_notes = models.TextField(blank=True)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    checked_in_at = models.DateTimeField(null=True, blank=True)
    checked_out_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_source = models.CharField(
        max_length=10,
        choices=CancellationSource.choices(),
        blank=True,
    )
    cancellation_reason = models.CharField(max_length=500, blank=True)
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    refund_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    refund_status = models.CharField(
        max_length=20,
        choices=RefundStatus.choices(),
        default=RefundStatus.NOT_APPLICABLE.value,
    )
    version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = BookingQuerySet.as_manager()

    class Meta:
        verbose_name = _("Booking")
        verbose_name_plural = _("Bookings")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(check_out__gt=models.F("check_in")),
                name="booking_valid_dates",
            ),
        ]
        indexes = [
            models.Index(fields=["property", "check_in", "check_out"], name="booking_property_dates_idx"),
            models.Index(fields=["status", "created_at"], name="booking_status_created_idx"),
            models.Index(fields=["guest", "status"], name="booking_guest_status_idx"),
            models.Index(fields=["host", "status"], name="booking_host_status_idx"),
        ]

    def __str__(self) -> str:
        return f"Booking #{self.confirmation_code} for {self.property_id}"

    @staticmethod
    def generate_confirmation_code(prefix: str = "BK") -> str:
        return f"{prefix}{secrets.token_hex(4).upper()}"

    def stay(self) -> DateRange:
        return DateRange(self.check_in, self.check_out)

    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    def total(self) -> Money:
        return Money(self.total_amount, self.currency)

    def current_status(self) -> BookingStatus:
        return BookingStatus(self.status)

    def is_guest(self, actor: Actor) -> bool:
        return self.guest_id == actor.user_id

    def is_host(self, actor: Actor) -> bool:
        return self.host_id == actor.user_id

    def involves(self, actor: Actor) -> bool:
        return self.is_guest(actor) or self.is_host(actor)


class ReservedNight(models.Model):
    """A night of a property held by a live booking.

    The unique constraint on (property, night) is what makes two
    reservations of the same night impossible at the storage layer.
    """

    property = models.ForeignKey(
        "properties.Property",
        on_delete=models.CASCADE,
        related_name="reserved_nights",
    )
    booking = models.ForeignKey(
        Booking,
        on_delete=models.CASCADE,
        related_name="reserved_nights",
    )
    night = models.DateField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Reserved night")
        verbose_name_plural = _("Reserved nights")
        ordering = ["property", "night"]
        constraints = [
            models.UniqueConstraint(
                fields=["property", "night"],
                name="reserved_night_unique_per_property",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.property_id} {self.night.isoformat()} -> booking {self.booking_id}"


class BookingGuest(models.Model):
    """A person staying under a booking, beyond the booking's own guest account."""

    booking = models.ForeignKey(
        Booking,
        on_delete=models.CASCADE,
        related_name="roster",
    )
    full_name = models.CharField(max_length=100)
    email = models.EmailField(max_length=100)
    phone = models.CharField(max_length=20, blank=True)
    age = models.PositiveSmallIntegerField(null=True, blank=True)
    is_primary = models.BooleanField(default=False)
    special_requests = models.CharField(max_length=500, blank=True)
    dietary_restrictions = models.CharField(max_length=300, blank=True)
    emergency_contact_name = models.CharField(max_length=100, blank=True)
    emergency_contact_phone = models.CharField(max_length=20, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Booking guest")
        verbose_name_plural = _("Booking guests")
        ordering = ["booking", "-is_primary", "pk"]
        constraints = [
            models.UniqueConstraint(
                fields=["booking"],
                condition=models.Q(is_primary=True),
                name="booking_guest_one_primary",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.full_name} on booking {self.booking_id}"

"""Reservation engine settings.

Values come from ``settings.BOOKING_ENGINE`` and fall back to the defaults
below. Read them through ``engine_setting`` so that ``override_settings``
in tests takes effect.
"""

from __future__ import annotations

from typing import Any

from django.conf import settings  # type: ignore
from django.core.exceptions import ImproperlyConfigured  # type: ignore

from apps.bookings.domain.entities import CHECKED_IN_CANCELLATION_MODES

DEFAULTS: dict[str, Any] = {
    "PENDING_TTL_HOURS": 24,
    "AVAILABILITY_RETENTION_DAYS": 0,
    "CHECKED_IN_CANCELLATION": "refund",
    "PAYMENT_EXECUTOR": "apps.bookings.payments.LoggingPaymentExecutor",
    "CONFIRMATION_CODE_PREFIX": "BK",
    "CALENDAR_WINDOW_DAYS": 31,
    "STATISTICS_WINDOW_DAYS": 365,
}


def engine_setting(name: str) -> Any:
    if name not in DEFAULTS:
        raise ImproperlyConfigured(f"Unknown reservation engine setting: {name}")
    overrides = getattr(settings, "BOOKING_ENGINE", {}) or {}
    value = overrides.get(name, DEFAULTS[name])

    if name == "CHECKED_IN_CANCELLATION" and value not in CHECKED_IN_CANCELLATION_MODES:
        raise ImproperlyConfigured(
            f"BOOKING_ENGINE['CHECKED_IN_CANCELLATION'] must be one of {CHECKED_IN_CANCELLATION_MODES}"
        )
    return value

"""
Clock

Source of "now" and "today" for the application layer. Handlers take a
clock argument so that date-dependent rules can be exercised with a fixed
date.
"""

from datetime import date, datetime

from django.utils import timezone


class SystemClock:
    """Wall clock in the project's configured time zone"""

    def now(self) -> datetime:
        return timezone.now()

    def today(self) -> date:
        return timezone.localdate()


class FixedClock:
    """Clock frozen at a given instant"""

    def __init__(self, moment):
        if isinstance(moment, datetime):
            self._now = moment if timezone.is_aware(moment) else timezone.make_aware(moment)
        else:
            self._now = timezone.make_aware(datetime(moment.year, moment.month, moment.day, 12, 0))

    def now(self) -> datetime:
        return self._now

    def today(self) -> date:
        return timezone.localdate(self._now)


system_clock = SystemClock()

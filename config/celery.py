import os

from celery import Celery
from celery.schedules import crontab  # type: ignore

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.dev")

app = Celery("reservation_engine")

app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()


# ============================================================================
# CELERY BEAT SCHEDULE (Periodic Tasks)
# ============================================================================

app.conf.beat_schedule = {
    # Cancel pending bookings the host never approved - every 5 minutes
    "expire-pending-bookings": {
        "task": "bookings.expire_pending_bookings",
        "schedule": 300.0,
        "options": {"expires": 240},
    },
    # Complete bookings after check-out - hourly
    "complete-finished-bookings": {
        "task": "bookings.complete_finished_bookings",
        "schedule": crontab(minute=15),
    },
    # Retention cleanup of past calendar days - nightly
    "purge-past-availability": {
        "task": "bookings.purge_past_availability",
        "schedule": crontab(minute=30, hour=3),
    },
}

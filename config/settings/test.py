"""Test settings for the reservation engine.

Tests run against a file-backed SQLite database so that the concurrency
tests can open one connection per thread. Celery tasks run eagerly.
"""

from .base import *  # noqa: F401,F403

DEBUG = False

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'test_db.sqlite3',  # noqa: F405
        'OPTIONS': {
            'transaction_mode': 'IMMEDIATE',
            'timeout': 30,
        },
        'TEST': {
            'NAME': BASE_DIR / 'test_reservations.sqlite3',  # noqa: F405
        },
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

BOOKING_ENGINE = {
    **BOOKING_ENGINE,  # noqa: F405
    'PENDING_TTL_HOURS': 24,
    'AVAILABILITY_RETENTION_DAYS': 0,
    'CHECKED_IN_CANCELLATION': 'refund',
    'PAYMENT_EXECUTOR': 'apps.bookings.payments.LoggingPaymentExecutor',
}

LOGGING["root"]["level"] = "CRITICAL"  # noqa: F405
LOGGING["loggers"]["apps"]["level"] = "WARNING"  # noqa: F405
LOGGING["loggers"]["shared"]["level"] = "WARNING"  # noqa: F405

"""Base settings for all environments.

This configuration file defines the common settings used in development,
production and tests. It follows Django's standard configuration
structure and integrates Django Rest Framework, Celery and structlog.
Environment-specific overrides live in `dev.py`, `prod.py` and `test.py`.
"""

import os
from pathlib import Path

import structlog

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'replace-me-in-production')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = False

ALLOWED_HOSTS: list[str] = os.environ.get('DJANGO_ALLOWED_HOSTS', '*').split(',')

# Application definition

INSTALLED_APPS = [
    'django.contrib.auth',
    'django.contrib.contenttypes',
    # Third‑party apps
    'rest_framework',
    # Domain apps
    'apps.properties',
    'apps.bookings',
]

MIDDLEWARE: list[str] = []

# Database
# https://docs.djangoproject.com/en/5.1/ref/settings/#databases

DATABASES = {
    'default': {
        'ENGINE': os.environ.get('DB_ENGINE', 'django.db.backends.sqlite3'),
        'NAME': os.environ.get('DB_NAME', BASE_DIR / 'db.sqlite3'),
        'USER': os.environ.get('DB_USER', ''),
        'PASSWORD': os.environ.get('DB_PASSWORD', ''),
        'HOST': os.environ.get('DB_HOST', ''),
        'PORT': os.environ.get('DB_PORT', ''),
    }
}

# SQLite only takes row locks at the database level. Starting write
# transactions with BEGIN IMMEDIATE makes concurrent reservations queue up
# instead of failing when a read lock is upgraded.
if DATABASES['default']['ENGINE'] == 'django.db.backends.sqlite3':
    DATABASES['default']['OPTIONS'] = {
        'transaction_mode': 'IMMEDIATE',
        'timeout': int(os.environ.get('DB_TIMEOUT', 20)),
    }

# Internationalization
# https://docs.djangoproject.com/en/5.1/topics/i18n/

LANGUAGE_CODE = 'en-us'

TIME_ZONE = os.environ.get('DJANGO_TIME_ZONE', 'Asia/Almaty')

USE_I18N = True

USE_TZ = True

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Django Rest Framework (serializers only; transport lives outside this project)
REST_FRAMEWORK = {
    'COERCE_DECIMAL_TO_STRING': True,
    'DATE_FORMAT': 'iso-8601',
}

# Celery configuration (Broker and Result backend handled in environment)
CELERY_BROKER_URL = os.environ.get('CELERY_BROKER_URL', 'redis://localhost:6379/0')
CELERY_RESULT_BACKEND = os.environ.get('CELERY_RESULT_BACKEND', 'redis://localhost:6379/0')
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_ACKS_LATE = True

# Reservation engine
BOOKING_ENGINE = {
    'PENDING_TTL_HOURS': int(os.environ.get('BOOKING_PENDING_TTL_HOURS', 24)),
    'AVAILABILITY_RETENTION_DAYS': int(os.environ.get('BOOKING_AVAILABILITY_RETENTION_DAYS', 0)),
    'CHECKED_IN_CANCELLATION': os.environ.get('BOOKING_CHECKED_IN_CANCELLATION', 'refund'),
    'PAYMENT_EXECUTOR': os.environ.get(
        'BOOKING_PAYMENT_EXECUTOR',
        'apps.bookings.payments.LoggingPaymentExecutor',
    ),
    'CONFIRMATION_CODE_PREFIX': os.environ.get('BOOKING_CONFIRMATION_CODE_PREFIX', 'BK'),
    'CALENDAR_WINDOW_DAYS': 31,
    'STATISTICS_WINDOW_DAYS': 365,
}

# Logging
LOG_LEVEL = os.environ.get('DJANGO_LOG_LEVEL', 'INFO')

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "json": {
            "()": "structlog.stdlib.ProcessorFormatter",
            "processor": structlog.processors.JSONRenderer(),
            "foreign_pre_chain": [
                structlog.stdlib.add_logger_name,
                structlog.stdlib.ExtraAdder(),
                structlog.processors.add_log_level,
                structlog.processors.TimeStamper(fmt="iso"),
            ],
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "level": LOG_LEVEL,
        }
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "django": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "apps": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "shared": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "celery": {"handlers": ["console"], "level": "INFO", "propagate": False},
    },
}

"""Production settings for the reservation engine.

This module extends the base settings with production specific
configuration. Ensure that sensitive values are provided via
environment variables; production is expected to run on PostgreSQL
(``DB_ENGINE=django.db.backends.postgresql``).
"""

from django.core.exceptions import ImproperlyConfigured  # type: ignore

from .base import *  # noqa: F401,F403

# Never run with debug enabled in production
DEBUG = False

if SECRET_KEY == 'replace-me-in-production':  # noqa: F405
    raise ImproperlyConfigured("DJANGO_SECRET_KEY must be set in production")

# Allowed hosts should be defined explicitly via environment variable
ALLOWED_HOSTS = os.environ.get('DJANGO_ALLOWED_HOSTS', '').split(',')  # noqa: F405

# Keep connections open between requests
DATABASES['default']['CONN_MAX_AGE'] = int(os.environ.get('DB_CONN_MAX_AGE', 60))  # noqa: F405

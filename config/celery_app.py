"""Celery application for background booking work.

Workers load Django settings from ``DJANGO_SETTINGS_MODULE`` (production by
default) and pick up ``tasks`` modules from every installed app.
"""

import os

from celery import Celery
from celery.signals import setup_logging

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.production")

app = Celery("workforce")

# All celery keys live in Django settings with a ``CELERY_`` prefix.
app.config_from_object("django.conf:settings", namespace="CELERY")


@setup_logging.connect
def config_loggers(*args, **kwargs):
    """Workers log through the same ``LOGGING`` dict as the web process."""
    from logging.config import dictConfig  # noqa: PLC0415

    from django.conf import settings  # noqa: PLC0415

    dictConfig(settings.LOGGING)


# bookings.approve, bookings.regenerate_events
app.autodiscover_tasks()

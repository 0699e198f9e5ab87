"""Celery worker for the notification fan-out tasks.

Run with ``celery -A config.celery_app worker -l info``. Tasks are declared
with ``shared_task`` in each app's ``tasks.py`` and picked up by autodiscovery.
"""

import os

from celery import Celery
from celery.signals import setup_logging

# pytest and manage.py set their own settings module first
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.production")

app = Celery("connectlocal")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.conf.task_default_queue = "connectlocal"


@setup_logging.connect
def config_loggers(*args, **kwargs):
    """Reuse Django's ``LOGGING`` so worker and web logs share one format."""
    from logging.config import dictConfig  # noqa: PLC0415

    from django.conf import settings  # noqa: PLC0415

    dictConfig(settings.LOGGING)


app.autodiscover_tasks()

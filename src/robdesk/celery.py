"""Celery configuration for ROBDESK."""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "robdesk.settings")

app = Celery("robdesk")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

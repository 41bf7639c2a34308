"""Celery application for the intake service."""
from __future__ import annotations

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "intake_service.settings")

app = Celery("intake_service")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

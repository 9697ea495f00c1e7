"""Celery application for the lifecycle service."""
from __future__ import annotations

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "lifecycle_service.settings")

app = Celery("lifecycle_service")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

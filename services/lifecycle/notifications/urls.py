"""Route registration for notification endpoints."""
from __future__ import annotations

from django.urls import path

from .views import queue_metrics

urlpatterns = [
    path("mail/queue-metrics/", queue_metrics, name="mail-queue-metrics"),
]

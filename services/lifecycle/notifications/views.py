"""Observability for the outbound mail queue."""
from __future__ import annotations

from typing import Dict

from django.db.models import Count
from django.utils import timezone
from rest_framework.decorators import api_view
from rest_framework.request import Request
from rest_framework.response import Response

from .models import MailMessage


@api_view(["GET"])
def queue_metrics(_: Request) -> Response:
    totals: Dict[str, int] = {
        MailMessage.PENDING: 0,
        MailMessage.SENT: 0,
        MailMessage.FAILED: 0,
    }

    for entry in MailMessage.objects.values("status").order_by().annotate(total=Count("id")):
        status_value = entry.get("status")
        if status_value in totals:
            totals[status_value] = int(entry.get("total", 0))

    oldest_pending = (
        MailMessage.objects.filter(status=MailMessage.PENDING).order_by("created_at").first()
    )
    if oldest_pending is not None:
        wait_seconds = max(int((timezone.now() - oldest_pending.created_at).total_seconds()), 0)
    else:
        wait_seconds = 0

    return Response(
        {
            "pending": totals[MailMessage.PENDING],
            "sent": totals[MailMessage.SENT],
            "failed": totals[MailMessage.FAILED],
            "oldestPendingSeconds": wait_seconds,
        }
    )

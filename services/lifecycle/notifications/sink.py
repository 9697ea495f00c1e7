"""The notification emitter interface and its mail-queue implementation."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Protocol, Sequence, Tuple

from django.db import transaction
from django.utils import timezone

from lifecycle_service.errors import DependencyFailure

from .models import MailMessage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationRequest:
    to: Tuple[str, ...]
    subject: str
    body: str
    created_at: datetime = field(default_factory=timezone.now)

    @classmethod
    def build(cls, to: Sequence[str], subject: str, body: str) -> "NotificationRequest":
        recipients = tuple(dict.fromkeys(address for address in to if address))
        return cls(to=recipients, subject=subject, body=body)


class NotificationSink(Protocol):
    def enqueue(self, request: NotificationRequest) -> object:
        ...


class MailQueueSink:
    """Persist requests to the mail queue and hand them to the delivery worker.

    The queue row joins whatever transaction is open; delivery is only
    dispatched once that transaction commits.
    """

    def enqueue(self, request: NotificationRequest) -> MailMessage:
        from .tasks import deliver_mail

        message = MailMessage.objects.create(
            to=list(request.to),
            subject=request.subject,
            body=request.body,
            created_at=request.created_at,
        )
        transaction.on_commit(lambda: deliver_mail.delay(message.pk), robust=True)
        return message


def enqueue_quietly(sink: NotificationSink, request: NotificationRequest) -> Optional[object]:
    """Best-effort enqueue for post-commit side effects; failures are logged, never raised."""

    if not request.to:
        logger.warning("Notification '%s' has no recipients; dropped", request.subject)
        return None
    try:
        return sink.enqueue(request)
    except Exception as exc:  # noqa: BLE001 - side effects never undo committed state
        failure = DependencyFailure(
            f"Could not queue notification '{request.subject}'.",
            {"to": list(request.to), "error": str(exc)},
        )
        logger.warning("[%s] %s %s", failure.code, failure.message, failure.details)
        return None

"""Background delivery of queued mail."""
from __future__ import annotations

import logging

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail

from .models import MailMessage

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=None)
def deliver_mail(self, message_id: int) -> None:
    """Send one queued message, backing off exponentially on transport errors."""

    try:
        message = MailMessage.objects.get(pk=message_id)
    except MailMessage.DoesNotExist:
        logger.warning("Mail message %s does not exist", message_id)
        return

    if message.status != MailMessage.PENDING:
        logger.info("Mail message %s already %s", message_id, message.status)
        return

    try:
        send_mail(
            message.subject,
            message.body,
            settings.DEFAULT_FROM_EMAIL,
            list(message.to),
            fail_silently=False,
        )
    except Exception as exc:
        logger.exception("Delivering mail message %s failed", message_id)
        if message.attempts + 1 >= settings.MAIL_MAX_ATTEMPTS:
            message.mark_failed(str(exc))
            return
        message.mark_retrying(str(exc))
        raise self.retry(exc=exc, countdown=min(300, 2 ** self.request.retries))

    message.mark_sent()
    logger.info("Mail message %s sent to %s", message_id, ", ".join(message.to))

"""Periodic SLA sweeps over open tickets."""
from __future__ import annotations

import logging
from typing import List

from celery import shared_task

from .services import TicketLifecycle

logger = logging.getLogger(__name__)


@shared_task
def escalate_tickets() -> List[int]:
    """Flag tickets that are about to breach their resolution SLA."""

    escalated = TicketLifecycle().escalate_at_risk()
    logger.info("Escalation sweep finished; %d ticket(s) escalated", len(escalated))
    return escalated


@shared_task
def auto_close_tickets() -> List[int]:
    closed = TicketLifecycle().auto_close_resolved()
    logger.info("Auto-close sweep finished; %d ticket(s) closed", len(closed))
    return closed

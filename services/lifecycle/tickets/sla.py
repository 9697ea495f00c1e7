"""Deadline targets derived from ticket priority."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, NamedTuple

from .models import TicketPriority


class SlaTargets(NamedTuple):
    response_target: datetime
    resolution_target: datetime


SLA_OFFSETS: Dict[str, tuple[timedelta, timedelta]] = {
    TicketPriority.CRITICAL: (timedelta(hours=1), timedelta(hours=4)),
    TicketPriority.HIGH: (timedelta(hours=2), timedelta(hours=12)),
    TicketPriority.MEDIUM: (timedelta(days=1), timedelta(days=3)),
    TicketPriority.LOW: (timedelta(days=2), timedelta(days=7)),
}


def compute_sla_targets(priority: str, now: datetime) -> SlaTargets:
    """Response and resolution deadlines for a ticket created at ``now``.

    Unrecognised priorities get the ``medium`` offsets.
    """

    response, resolution = SLA_OFFSETS.get(priority, SLA_OFFSETS[TicketPriority.MEDIUM])
    return SlaTargets(now + response, now + resolution)

"""Database models for support tickets."""
from __future__ import annotations

from django.db import models
from django.utils import timezone


class TicketStatus(models.TextChoices):
    OPEN = "open", "Open"
    IN_PROGRESS = "in_progress", "In Progress"
    WAITING_PARTS = "waiting_parts", "Waiting for Parts"
    RESOLVED = "resolved", "Resolved"
    CLOSED = "closed", "Closed"


class TicketPriority(models.TextChoices):
    CRITICAL = "critical", "Critical"
    HIGH = "high", "High"
    MEDIUM = "medium", "Medium"
    LOW = "low", "Low"


ACTIVE_STATUSES = (TicketStatus.OPEN, TicketStatus.IN_PROGRESS, TicketStatus.WAITING_PARTS)


class Ticket(models.Model):
    """A support ticket whose status only moves through :mod:`tickets.services`."""

    ticket_number = models.CharField(max_length=32, unique=True)
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=64, blank=True)
    priority = models.CharField(
        max_length=16, choices=TicketPriority.choices, default=TicketPriority.MEDIUM
    )
    status = models.CharField(max_length=32, choices=TicketStatus.choices, default=TicketStatus.OPEN)

    requester_id = models.CharField(max_length=128)
    requester_name = models.CharField(max_length=255, blank=True)
    requester_email = models.EmailField(blank=True)
    assigned_tech_id = models.CharField(max_length=128, null=True, blank=True)
    assigned_tech_name = models.CharField(max_length=255, blank=True)

    resolution = models.TextField(blank=True)
    rating = models.PositiveSmallIntegerField(null=True, blank=True)

    sla_response_target = models.DateTimeField()
    sla_resolution_target = models.DateTimeField()
    sla_response_met = models.BooleanField(null=True, blank=True)
    sla_resolution_met = models.BooleanField(null=True, blank=True)
    escalated = models.BooleanField(default=False)

    created_at = models.DateTimeField(default=timezone.now)
    responded_at = models.DateTimeField(null=True, blank=True)
    resolved_at = models.DateTimeField(null=True, blank=True)
    closed_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)
    version = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["-created_at", "id"]
        indexes = [
            models.Index(fields=["status"], name="ticket_status_idx"),
            models.Index(fields=["requester_id"], name="ticket_requester_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.ticket_number} {self.title} ({self.status})"


class TicketCounter(models.Model):
    """Per-year sequence backing ``TKT-<year>-<NNNN>`` numbers."""

    year = models.PositiveIntegerField(unique=True)
    count = models.PositiveIntegerField(default=0)

    def __str__(self) -> str:
        return f"{self.year}: {self.count}"

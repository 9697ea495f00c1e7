"""Plain-text bodies for lifecycle notifications."""
from __future__ import annotations

from datetime import date
from typing import Any, Sequence

from django.utils import timezone

from .sink import NotificationRequest

STATUS_LABELS = {
    "open": "Open",
    "in_progress": "In Progress",
    "waiting_parts": "Waiting for Parts",
    "resolved": "Resolved",
    "closed": "Closed",
}


def _when(value: Any) -> str:
    if value is None:
        return "-"
    return timezone.localtime(value).strftime("%d %b %Y %H:%M")


def ticket_created(ticket: Any, recipients: Sequence[str]) -> NotificationRequest:
    subject = f"[NEW TICKET] {ticket.priority.upper()} - {ticket.ticket_number}"
    body = "\n".join(
        [
            "A new support ticket has been raised.",
            "",
            f"Ticket:     {ticket.ticket_number}",
            f"Requester:  {ticket.requester_name}",
            f"Priority:   {ticket.priority}",
            f"Title:      {ticket.title}",
            f"Respond by: {_when(ticket.sla_response_target)}",
            f"Resolve by: {_when(ticket.sla_resolution_target)}",
        ]
    )
    return NotificationRequest.build(recipients, subject, body)


def ticket_status_changed(ticket: Any, old_status: str, new_status: str) -> NotificationRequest:
    subject = f"[TICKET UPDATE] {ticket.ticket_number}: {STATUS_LABELS.get(new_status, new_status)}"
    lines = [
        f"Hello {ticket.requester_name or 'there'},",
        "",
        f"The status of ticket {ticket.ticket_number} ({ticket.title}) changed",
        f"from {STATUS_LABELS.get(old_status, old_status)} to {STATUS_LABELS.get(new_status, new_status)}.",
    ]
    if new_status == "resolved" and ticket.resolution:
        lines += ["", f"Resolution: {ticket.resolution}", "", "Please confirm the fix or reopen the ticket."]
    return NotificationRequest.build([ticket.requester_email], subject, "\n".join(lines))


def ticket_assigned(ticket: Any, recipient: str) -> NotificationRequest:
    subject = f"[ASSIGNED] {ticket.ticket_number} - {ticket.title}"
    body = "\n".join(
        [
            f"Ticket {ticket.ticket_number} has been assigned to {ticket.assigned_tech_name}.",
            "",
            f"Priority:   {ticket.priority}",
            f"Status:     {STATUS_LABELS.get(ticket.status, ticket.status)}",
            f"Resolve by: {_when(ticket.sla_resolution_target)}",
        ]
    )
    return NotificationRequest.build([recipient], subject, body)


def ticket_escalated(ticket: Any, recipients: Sequence[str], remaining_minutes: int) -> NotificationRequest:
    subject = f"[SLA ESCALATION] {ticket.ticket_number} - {ticket.title}"
    body = "\n".join(
        [
            f"Ticket {ticket.ticket_number} is close to breaching its resolution SLA.",
            "",
            f"Priority:       {ticket.priority}",
            f"Requester:      {ticket.requester_name}",
            f"Assigned to:    {ticket.assigned_tech_name or 'unassigned'}",
            f"Time remaining: {remaining_minutes} minutes",
        ]
    )
    return NotificationRequest.build(recipients, subject, body)


def subscription_expiring(
    subscription: Any, recipient: str, level: str, days_left: int, expiry: date
) -> NotificationRequest:
    subject = f"[WARNING] Subscription {subscription.name} expires in {level}"
    body = "\n".join(
        [
            "The following service contract is about to expire:",
            "",
            f"Service:   {subscription.name}",
            f"Vendor:    {subscription.provider}",
            f"Expires:   {expiry.strftime('%d %b %Y')}",
            f"Days left: {days_left}",
            "",
            "Please arrange the renewal if the service is still needed.",
        ]
    )
    return NotificationRequest.build([recipient], subject, body)

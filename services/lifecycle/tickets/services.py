"""Ticket lifecycle: creation, the status state machine and side-channel updates.

Every mutation follows the same shape:

1. open ``transaction.atomic()`` and re-read the ticket with ``select_for_update``;
2. validate the request against the persisted state (edge, actor, preconditions);
3. write the new field values with an ``UPDATE`` conditioned on the status and
   version that were read, so a concurrent writer makes this one fail;
4. append the audit entry inside the same transaction;
5. after commit, queue notifications on a best-effort basis.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Callable, Dict, FrozenSet, List, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from audit.models import EntityType
from audit.recorder import AuditRecorder, changes
from lifecycle_service.actors import SYSTEM_ACTOR, Actor, Role
from lifecycle_service.errors import (
    ActorNotPermitted,
    InvalidTransition,
    MissingPrecondition,
    NotFound,
)
from notifications import messages
from notifications.directory import HttpIdentityDirectory, IdentityDirectory, resolve_email
from notifications.sink import MailQueueSink, NotificationSink, enqueue_quietly

from .models import ACTIVE_STATUSES, Ticket, TicketCounter, TicketPriority, TicketStatus
from .sla import compute_sla_targets

logger = logging.getLogger(__name__)

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    TicketStatus.OPEN: frozenset({TicketStatus.IN_PROGRESS}),
    TicketStatus.IN_PROGRESS: frozenset({TicketStatus.WAITING_PARTS, TicketStatus.RESOLVED}),
    TicketStatus.WAITING_PARTS: frozenset({TicketStatus.IN_PROGRESS}),
    TicketStatus.RESOLVED: frozenset({TicketStatus.CLOSED, TicketStatus.IN_PROGRESS}),
    TicketStatus.CLOSED: frozenset(),
}

# Edges out of ``resolved`` belong to the requester; every other edge to handlers.
REQUESTER_SOURCES = frozenset({TicketStatus.RESOLVED})


def is_allowed(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


class TicketLifecycle:
    """State machine and side-channel operations over :class:`Ticket`."""

    def __init__(
        self,
        sink: Optional[NotificationSink] = None,
        directory: Optional[IdentityDirectory] = None,
        recorder: Optional[AuditRecorder] = None,
        clock: Callable[[], Any] = timezone.now,
    ):
        self.sink = sink or MailQueueSink()
        self.directory = directory or HttpIdentityDirectory()
        self.recorder = recorder or AuditRecorder()
        self.clock = clock

    # Creation

    def create_ticket(
        self,
        *,
        title: str,
        description: str,
        priority: str,
        requester: Actor,
        category: str = "",
    ) -> Ticket:
        if not title or not title.strip():
            raise MissingPrecondition("A ticket needs a title.", {"field": "title"})
        if priority not in TicketPriority.values:
            logger.warning("Unknown priority %r, filing ticket as medium", priority)
            priority = TicketPriority.MEDIUM

        now = self.clock()
        targets = compute_sla_targets(priority, now)
        with transaction.atomic():
            ticket = Ticket.objects.create(
                ticket_number=self._next_ticket_number(now),
                title=title.strip(),
                description=description or "",
                category=category or "",
                priority=priority,
                status=TicketStatus.OPEN,
                requester_id=requester.id,
                requester_name=requester.name,
                requester_email=requester.email,
                sla_response_target=targets.response_target,
                sla_resolution_target=targets.resolution_target,
                created_at=now,
            )
            self.recorder.record(
                entity_type=EntityType.TICKET,
                entity_id=ticket.pk,
                action="created",
                actor=requester,
                details=f"Ticket {ticket.ticket_number} created with {priority} priority.",
                timestamp=now,
            )

        logger.info(
            "Ticket %s created; respond by %s, resolve by %s",
            ticket.ticket_number,
            targets.response_target.isoformat(),
            targets.resolution_target.isoformat(),
        )
        enqueue_quietly(
            self.sink,
            messages.ticket_created(ticket, [requester.email, settings.OPERATIONS_EMAIL]),
        )
        return ticket

    def _next_ticket_number(self, now) -> str:
        year = timezone.localtime(now).year
        counter, _ = TicketCounter.objects.select_for_update().get_or_create(year=year)
        counter.count += 1
        counter.save(update_fields=["count"])
        return f"TKT-{year}-{counter.count:04d}"

    # Status transitions

    def change_status(
        self,
        ticket_id: Any,
        target_status: str,
        actor: Actor,
        resolution: Optional[str] = None,
    ) -> Ticket:
        now = self.clock()
        with transaction.atomic():
            ticket = self._lock(ticket_id)
            current = ticket.status
            if not is_allowed(current, target_status):
                raise InvalidTransition(ticket.pk, current, target_status)

            fields = self._transition_fields(ticket, target_status, actor, resolution, now)
            self._commit(ticket, fields, now)

            details = f"Status changed from '{current}' to '{target_status}'."
            if target_status == TicketStatus.RESOLVED:
                details += f" Resolution: {ticket.resolution}"
            diff = changes(status=(current, target_status))
            if "assigned_tech_id" in fields:
                diff.update(changes(assigned_tech_id=(None, ticket.assigned_tech_id)))
            self.recorder.record(
                entity_type=EntityType.TICKET,
                entity_id=ticket.pk,
                action="status_changed",
                actor=actor,
                details=details,
                changes=diff,
                timestamp=now,
            )

        logger.info("Ticket %s moved %s -> %s by %s", ticket.ticket_number, current, target_status, actor.id)
        if ticket.requester_email:
            enqueue_quietly(self.sink, messages.ticket_status_changed(ticket, current, target_status))
        return ticket

    def _transition_fields(
        self,
        ticket: Ticket,
        target: str,
        actor: Actor,
        resolution: Optional[str],
        now,
    ) -> Dict[str, Any]:
        current = ticket.status
        self._authorize_transition(ticket, target, actor)

        fields: Dict[str, Any] = {"status": target}
        if current == TicketStatus.OPEN and target == TicketStatus.IN_PROGRESS:
            if not ticket.assigned_tech_id:
                fields["assigned_tech_id"] = actor.id
                fields["assigned_tech_name"] = actor.name
            fields["responded_at"] = now
            if ticket.sla_response_met is None:
                fields["sla_response_met"] = now <= ticket.sla_response_target

        if target == TicketStatus.RESOLVED:
            text = (resolution or "").strip()
            if not text:
                raise MissingPrecondition(
                    "A resolution is required to resolve a ticket.",
                    {"entity_id": ticket.pk, "current_status": current, "target_status": target},
                )
            fields["resolution"] = text
            fields["resolved_at"] = now

        if target == TicketStatus.CLOSED:
            fields["closed_at"] = now

        if target in (TicketStatus.RESOLVED, TicketStatus.CLOSED) and ticket.sla_resolution_met is None:
            fields["sla_resolution_met"] = now <= ticket.sla_resolution_target

        if current == TicketStatus.RESOLVED and target == TicketStatus.IN_PROGRESS:
            fields["resolution"] = ""
            fields["resolved_at"] = None
            fields["closed_at"] = None
        return fields

    def _authorize_transition(self, ticket: Ticket, target: str, actor: Actor) -> None:
        if actor.role == Role.SYSTEM:
            return
        details = {"entity_id": ticket.pk, "current_status": ticket.status, "target_status": target, "actor": actor.id}
        if ticket.status in REQUESTER_SOURCES:
            if actor.id != ticket.requester_id:
                raise ActorNotPermitted("Only the requester can confirm or reopen a resolved ticket.", details)
            return
        if not actor.is_handler:
            raise ActorNotPermitted("Only IT staff can work on tickets.", details)
        if (
            ticket.status == TicketStatus.OPEN
            and ticket.assigned_tech_id
            and ticket.assigned_tech_id != actor.id
            and not actor.is_admin
        ):
            raise ActorNotPermitted(
                f"Ticket {ticket.ticket_number} is assigned to {ticket.assigned_tech_name or ticket.assigned_tech_id}.",
                details,
            )

    # Side-channel updates

    def assign(self, ticket_id: Any, tech_id: str, tech_name: str, actor: Actor) -> Ticket:
        if not tech_id:
            raise MissingPrecondition("An assignee is required.", {"field": "tech_id"})
        if not actor.is_handler:
            raise ActorNotPermitted("Only IT staff can take tickets.", {"entity_id": ticket_id, "actor": actor.id})

        now = self.clock()
        with transaction.atomic():
            ticket = self._lock(ticket_id)
            if ticket.status == TicketStatus.CLOSED:
                raise InvalidTransition(
                    ticket.pk,
                    ticket.status,
                    ticket.status,
                    f"Ticket {ticket.ticket_number} is {ticket.status} and cannot be reassigned.",
                )
            previous_id, previous_name = ticket.assigned_tech_id, ticket.assigned_tech_name
            if previous_id == tech_id:
                return ticket
            if not actor.is_admin and (previous_id or tech_id != actor.id):
                raise ActorNotPermitted(
                    "Only administrators can assign tickets to others or reassign them.",
                    {"entity_id": ticket.pk, "actor": actor.id, "assigned_tech_id": previous_id},
                )

            self._commit(ticket, {"assigned_tech_id": tech_id, "assigned_tech_name": tech_name}, now)
            self.recorder.record(
                entity_type=EntityType.TICKET,
                entity_id=ticket.pk,
                action="assigned",
                actor=actor,
                details=f"Assigned to {tech_name or tech_id} (previously {previous_name or 'unassigned'}).",
                changes=changes(assigned_tech_id=(previous_id, tech_id)),
                timestamp=now,
            )

        logger.info("Ticket %s assigned to %s by %s", ticket.ticket_number, tech_id, actor.id)
        if tech_id == actor.id and actor.email:
            recipient = actor.email
        else:
            recipient = resolve_email(self.directory, tech_id, fallback="")
        if recipient:
            enqueue_quietly(self.sink, messages.ticket_assigned(ticket, recipient))
        return ticket

    def rate(self, ticket_id: Any, rating: int, actor: Actor) -> Ticket:
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise MissingPrecondition("Rating must be between 1 and 5.", {"rating": rating})

        now = self.clock()
        with transaction.atomic():
            ticket = self._lock(ticket_id)
            details = {"entity_id": ticket.pk, "current_status": ticket.status}
            if ticket.status != TicketStatus.CLOSED:
                raise MissingPrecondition("Only closed tickets can be rated.", details)
            if ticket.rating is not None:
                raise MissingPrecondition(f"Ticket {ticket.ticket_number} is already rated.", details)
            if actor.id != ticket.requester_id:
                raise ActorNotPermitted("Only the requester can rate a ticket.", details)

            self._commit(ticket, {"rating": rating}, now)
            self.recorder.record(
                entity_type=EntityType.TICKET,
                entity_id=ticket.pk,
                action="rated",
                actor=actor,
                details=f"Rated {rating}/5.",
                changes=changes(rating=(None, rating)),
                timestamp=now,
            )
        return ticket

    def change_priority(self, ticket_id: Any, priority: str, actor: Actor) -> Ticket:
        """Reclassify a ticket; SLA targets stay as computed at creation."""

        if priority not in TicketPriority.values:
            raise MissingPrecondition(f"Unknown priority '{priority}'.", {"priority": priority})
        if not actor.is_handler:
            raise ActorNotPermitted("Only IT staff can change priority.", {"entity_id": ticket_id, "actor": actor.id})

        now = self.clock()
        with transaction.atomic():
            ticket = self._lock(ticket_id)
            if ticket.status == TicketStatus.CLOSED:
                raise InvalidTransition(
                    ticket.pk, ticket.status, ticket.status, "Closed tickets cannot be reprioritised."
                )
            previous = ticket.priority
            if previous == priority:
                return ticket
            self._commit(ticket, {"priority": priority}, now)
            self.recorder.record(
                entity_type=EntityType.TICKET,
                entity_id=ticket.pk,
                action="priority_changed",
                actor=actor,
                details=f"Priority changed from '{previous}' to '{priority}'.",
                changes=changes(priority=(previous, priority)),
                timestamp=now,
            )
        return ticket

    # Scheduled sweeps

    def escalate_at_risk(self) -> List[int]:
        """Flag active tickets with less than the configured share of their window left."""

        now = self.clock()
        threshold = settings.TICKET_ESCALATION_THRESHOLD
        candidates = Ticket.objects.filter(
            status__in=ACTIVE_STATUSES, escalated=False, sla_resolution_target__gt=now
        ).values_list("pk", flat=True)

        escalated: List[int] = []
        for pk in list(candidates):
            with transaction.atomic():
                ticket = self._lock(pk)
                if ticket.escalated or ticket.status not in ACTIVE_STATUSES:
                    continue
                window = (ticket.sla_resolution_target - ticket.created_at).total_seconds()
                remaining = (ticket.sla_resolution_target - now).total_seconds()
                if window <= 0 or remaining <= 0 or remaining / window >= threshold:
                    continue
                self._commit(ticket, {"escalated": True}, now)
                remaining_minutes = int(remaining // 60)
                self.recorder.record(
                    entity_type=EntityType.TICKET,
                    entity_id=ticket.pk,
                    action="escalated",
                    actor=SYSTEM_ACTOR,
                    details=(
                        f"Ticket {ticket.ticket_number} escalated; "
                        f"{remaining_minutes} minutes left on the resolution SLA."
                    ),
                    changes=changes(escalated=(False, True)),
                    timestamp=now,
                )
            escalated.append(ticket.pk)
            enqueue_quietly(
                self.sink,
                messages.ticket_escalated(
                    ticket, [settings.OPERATIONS_EMAIL, ticket.requester_email], remaining_minutes
                ),
            )

        if escalated:
            logger.info("Escalated %d ticket(s): %s", len(escalated), escalated)
        return escalated

    def auto_close_resolved(self) -> List[int]:
        """Close tickets the requester left in ``resolved`` past the confirmation window."""

        now = self.clock()
        cutoff = now - timedelta(days=settings.TICKET_AUTOCLOSE_DAYS)
        candidates = Ticket.objects.filter(
            status=TicketStatus.RESOLVED, resolved_at__lte=cutoff
        ).values_list("pk", flat=True)

        closed: List[int] = []
        for pk in list(candidates):
            with transaction.atomic():
                ticket = self._lock(pk)
                if ticket.status != TicketStatus.RESOLVED:
                    continue
                fields = self._transition_fields(ticket, TicketStatus.CLOSED, SYSTEM_ACTOR, None, now)
                self._commit(ticket, fields, now)
                self.recorder.record(
                    entity_type=EntityType.TICKET,
                    entity_id=ticket.pk,
                    action="auto_closed",
                    actor=SYSTEM_ACTOR,
                    details=(
                        f"Ticket {ticket.ticket_number} closed after "
                        f"{settings.TICKET_AUTOCLOSE_DAYS} days without requester confirmation."
                    ),
                    changes=changes(status=(TicketStatus.RESOLVED, TicketStatus.CLOSED)),
                    timestamp=now,
                )
            closed.append(ticket.pk)
            if ticket.requester_email:
                enqueue_quietly(
                    self.sink,
                    messages.ticket_status_changed(ticket, TicketStatus.RESOLVED, TicketStatus.CLOSED),
                )

        if closed:
            logger.info("Auto-closed %d ticket(s): %s", len(closed), closed)
        return closed

    # Persistence helpers

    def _lock(self, ticket_id: Any) -> Ticket:
        try:
            return Ticket.objects.select_for_update().get(pk=ticket_id)
        except (Ticket.DoesNotExist, ValueError):
            raise NotFound("Ticket", ticket_id) from None

    def _commit(self, ticket: Ticket, fields: Dict[str, Any], now) -> None:
        """Write ``fields`` only if the row still has the status and version that were read."""

        updated = Ticket.objects.filter(
            pk=ticket.pk, status=ticket.status, version=ticket.version
        ).update(version=F("version") + 1, updated_at=now, **fields)
        if not updated:
            raise InvalidTransition(
                ticket.pk,
                ticket.status,
                fields.get("status", ticket.status),
                f"Ticket {ticket.ticket_number} was changed by another request; reload and retry.",
            )
        for name, value in fields.items():
            setattr(ticket, name, value)
        ticket.version += 1
        ticket.updated_at = now

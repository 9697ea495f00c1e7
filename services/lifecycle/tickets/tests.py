"""Tests for the ticket lifecycle and its API."""
from __future__ import annotations

import random
from datetime import datetime, timedelta
from datetime import timezone as dt_timezone

from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework.test import APIClient

from audit.models import AuditEntry, EntityType
from lifecycle_service.actors import Actor, Role
from lifecycle_service.errors import (
    ActorNotPermitted,
    DependencyFailure,
    InvalidTransition,
    MissingPrecondition,
    NotFound,
)
from notifications.models import MailMessage

from .models import Ticket, TicketPriority, TicketStatus
from .services import TRANSITIONS, TicketLifecycle, is_allowed
from .sla import compute_sla_targets

T0 = datetime(2024, 3, 1, 2, 0, tzinfo=dt_timezone.utc)

REQUESTER = Actor(id="emp-1", name="Budi", role=Role.EMPLOYEE, email="budi@example.com")
TECH = Actor(id="tech-1", name="Sari", role=Role.IT_STAFF, email="sari@example.com")
OTHER_TECH = Actor(id="tech-2", name="Joko", role=Role.IT_STAFF, email="joko@example.com")
ADMIN = Actor(id="adm-1", name="Ayu", role=Role.ADMIN, email="ayu@example.com")


class RecordingSink:
    def __init__(self) -> None:
        self.requests = []

    def enqueue(self, request):
        self.requests.append(request)
        return request


class BrokenSink:
    def enqueue(self, request):
        raise RuntimeError("mail queue unavailable")


class StaticDirectory:
    def __init__(self, emails=None) -> None:
        self.emails = emails or {}

    def email_for(self, user_id: str) -> str:
        if user_id not in self.emails:
            raise DependencyFailure(f"unknown user {user_id}")
        return self.emails[user_id]


class FrozenClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now += timedelta(**delta)


class SlaTargetTests(TestCase):
    def test_offsets_per_priority(self) -> None:
        expected = {
            "critical": (timedelta(hours=1), timedelta(hours=4)),
            "high": (timedelta(hours=2), timedelta(hours=12)),
            "medium": (timedelta(days=1), timedelta(days=3)),
            "low": (timedelta(days=2), timedelta(days=7)),
        }
        for priority, (response, resolution) in expected.items():
            targets = compute_sla_targets(priority, T0)
            self.assertEqual(targets.response_target, T0 + response, priority)
            self.assertEqual(targets.resolution_target, T0 + resolution, priority)

    def test_unknown_priority_uses_medium_offsets(self) -> None:
        targets = compute_sla_targets("urgent", T0)
        self.assertEqual(targets.response_target, T0 + timedelta(days=1))
        self.assertEqual(targets.resolution_target, T0 + timedelta(days=3))


class LifecycleTestCase(TestCase):
    def setUp(self) -> None:
        self.clock = FrozenClock(T0)
        self.sink = RecordingSink()
        self.directory = StaticDirectory({"tech-2": "joko@example.com"})
        self.lifecycle = TicketLifecycle(sink=self.sink, directory=self.directory, clock=self.clock)

    def create(self, priority: str = TicketPriority.MEDIUM, **kwargs) -> Ticket:
        return self.lifecycle.create_ticket(
            title=kwargs.pop("title", "Printer jammed"),
            description="Paper stuck in tray 2",
            priority=priority,
            requester=kwargs.pop("requester", REQUESTER),
            **kwargs,
        )

    def resolved_ticket(self) -> Ticket:
        ticket = self.create()
        self.lifecycle.change_status(ticket.pk, TicketStatus.IN_PROGRESS, TECH)
        return self.lifecycle.change_status(
            ticket.pk, TicketStatus.RESOLVED, TECH, resolution="Cleared the tray"
        )


class CreateTicketTests(LifecycleTestCase):
    def test_critical_ticket_targets(self) -> None:
        ticket = self.create(TicketPriority.CRITICAL)

        ticket.refresh_from_db()
        self.assertEqual(ticket.status, TicketStatus.OPEN)
        self.assertEqual(ticket.created_at, T0)
        self.assertEqual(ticket.sla_response_target, T0 + timedelta(hours=1))
        self.assertEqual(ticket.sla_resolution_target, T0 + timedelta(hours=4))
        self.assertIsNone(ticket.sla_response_met)
        self.assertIsNone(ticket.sla_resolution_met)

    def test_ticket_numbers_follow_a_yearly_sequence(self) -> None:
        first = self.create()
        second = self.create()
        self.assertEqual(first.ticket_number, "TKT-2024-0001")
        self.assertEqual(second.ticket_number, "TKT-2024-0002")

        self.clock.now = datetime(2025, 1, 10, 2, 0, tzinfo=dt_timezone.utc)
        self.assertEqual(self.create().ticket_number, "TKT-2025-0001")

    def test_creation_is_audited_and_notified(self) -> None:
        with override_settings(OPERATIONS_EMAIL="ops@example.com"):
            ticket = self.create()

        entries = AuditEntry.objects.filter(entity_type=EntityType.TICKET, entity_id=str(ticket.pk))
        self.assertEqual([entry.action for entry in entries], ["created"])
        self.assertEqual(entries[0].action_by, REQUESTER.id)
        self.assertEqual(len(self.sink.requests), 1)
        self.assertEqual(self.sink.requests[0].to, ("budi@example.com", "ops@example.com"))
        self.assertIn(ticket.ticket_number, self.sink.requests[0].subject)

    def test_blank_title_is_rejected(self) -> None:
        with self.assertRaises(MissingPrecondition):
            self.create(title="   ")
        self.assertFalse(Ticket.objects.exists())

    def test_unknown_priority_is_filed_as_medium(self) -> None:
        with self.assertLogs("tickets.services", level="WARNING"):
            ticket = self.create("urgent")
        self.assertEqual(ticket.priority, TicketPriority.MEDIUM)

    def test_notification_failure_does_not_undo_creation(self) -> None:
        lifecycle = TicketLifecycle(sink=BrokenSink(), directory=self.directory, clock=self.clock)
        with self.assertLogs("notifications.sink", level="WARNING"):
            ticket = lifecycle.create_ticket(
                title="VPN down", description="", priority="high", requester=REQUESTER
            )
        self.assertTrue(Ticket.objects.filter(pk=ticket.pk).exists())


class TransitionTests(LifecycleTestCase):
    def test_only_table_edges_are_allowed(self) -> None:
        allowed = {(current, target) for current, targets in TRANSITIONS.items() for target in targets}
        self.assertEqual(
            allowed,
            {
                ("open", "in_progress"),
                ("in_progress", "waiting_parts"),
                ("in_progress", "resolved"),
                ("waiting_parts", "in_progress"),
                ("resolved", "closed"),
                ("resolved", "in_progress"),
            },
        )
        self.assertFalse(is_allowed("closed", "open"))
        self.assertFalse(is_allowed("open", "resolved"))

    def test_taking_an_unassigned_ticket_claims_it(self) -> None:
        ticket = self.create()
        self.clock.advance(minutes=30)

        ticket = self.lifecycle.change_status(ticket.pk, TicketStatus.IN_PROGRESS, TECH)

        ticket.refresh_from_db()
        self.assertEqual(ticket.status, TicketStatus.IN_PROGRESS)
        self.assertEqual(ticket.assigned_tech_id, TECH.id)
        self.assertEqual(ticket.assigned_tech_name, TECH.name)
        self.assertEqual(ticket.responded_at, T0 + timedelta(minutes=30))
        self.assertTrue(ticket.sla_response_met)
        self.assertEqual(ticket.version, 1)

        entry = AuditEntry.objects.filter(action="status_changed").get()
        self.assertEqual(entry.changes["status"], {"old": "open", "new": "in_progress"})
        self.assertEqual(entry.changes["assigned_tech_id"], {"old": None, "new": TECH.id})

    def test_late_response_is_recorded_as_missed(self) -> None:
        ticket = self.create(TicketPriority.CRITICAL)
        self.clock.advance(hours=2)
        ticket = self.lifecycle.change_status(ticket.pk, TicketStatus.IN_PROGRESS, TECH)
        self.assertFalse(ticket.sla_response_met)

    def test_resolving_requires_a_resolution(self) -> None:
        ticket = self.create()
        self.lifecycle.change_status(ticket.pk, TicketStatus.IN_PROGRESS, TECH)

        with self.assertRaises(MissingPrecondition):
            self.lifecycle.change_status(ticket.pk, TicketStatus.RESOLVED, TECH, resolution="  ")

        ticket.refresh_from_db()
        self.assertEqual(ticket.status, TicketStatus.IN_PROGRESS)
        self.assertEqual(AuditEntry.objects.filter(action="status_changed").count(), 1)

    def test_resolution_sla_is_evaluated_once(self) -> None:
        ticket = self.create(TicketPriority.CRITICAL)
        self.lifecycle.change_status(ticket.pk, TicketStatus.IN_PROGRESS, TECH)
        self.clock.advance(hours=3)
        ticket = self.lifecycle.change_status(
            ticket.pk, TicketStatus.RESOLVED, TECH, resolution="Replaced cable"
        )
        self.assertTrue(ticket.sla_resolution_met)
        self.assertEqual(ticket.resolution, "Replaced cable")

        self.clock.advance(hours=5)
        ticket = self.lifecycle.change_status(ticket.pk, TicketStatus.CLOSED, REQUESTER)
        self.assertTrue(ticket.sla_resolution_met)
        self.assertEqual(ticket.closed_at, T0 + timedelta(hours=8))

    def test_reopen_clears_resolution_but_keeps_sla_outcome(self) -> None:
        ticket = self.resolved_ticket()
        ticket = self.lifecycle.change_status(ticket.pk, TicketStatus.IN_PROGRESS, REQUESTER)

        ticket.refresh_from_db()
        self.assertEqual(ticket.status, TicketStatus.IN_PROGRESS)
        self.assertEqual(ticket.resolution, "")
        self.assertIsNone(ticket.resolved_at)
        self.assertTrue(ticket.sla_resolution_met)

    def test_closed_is_terminal(self) -> None:
        ticket = self.resolved_ticket()
        self.lifecycle.change_status(ticket.pk, TicketStatus.CLOSED, REQUESTER)

        for target in TicketStatus.values:
            with self.assertRaises(InvalidTransition):
                self.lifecycle.change_status(ticket.pk, target, ADMIN)

    def test_invalid_edge_reports_current_and_target(self) -> None:
        ticket = self.create()
        with self.assertRaises(InvalidTransition) as caught:
            self.lifecycle.change_status(ticket.pk, TicketStatus.RESOLVED, TECH, resolution="done")
        self.assertEqual(
            caught.exception.details,
            {"entity_id": ticket.pk, "current_status": "open", "target_status": "resolved"},
        )

    def test_missing_ticket(self) -> None:
        with self.assertRaises(NotFound):
            self.lifecycle.change_status(9999, TicketStatus.IN_PROGRESS, TECH)

    def test_status_change_notifies_requester(self) -> None:
        ticket = self.create()
        self.sink.requests.clear()
        self.lifecycle.change_status(ticket.pk, TicketStatus.IN_PROGRESS, TECH)

        self.assertEqual(len(self.sink.requests), 1)
        self.assertEqual(self.sink.requests[0].to, ("budi@example.com",))
        self.assertIn("In Progress", self.sink.requests[0].subject)

    def test_random_sequences_follow_the_table(self) -> None:
        rng = random.Random(20240301)
        actors = [REQUESTER, TECH, OTHER_TECH, ADMIN]
        ticket = self.create()
        accepted = 0
        for _ in range(300):
            current = Ticket.objects.get(pk=ticket.pk).status
            if current == TicketStatus.CLOSED:
                ticket = self.create()
                current = TicketStatus.OPEN
            target = rng.choice(TicketStatus.values)
            actor = rng.choice(actors)
            try:
                self.lifecycle.change_status(ticket.pk, target, actor, resolution="Fixed")
            except (InvalidTransition, ActorNotPermitted):
                self.assertEqual(Ticket.objects.get(pk=ticket.pk).status, current)
                continue
            accepted += 1
            self.assertIn(target, TRANSITIONS[current])

        self.assertGreater(accepted, 0)
        self.assertEqual(AuditEntry.objects.filter(action="status_changed").count(), accepted)


class ConcurrencyTests(LifecycleTestCase):
    def test_second_claim_on_the_same_ticket_is_rejected(self) -> None:
        ticket = self.create()

        self.lifecycle.change_status(ticket.pk, TicketStatus.IN_PROGRESS, TECH)
        with self.assertRaises(InvalidTransition):
            self.lifecycle.change_status(ticket.pk, TicketStatus.IN_PROGRESS, OTHER_TECH)

        ticket.refresh_from_db()
        self.assertEqual(ticket.assigned_tech_id, TECH.id)
        self.assertEqual(AuditEntry.objects.filter(action="status_changed").count(), 1)

    def test_stale_snapshot_cannot_be_committed(self) -> None:
        ticket = self.create()
        stale = Ticket.objects.get(pk=ticket.pk)
        self.lifecycle.change_status(ticket.pk, TicketStatus.IN_PROGRESS, TECH)

        with self.assertRaises(InvalidTransition):
            self.lifecycle._commit(
                stale,
                {"status": TicketStatus.IN_PROGRESS, "assigned_tech_id": OTHER_TECH.id},
                self.clock(),
            )

        ticket.refresh_from_db()
        self.assertEqual(ticket.assigned_tech_id, TECH.id)
        self.assertEqual(ticket.version, 1)


class PermissionTests(LifecycleTestCase):
    def test_requester_cannot_work_a_ticket(self) -> None:
        ticket = self.create()
        with self.assertRaises(ActorNotPermitted):
            self.lifecycle.change_status(ticket.pk, TicketStatus.IN_PROGRESS, REQUESTER)

    def test_other_tech_cannot_take_an_assigned_ticket(self) -> None:
        ticket = self.create()
        self.lifecycle.assign(ticket.pk, TECH.id, TECH.name, TECH)

        with self.assertRaises(ActorNotPermitted):
            self.lifecycle.change_status(ticket.pk, TicketStatus.IN_PROGRESS, OTHER_TECH)

        ticket = self.lifecycle.change_status(ticket.pk, TicketStatus.IN_PROGRESS, ADMIN)
        self.assertEqual(ticket.assigned_tech_id, TECH.id)

    def test_only_requester_confirms_or_reopens(self) -> None:
        ticket = self.resolved_ticket()
        for actor in (TECH, ADMIN):
            with self.assertRaises(ActorNotPermitted):
                self.lifecycle.change_status(ticket.pk, TicketStatus.CLOSED, actor)
            with self.assertRaises(ActorNotPermitted):
                self.lifecycle.change_status(ticket.pk, TicketStatus.IN_PROGRESS, actor)


class AssignTests(LifecycleTestCase):
    def test_handler_claims_unassigned_ticket(self) -> None:
        ticket = self.create()
        self.sink.requests.clear()

        ticket = self.lifecycle.assign(ticket.pk, TECH.id, TECH.name, TECH)

        self.assertEqual(ticket.status, TicketStatus.OPEN)
        self.assertEqual(ticket.assigned_tech_id, TECH.id)
        entry = AuditEntry.objects.get(action="assigned")
        self.assertEqual(entry.changes, {"assigned_tech_id": {"old": None, "new": TECH.id}})
        self.assertEqual(self.sink.requests[0].to, ("sari@example.com",))

    def test_only_admin_reassigns(self) -> None:
        ticket = self.create()
        self.lifecycle.assign(ticket.pk, TECH.id, TECH.name, TECH)

        with self.assertRaises(ActorNotPermitted):
            self.lifecycle.assign(ticket.pk, OTHER_TECH.id, OTHER_TECH.name, OTHER_TECH)
        with self.assertRaises(ActorNotPermitted):
            self.lifecycle.assign(ticket.pk, OTHER_TECH.id, OTHER_TECH.name, REQUESTER)

        self.sink.requests.clear()
        ticket = self.lifecycle.assign(ticket.pk, OTHER_TECH.id, OTHER_TECH.name, ADMIN)
        self.assertEqual(ticket.assigned_tech_id, OTHER_TECH.id)
        self.assertEqual(self.sink.requests[0].to, ("joko@example.com",))

    def test_unresolvable_assignee_is_not_notified(self) -> None:
        ticket = self.create()
        self.sink.requests.clear()
        with self.assertLogs("notifications.directory", level="WARNING"):
            self.lifecycle.assign(ticket.pk, "tech-9", "New Hire", ADMIN)
        self.assertEqual(self.sink.requests, [])
        self.assertEqual(Ticket.objects.get(pk=ticket.pk).assigned_tech_id, "tech-9")

    def test_same_assignee_is_a_no_op(self) -> None:
        ticket = self.create()
        self.lifecycle.assign(ticket.pk, TECH.id, TECH.name, TECH)
        self.lifecycle.assign(ticket.pk, TECH.id, TECH.name, ADMIN)
        self.assertEqual(AuditEntry.objects.filter(action="assigned").count(), 1)

    def test_closed_ticket_cannot_be_reassigned(self) -> None:
        ticket = self.resolved_ticket()
        self.lifecycle.change_status(ticket.pk, TicketStatus.CLOSED, REQUESTER)
        with self.assertRaises(InvalidTransition):
            self.lifecycle.assign(ticket.pk, OTHER_TECH.id, OTHER_TECH.name, ADMIN)

    def test_admin_reassigns_resolved_ticket(self) -> None:
        ticket = self.resolved_ticket()

        ticket = self.lifecycle.assign(ticket.pk, OTHER_TECH.id, OTHER_TECH.name, ADMIN)

        self.assertEqual(ticket.status, TicketStatus.RESOLVED)
        self.assertEqual(Ticket.objects.get(pk=ticket.pk).assigned_tech_id, OTHER_TECH.id)
        entry = AuditEntry.objects.get(action="assigned")
        self.assertEqual(entry.changes, {"assigned_tech_id": {"old": TECH.id, "new": OTHER_TECH.id}})


class RatingTests(LifecycleTestCase):
    def closed_ticket(self) -> Ticket:
        ticket = self.resolved_ticket()
        return self.lifecycle.change_status(ticket.pk, TicketStatus.CLOSED, REQUESTER)

    def test_requester_rates_closed_ticket_once(self) -> None:
        ticket = self.closed_ticket()
        ticket = self.lifecycle.rate(ticket.pk, 5, REQUESTER)
        self.assertEqual(ticket.rating, 5)
        self.assertEqual(AuditEntry.objects.filter(action="rated").count(), 1)

        with self.assertRaises(MissingPrecondition):
            self.lifecycle.rate(ticket.pk, 4, REQUESTER)

    def test_rating_rules(self) -> None:
        open_ticket = self.create()
        with self.assertRaises(MissingPrecondition):
            self.lifecycle.rate(open_ticket.pk, 3, REQUESTER)

        ticket = self.closed_ticket()
        with self.assertRaises(MissingPrecondition):
            self.lifecycle.rate(ticket.pk, 6, REQUESTER)
        with self.assertRaises(MissingPrecondition):
            self.lifecycle.rate(ticket.pk, True, REQUESTER)
        with self.assertRaises(ActorNotPermitted):
            self.lifecycle.rate(ticket.pk, 3, TECH)
        self.assertIsNone(Ticket.objects.get(pk=ticket.pk).rating)


class PriorityTests(LifecycleTestCase):
    def test_priority_change_keeps_targets(self) -> None:
        ticket = self.create(TicketPriority.LOW)
        ticket = self.lifecycle.change_priority(ticket.pk, TicketPriority.CRITICAL, TECH)

        ticket.refresh_from_db()
        self.assertEqual(ticket.priority, TicketPriority.CRITICAL)
        self.assertEqual(ticket.sla_resolution_target, T0 + timedelta(days=7))
        entry = AuditEntry.objects.get(action="priority_changed")
        self.assertEqual(entry.changes["priority"], {"old": "low", "new": "critical"})

    def test_unchanged_priority_writes_nothing(self) -> None:
        ticket = self.create(TicketPriority.LOW)
        self.lifecycle.change_priority(ticket.pk, TicketPriority.LOW, TECH)
        self.assertFalse(AuditEntry.objects.filter(action="priority_changed").exists())
        self.assertEqual(Ticket.objects.get(pk=ticket.pk).version, 0)

    def test_priority_rules(self) -> None:
        ticket = self.create()
        with self.assertRaises(ActorNotPermitted):
            self.lifecycle.change_priority(ticket.pk, TicketPriority.HIGH, REQUESTER)
        with self.assertRaises(MissingPrecondition):
            self.lifecycle.change_priority(ticket.pk, "urgent", TECH)


class SweepTests(LifecycleTestCase):
    @override_settings(TICKET_ESCALATION_THRESHOLD=0.25)
    def test_escalates_tickets_close_to_breach(self) -> None:
        ticket = self.create(TicketPriority.HIGH)

        self.clock.advance(hours=8)
        self.assertEqual(self.lifecycle.escalate_at_risk(), [])

        self.sink.requests.clear()
        self.clock.advance(hours=2)
        self.assertEqual(self.lifecycle.escalate_at_risk(), [ticket.pk])
        self.assertTrue(Ticket.objects.get(pk=ticket.pk).escalated)
        entry = AuditEntry.objects.get(action="escalated")
        self.assertEqual(entry.action_by, "system")
        self.assertEqual(len(self.sink.requests), 1)

        self.assertEqual(self.lifecycle.escalate_at_risk(), [])

    def test_breached_tickets_are_not_escalated(self) -> None:
        self.create(TicketPriority.CRITICAL)
        self.clock.advance(hours=5)
        self.assertEqual(self.lifecycle.escalate_at_risk(), [])

    @override_settings(TICKET_AUTOCLOSE_DAYS=3)
    def test_auto_closes_unconfirmed_resolutions(self) -> None:
        ticket = self.resolved_ticket()

        self.clock.advance(days=2)
        self.assertEqual(self.lifecycle.auto_close_resolved(), [])

        self.clock.advance(days=1)
        self.assertEqual(self.lifecycle.auto_close_resolved(), [ticket.pk])
        ticket.refresh_from_db()
        self.assertEqual(ticket.status, TicketStatus.CLOSED)
        self.assertEqual(ticket.closed_at, T0 + timedelta(days=3))
        entry = AuditEntry.objects.get(action="auto_closed")
        self.assertEqual(entry.changes["status"], {"old": "resolved", "new": "closed"})


class TicketApiTests(TestCase):
    def setUp(self) -> None:
        self.client = APIClient()

    def act_as(self, actor: Actor) -> None:
        self.client.credentials(
            HTTP_X_ACTOR_ID=actor.id,
            HTTP_X_ACTOR_NAME=actor.name,
            HTTP_X_ACTOR_ROLE=actor.role,
            HTTP_X_ACTOR_EMAIL=actor.email,
        )

    def create_ticket(self) -> dict:
        self.act_as(REQUESTER)
        response = self.client.post(
            reverse("ticket-list"),
            {"title": "Monitor flickers", "priority": "high"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        return response.data

    def test_health_needs_no_actor(self) -> None:
        response = self.client.get(reverse("lifecycle-health"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data, {"status": "ok"})

    def test_missing_actor_is_unauthorized(self) -> None:
        response = self.client.get(reverse("ticket-list"))
        self.assertEqual(response.status_code, 401)

    def test_unknown_role_is_rejected(self) -> None:
        self.client.credentials(HTTP_X_ACTOR_ID="x", HTTP_X_ACTOR_ROLE="system")
        response = self.client.get(reverse("ticket-list"))
        self.assertEqual(response.status_code, 401)

    def test_create_queues_mail_and_snapshots_requester(self) -> None:
        data = self.create_ticket()
        self.assertEqual(data["status"], "open")
        self.assertEqual(data["requester_id"], REQUESTER.id)
        self.assertEqual(data["requester_email"], REQUESTER.email)
        self.assertTrue(data["ticket_number"].startswith("TKT-"))
        self.assertEqual(MailMessage.objects.count(), 1)

    def test_transition_flow(self) -> None:
        ticket = self.create_ticket()
        url = reverse("ticket-transition", args=[ticket["id"]])

        response = self.client.post(url, {"target_status": "in_progress"}, format="json")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data["code"], "actor_not_permitted")

        self.act_as(TECH)
        response = self.client.post(url, {"target_status": "in_progress"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["assigned_tech_id"], TECH.id)

        response = self.client.post(url, {"target_status": "resolved"}, format="json")
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.data["code"], "missing_precondition")

        response = self.client.post(
            url, {"target_status": "resolved", "resolution": "Swapped cable"}, format="json"
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], "resolved")

    def test_concurrent_claims_conflict(self) -> None:
        ticket = self.create_ticket()
        url = reverse("ticket-transition", args=[ticket["id"]])

        self.act_as(TECH)
        first = self.client.post(url, {"target_status": "in_progress"}, format="json")
        self.act_as(OTHER_TECH)
        second = self.client.post(url, {"target_status": "in_progress"}, format="json")

        self.assertEqual(first.status_code, 200)
        self.assertEqual(second.status_code, 409)
        self.assertEqual(second.data["code"], "invalid_transition")
        self.assertEqual(second.data["details"]["current_status"], "in_progress")

    def test_assign_priority_and_rate(self) -> None:
        ticket = self.create_ticket()
        self.act_as(ADMIN)
        response = self.client.post(
            reverse("ticket-assign", args=[ticket["id"]]),
            {"tech_id": TECH.id, "tech_name": TECH.name},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["assigned_tech_name"], TECH.name)

        response = self.client.post(
            reverse("ticket-priority", args=[ticket["id"]]), {"priority": "critical"}, format="json"
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["priority"], "critical")

        self.act_as(REQUESTER)
        response = self.client.post(
            reverse("ticket-rate", args=[ticket["id"]]), {"rating": 4}, format="json"
        )
        self.assertEqual(response.status_code, 422)

    def test_unknown_ticket_is_not_found(self) -> None:
        self.act_as(TECH)
        response = self.client.post(
            reverse("ticket-transition", args=[424242]), {"target_status": "in_progress"}, format="json"
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["code"], "not_found")

    def test_list_filters_by_status(self) -> None:
        self.create_ticket()
        response = self.client.get(reverse("ticket-list"), {"status": "open"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 1)
        response = self.client.get(reverse("ticket-list"), {"status": "closed"})
        self.assertEqual(len(response.data), 0)

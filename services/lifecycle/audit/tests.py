"""Tests for the append-only audit trail."""
from __future__ import annotations

from datetime import datetime, timedelta
from datetime import timezone as dt_timezone

from django.test import TestCase
from django.urls import reverse
from rest_framework.test import APIClient

from lifecycle_service.actors import SYSTEM_ACTOR, Actor, Role

from .models import AuditEntry, EntityType, ImmutableAuditEntry
from .recorder import AuditRecorder, changes

T0 = datetime(2024, 5, 2, 1, 0, tzinfo=dt_timezone.utc)
TECH = Actor(id="tech-1", name="Sari", role=Role.IT_STAFF)


class AuditRecorderTests(TestCase):
    def setUp(self) -> None:
        self.recorder = AuditRecorder()

    def test_record_stores_actor_and_changes(self) -> None:
        entry = self.recorder.record(
            entity_type=EntityType.TICKET,
            entity_id=7,
            action="status_changed",
            actor=TECH,
            details="Status changed",
            changes=changes(status=("open", "in_progress")),
            timestamp=T0,
        )

        stored = AuditEntry.objects.get(pk=entry.pk)
        self.assertEqual(stored.entity_id, "7")
        self.assertEqual(stored.action_by, "tech-1")
        self.assertEqual(stored.action_by_name, "Sari")
        self.assertEqual(stored.timestamp, T0)
        self.assertEqual(stored.changes, {"status": {"old": "open", "new": "in_progress"}})

    def test_timeline_is_newest_first_with_insertion_order_on_ties(self) -> None:
        first = self.recorder.record(
            entity_type=EntityType.TICKET, entity_id=1, action="a", actor=TECH, timestamp=T0
        )
        second = self.recorder.record(
            entity_type=EntityType.TICKET, entity_id=1, action="b", actor=TECH, timestamp=T0
        )
        latest = self.recorder.record(
            entity_type=EntityType.TICKET,
            entity_id=1,
            action="c",
            actor=TECH,
            timestamp=T0 + timedelta(minutes=1),
        )
        self.recorder.record(
            entity_type=EntityType.SUBSCRIPTION, entity_id=1, action="expired", actor=SYSTEM_ACTOR
        )

        timeline = list(self.recorder.timeline(EntityType.TICKET, 1))
        self.assertEqual([entry.pk for entry in timeline], [latest.pk, first.pk, second.pk])
        self.assertEqual(self.recorder.timeline().count(), 4)

    def test_entries_cannot_be_changed(self) -> None:
        entry = self.recorder.record(
            entity_type=EntityType.SYSTEM, entity_id="scan", action="ran", actor=SYSTEM_ACTOR
        )

        entry.details = "rewritten"
        with self.assertRaises(ImmutableAuditEntry):
            entry.save()
        with self.assertRaises(ImmutableAuditEntry):
            entry.delete()
        with self.assertRaises(ImmutableAuditEntry):
            AuditEntry.objects.filter(pk=entry.pk).update(details="rewritten")
        with self.assertRaises(ImmutableAuditEntry):
            AuditEntry.objects.all().delete()

        self.assertEqual(AuditEntry.objects.get(pk=entry.pk).details, "")


class AuditApiTests(TestCase):
    def setUp(self) -> None:
        self.client = APIClient()
        self.client.credentials(HTTP_X_ACTOR_ID="adm-1", HTTP_X_ACTOR_ROLE=Role.ADMIN)
        recorder = AuditRecorder()
        recorder.record(entity_type=EntityType.TICKET, entity_id=1, action="created", actor=TECH)
        recorder.record(entity_type=EntityType.TICKET, entity_id=2, action="created", actor=TECH)

    def test_filters_by_entity(self) -> None:
        response = self.client.get(reverse("audit-entry-list"), {"entity_type": "ticket", "entity_id": "2"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]["entity_id"], "2")

    def test_is_read_only(self) -> None:
        response = self.client.post(reverse("audit-entry-list"), {"action": "forged"}, format="json")
        self.assertEqual(response.status_code, 405)

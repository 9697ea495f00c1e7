"""Append-only audit trail shared by every lifecycle component."""
from __future__ import annotations

from django.db import models
from django.utils import timezone


class ImmutableAuditEntry(Exception):
    """Raised on any attempt to rewrite or remove recorded history."""


class AuditEntryQuerySet(models.QuerySet):
    def update(self, **kwargs):  # type: ignore[override]
        raise ImmutableAuditEntry("Audit entries cannot be updated.")

    def delete(self):  # type: ignore[override]
        raise ImmutableAuditEntry("Audit entries cannot be deleted.")


class EntityType(models.TextChoices):
    TICKET = "ticket", "Ticket"
    SUBSCRIPTION = "subscription", "Subscription"
    ASSET = "asset", "Asset"
    DOCUMENT = "document", "Document"
    SYSTEM = "system", "System"


class AuditEntry(models.Model):
    """One recorded state change of one entity."""

    entity_id = models.CharField(max_length=64)
    entity_type = models.CharField(max_length=32, choices=EntityType.choices)
    action = models.CharField(max_length=64)
    action_by = models.CharField(max_length=128)
    action_by_name = models.CharField(max_length=255, blank=True)
    timestamp = models.DateTimeField(default=timezone.now)
    details = models.TextField(blank=True)
    changes = models.JSONField(null=True, blank=True)

    objects = AuditEntryQuerySet.as_manager()

    class Meta:
        ordering = ["-timestamp", "id"]
        indexes = [
            models.Index(fields=["entity_type", "entity_id"], name="audit_entity_idx"),
            models.Index(fields=["timestamp"], name="audit_timestamp_idx"),
        ]
        verbose_name_plural = "audit entries"

    def __str__(self) -> str:
        return f"{self.entity_type}:{self.entity_id} {self.action}"

    def save(self, *args, **kwargs) -> None:  # type: ignore[override]
        if not self._state.adding:
            raise ImmutableAuditEntry(f"Audit entry {self.pk} is already recorded.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):  # type: ignore[override]
        raise ImmutableAuditEntry(f"Audit entry {self.pk} cannot be deleted.")

"""Write and read access to the audit trail."""
from __future__ import annotations

from typing import Any, Dict, Optional

from django.db.models import QuerySet

from lifecycle_service.actors import Actor

from .models import AuditEntry


def changes(**fields: tuple[Any, Any]) -> Dict[str, Dict[str, Any]]:
    """Build a ``{field: {"old": ..., "new": ...}}`` diff from ``field=(old, new)`` pairs."""

    return {name: {"old": old, "new": new} for name, (old, new) in fields.items()}


class AuditRecorder:
    """The only write path into :class:`AuditEntry`.

    Callers that mutate an entity call :meth:`append` inside the same
    ``transaction.atomic()`` block so the entry commits or rolls back with
    the change it documents.
    """

    def append(self, entry: AuditEntry) -> AuditEntry:
        entry.save(force_insert=True)
        return entry

    def record(
        self,
        *,
        entity_type: str,
        entity_id: Any,
        action: str,
        actor: Actor,
        details: str = "",
        changes: Optional[Dict[str, Dict[str, Any]]] = None,
        timestamp=None,
    ) -> AuditEntry:
        entry = AuditEntry(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action,
            action_by=actor.id,
            action_by_name=actor.name,
            details=details,
            changes=changes,
        )
        if timestamp is not None:
            entry.timestamp = timestamp
        return self.append(entry)

    def timeline(
        self, entity_type: Optional[str] = None, entity_id: Any = None
    ) -> QuerySet[AuditEntry]:
        """Entries newest first; entries sharing a timestamp keep insertion order."""

        entries = AuditEntry.objects.all()
        if entity_type:
            entries = entries.filter(entity_type=entity_type)
        if entity_id is not None:
            entries = entries.filter(entity_id=str(entity_id))
        return entries.order_by("-timestamp", "id")

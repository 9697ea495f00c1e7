"""Read-only API over the audit trail."""
from __future__ import annotations

from rest_framework import viewsets

from .models import AuditEntry
from .recorder import AuditRecorder
from .serializers import AuditEntrySerializer


class AuditEntryViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = AuditEntry.objects.all()
    serializer_class = AuditEntrySerializer

    def get_queryset(self):  # type: ignore[override]
        params = self.request.query_params
        return AuditRecorder().timeline(
            entity_type=params.get("entity_type") or None,
            entity_id=params.get("entity_id") or None,
        )

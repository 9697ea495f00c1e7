"""Serializers for audit entries."""
from __future__ import annotations

from rest_framework import serializers

from .models import AuditEntry


class AuditEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = AuditEntry
        fields = [
            "id",
            "entity_id",
            "entity_type",
            "action",
            "action_by",
            "action_by_name",
            "timestamp",
            "details",
            "changes",
        ]
        read_only_fields = fields

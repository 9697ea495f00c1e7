"""Serializers for subscriptions."""
from __future__ import annotations

from rest_framework import serializers

from .models import Subscription


class SubscriptionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Subscription
        fields = [
            "id",
            "name",
            "provider",
            "status",
            "start_date",
            "expiry_date",
            "auto_renew",
            "reminder_sent_h30",
            "reminder_sent_h14",
            "reminder_sent_h7",
            "reminder_sent_h1",
            "cost_per_period",
            "billing_cycle",
            "currency",
            "notes",
            "created_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

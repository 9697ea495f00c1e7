"""Serializers for ticket entities and the lifecycle requests made on them."""
from __future__ import annotations

from rest_framework import serializers

from .models import Ticket, TicketPriority, TicketStatus


class TicketSerializer(serializers.ModelSerializer):
    class Meta:
        model = Ticket
        fields = [
            "id",
            "ticket_number",
            "title",
            "description",
            "category",
            "priority",
            "status",
            "requester_id",
            "requester_name",
            "requester_email",
            "assigned_tech_id",
            "assigned_tech_name",
            "resolution",
            "rating",
            "sla_response_target",
            "sla_resolution_target",
            "sla_response_met",
            "sla_resolution_met",
            "escalated",
            "created_at",
            "responded_at",
            "resolved_at",
            "closed_at",
            "updated_at",
            "version",
        ]
        read_only_fields = fields


class TicketCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    category = serializers.CharField(required=False, allow_blank=True, default="", max_length=64)
    priority = serializers.ChoiceField(choices=TicketPriority.choices, default=TicketPriority.MEDIUM)


class TransitionSerializer(serializers.Serializer):
    target_status = serializers.ChoiceField(choices=TicketStatus.choices)
    resolution = serializers.CharField(required=False, allow_blank=True, default="")


class AssignSerializer(serializers.Serializer):
    tech_id = serializers.CharField(max_length=64)
    tech_name = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)


class RatingSerializer(serializers.Serializer):
    rating = serializers.IntegerField(min_value=1, max_value=5)


class PrioritySerializer(serializers.Serializer):
    priority = serializers.ChoiceField(choices=TicketPriority.choices)

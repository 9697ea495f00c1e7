"""API views for the ticket lifecycle."""
from __future__ import annotations

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action, api_view, authentication_classes, permission_classes
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response

from .models import Ticket
from .serializers import (
    AssignSerializer,
    PrioritySerializer,
    RatingSerializer,
    TicketCreateSerializer,
    TicketSerializer,
    TransitionSerializer,
)
from .services import TicketLifecycle


class TicketViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    """Tickets are read directly but only ever written through :class:`TicketLifecycle`."""

    queryset = Ticket.objects.all()
    serializer_class = TicketSerializer
    filter_backends = [SearchFilter, OrderingFilter]
    search_fields = ["ticket_number", "title", "description", "status", "priority"]
    ordering_fields = ["created_at", "updated_at", "priority", "sla_resolution_target"]
    ordering = ["-created_at"]

    def get_queryset(self):  # type: ignore[override]
        queryset = super().get_queryset()
        params = self.request.query_params
        for field in ("status", "priority", "requester_id", "assigned_tech_id"):
            value = params.get(field)
            if value:
                queryset = queryset.filter(**{field: value})
        return queryset

    def lifecycle(self) -> TicketLifecycle:
        return TicketLifecycle()

    def _respond(self, ticket: Ticket, status_code: int = status.HTTP_200_OK) -> Response:
        return Response(TicketSerializer(ticket).data, status=status_code)

    def create(self, request: Request, *args, **kwargs):  # type: ignore[override]
        payload = TicketCreateSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        ticket = self.lifecycle().create_ticket(requester=request.user, **payload.validated_data)
        return self._respond(ticket, status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="transition")
    def transition(self, request: Request, pk=None):
        payload = TransitionSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        data = payload.validated_data
        ticket = self.lifecycle().change_status(
            pk, data["target_status"], request.user, resolution=data.get("resolution")
        )
        return self._respond(ticket)

    @action(detail=True, methods=["post"], url_path="assign")
    def assign(self, request: Request, pk=None):
        payload = AssignSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        data = payload.validated_data
        ticket = self.lifecycle().assign(pk, data["tech_id"], data["tech_name"], request.user)
        return self._respond(ticket)

    @action(detail=True, methods=["post"], url_path="rate")
    def rate(self, request: Request, pk=None):
        payload = RatingSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        ticket = self.lifecycle().rate(pk, payload.validated_data["rating"], request.user)
        return self._respond(ticket)

    @action(detail=True, methods=["post"], url_path="priority")
    def priority(self, request: Request, pk=None):
        payload = PrioritySerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        ticket = self.lifecycle().change_priority(pk, payload.validated_data["priority"], request.user)
        return self._respond(ticket)


@api_view(["GET"])
@authentication_classes([])
@permission_classes([AllowAny])
def health(request: Request):  # type: ignore[override]
    """Readiness endpoint for orchestration tooling."""

    return Response({"status": "ok"})

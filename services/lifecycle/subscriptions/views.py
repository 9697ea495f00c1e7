"""API views for subscriptions and the expiry scan."""
from __future__ import annotations

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.request import Request
from rest_framework.response import Response

from lifecycle_service.errors import ActorNotPermitted

from .models import Subscription
from .serializers import SubscriptionSerializer
from .tasks import scan_subscription_expiry


class SubscriptionViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Subscription.objects.all()
    serializer_class = SubscriptionSerializer
    filter_backends = [SearchFilter, OrderingFilter]
    search_fields = ["name", "provider", "status"]
    ordering_fields = ["expiry_date", "created_at", "name"]
    ordering = ["expiry_date"]

    def get_queryset(self):  # type: ignore[override]
        queryset = super().get_queryset()
        status_value = self.request.query_params.get("status")
        if status_value:
            queryset = queryset.filter(status=status_value)
        return queryset

    @action(detail=False, methods=["post"], url_path="scan")
    def scan(self, request: Request):
        """Queue an expiry scan outside the daily schedule."""

        if not request.user.is_admin:
            raise ActorNotPermitted("Only administrators can trigger a subscription scan.")
        result = scan_subscription_expiry.delay()
        return Response({"task_id": result.id}, status=status.HTTP_202_ACCEPTED)

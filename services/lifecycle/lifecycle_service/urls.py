"""URL configuration for the lifecycle service."""
from django.urls import include, path

urlpatterns = [
    path("api/", include("tickets.urls")),
    path("api/", include("subscriptions.urls")),
    path("api/", include("audit.urls")),
    path("api/", include("notifications.urls")),
]

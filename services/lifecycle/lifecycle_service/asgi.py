"""ASGI config for the lifecycle service."""
import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "lifecycle_service.settings")

application = get_asgi_application()

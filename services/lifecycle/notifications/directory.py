"""Lookup of user email addresses in the identity service."""
from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

import requests
from django.conf import settings

from lifecycle_service.errors import ConfigurationMissing, DependencyFailure

logger = logging.getLogger(__name__)


class IdentityDirectory(Protocol):
    def email_for(self, user_id: str) -> str:
        ...


class HttpIdentityDirectory:
    """Reads ``GET {IDENTITY_SERVICE_URL}/api/users/<id>/`` from the identity service."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        self.base_url = (base_url if base_url is not None else settings.IDENTITY_SERVICE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.SERVICE_TIMEOUT

    def email_for(self, user_id: str) -> str:
        if not self.base_url:
            raise ConfigurationMissing("IDENTITY_SERVICE_URL is not configured.")

        url = f"{self.base_url}/api/users/{user_id}/"
        try:
            response = requests.get(url, timeout=self.timeout)
            response.raise_for_status()
            payload: Any = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise DependencyFailure(
                f"Identity lookup for '{user_id}' failed.", {"user_id": user_id, "error": str(exc)}
            ) from exc

        email = payload.get("email") if isinstance(payload, dict) else None
        if not email:
            raise DependencyFailure(
                f"Identity '{user_id}' has no email address.", {"user_id": user_id}
            )
        return str(email)


def resolve_email(directory: IdentityDirectory, user_id: Optional[str], fallback: str) -> str:
    """Email of ``user_id``, or ``fallback`` when it cannot be resolved."""

    if not user_id:
        return fallback
    try:
        return directory.email_for(user_id)
    except (DependencyFailure, ConfigurationMissing) as exc:
        logger.warning("Falling back to %s for user %s: %s", fallback, user_id, exc.message)
        return fallback

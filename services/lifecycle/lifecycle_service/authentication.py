"""Resolve the acting identity from headers forwarded by the API gateway."""
from __future__ import annotations

from typing import Optional, Tuple

from rest_framework import authentication, exceptions
from rest_framework.request import Request

from .actors import Actor, Role


class ActorHeaderAuthentication(authentication.BaseAuthentication):
    """Trust ``X-Actor-*`` headers set by the gateway after it authenticated the user."""

    def authenticate(self, request: Request) -> Optional[Tuple[Actor, None]]:
        actor_id = request.headers.get("X-Actor-Id")
        if not actor_id:
            return None
        role = request.headers.get("X-Actor-Role", Role.EMPLOYEE)
        if role not in Role.values or role == Role.SYSTEM:
            raise exceptions.AuthenticationFailed(f"Unknown actor role '{role}'.")
        actor = Actor(
            id=actor_id,
            name=request.headers.get("X-Actor-Name", actor_id),
            role=role,
            email=request.headers.get("X-Actor-Email", ""),
        )
        return actor, None

    def authenticate_header(self, request: Request) -> str:
        return "Actor"

"""Actors performing lifecycle operations and the roles they carry."""
from __future__ import annotations

from dataclasses import dataclass

from django.db import models


class Role(models.TextChoices):
    SUPER_ADMIN = "super_admin", "Super Administrator"
    ADMIN = "admin", "Administrator"
    IT_STAFF = "it_staff", "IT Staff"
    MANAGER = "manager", "Manager"
    EMPLOYEE = "employee", "Employee"
    SYSTEM = "system", "System"


HANDLER_ROLES = frozenset({Role.SUPER_ADMIN, Role.ADMIN, Role.IT_STAFF})
ADMIN_ROLES = frozenset({Role.SUPER_ADMIN, Role.ADMIN})


@dataclass(frozen=True)
class Actor:
    """Identity snapshot supplied by the caller; issuance happens elsewhere."""

    id: str
    name: str
    role: str = Role.EMPLOYEE
    email: str = ""

    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def is_handler(self) -> bool:
        return self.role in HANDLER_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


SYSTEM_ACTOR = Actor(id="system", name="System", role=Role.SYSTEM)

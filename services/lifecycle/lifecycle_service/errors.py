"""Error taxonomy shared by the lifecycle engine and its HTTP surface."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class LifecycleError(Exception):
    """Base class for rejections raised by the lifecycle engine."""

    code = "lifecycle_error"
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class InvalidTransition(LifecycleError):
    """The requested status change is not an edge out of the current status."""

    code = "invalid_transition"
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, entity_id: Any, current: str, target: str, message: str | None = None):
        self.entity_id = entity_id
        self.current = current
        self.target = target
        super().__init__(
            message or f"Cannot move ticket {entity_id} from '{current}' to '{target}'.",
            {"entity_id": entity_id, "current_status": current, "target_status": target},
        )


class MissingPrecondition(LifecycleError):
    code = "missing_precondition"
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY


class NotFound(LifecycleError):
    code = "not_found"
    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"{entity_type} '{entity_id}' not found.",
            {"entity_type": entity_type, "entity_id": entity_id},
        )


class ActorNotPermitted(LifecycleError):
    code = "actor_not_permitted"
    http_status = status.HTTP_403_FORBIDDEN


class DependencyFailure(LifecycleError):
    """A post-commit collaborator (mail queue, identity lookup) failed."""

    code = "dependency_failure"
    http_status = status.HTTP_502_BAD_GATEWAY


class ConfigurationMissing(LifecycleError):
    code = "configuration_missing"
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE


def exception_handler(exc: Exception, context: Dict[str, Any]) -> Optional[Response]:
    """Render lifecycle rejections as ``{"code", "detail", "details"}``."""

    if isinstance(exc, LifecycleError):
        logger.warning("[%s] %s %s", exc.code, exc.message, exc.details)
        return Response(
            {"code": exc.code, "detail": exc.message, "details": exc.details},
            status=exc.http_status,
        )
    return drf_exception_handler(exc, context)

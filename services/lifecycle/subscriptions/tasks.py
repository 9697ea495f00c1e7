"""Scheduled entry point for the subscription expiry scan."""
from __future__ import annotations

import logging
from typing import Dict, Optional

from celery import shared_task
from django.conf import settings
from django.core.cache import cache

from lifecycle_service.errors import ConfigurationMissing

from .scanner import SubscriptionExpiryScanner

logger = logging.getLogger(__name__)

SCAN_LOCK_KEY = "subscriptions:expiry-scan"


@shared_task
def scan_subscription_expiry() -> Optional[Dict[str, int]]:
    """Run one expiry scan unless another one is still in progress."""

    if not cache.add(SCAN_LOCK_KEY, "locked", timeout=settings.SUBSCRIPTION_SCAN_LOCK_SECONDS):
        logger.warning("Subscription scan already running; skipping this trigger")
        return None
    try:
        report = SubscriptionExpiryScanner().run()
    except ConfigurationMissing as exc:
        logger.error("Subscription scan skipped: %s", exc.message)
        return None
    finally:
        cache.delete(SCAN_LOCK_KEY)
    return report.as_dict()

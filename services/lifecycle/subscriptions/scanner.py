"""Daily expiry scan over subscriptions.

A run is split in two phases. The planning phase reads every candidate,
decides what (if anything) happens to it and resolves reminder recipients;
nothing is written. The apply phase then writes all decisions in one
transaction, each as a conditional row update plus its audit entry and mail.
Re-running on the same day finds nothing left to do.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from audit.models import EntityType
from audit.recorder import AuditRecorder, changes
from lifecycle_service.actors import SYSTEM_ACTOR
from lifecycle_service.errors import ConfigurationMissing
from notifications import messages
from notifications.directory import HttpIdentityDirectory, IdentityDirectory, resolve_email
from notifications.sink import MailQueueSink, NotificationSink

from .models import SCANNED_STATUSES, Subscription, SubscriptionStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReminderLevel:
    days: int
    label: str
    flag: str


REMINDER_LEVELS = (
    ReminderLevel(30, "30 Hari", "reminder_sent_h30"),
    ReminderLevel(14, "14 Hari", "reminder_sent_h14"),
    ReminderLevel(7, "7 Hari", "reminder_sent_h7"),
    ReminderLevel(1, "1 Hari", "reminder_sent_h1"),
)


@dataclass(frozen=True)
class ScanDecision:
    days_left: int
    level: Optional[ReminderLevel] = None

    @property
    def expires(self) -> bool:
        return self.level is None


@dataclass
class ScanReport:
    evaluated: int = 0
    expired: int = 0
    reminded: int = 0
    skipped: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


def days_until(expiry: date, today: date) -> int:
    return (expiry - today).days


def decide(subscription: Subscription, today: date) -> Optional[ScanDecision]:
    """What the scan does to ``subscription`` on ``today``; ``None`` for nothing.

    Thresholds match on the exact day only: a day the scan does not run
    skips that level for good.
    """

    days_left = days_until(subscription.expiry_date, today)
    if days_left <= 0:
        return ScanDecision(days_left=days_left)
    for level in REMINDER_LEVELS:
        if days_left == level.days and not getattr(subscription, level.flag):
            return ScanDecision(days_left=days_left, level=level)
    return None


class SubscriptionExpiryScanner:
    def __init__(
        self,
        sink: Optional[NotificationSink] = None,
        directory: Optional[IdentityDirectory] = None,
        recorder: Optional[AuditRecorder] = None,
        clock: Callable[[], Any] = timezone.now,
    ):
        self.sink = sink or MailQueueSink()
        self.directory = directory or HttpIdentityDirectory()
        self.recorder = recorder or AuditRecorder()
        self.clock = clock

    def run(self, today: Optional[date] = None) -> ScanReport:
        fallback = settings.OPERATIONS_EMAIL
        if not fallback:
            raise ConfigurationMissing("OPERATIONS_EMAIL is not configured.")
        today = today or timezone.localdate(self.clock())

        candidates = list(
            Subscription.objects.filter(status__in=SCANNED_STATUSES, auto_renew=False)
        )
        report = ScanReport(evaluated=len(candidates))

        planned: List[tuple] = []
        for subscription in candidates:
            decision = decide(subscription, today)
            if decision is None:
                continue
            recipient = None
            if not decision.expires:
                recipient = resolve_email(self.directory, subscription.created_by, fallback)
            planned.append((subscription, decision, recipient))

        if planned:
            now = self.clock()
            with transaction.atomic():
                for subscription, decision, recipient in planned:
                    if decision.expires:
                        if self._expire(subscription, decision, now):
                            report.expired += 1
                    elif self._remind(subscription, decision, recipient, now):
                        report.reminded += 1

        report.skipped = report.evaluated - report.expired - report.reminded
        logger.info("Subscription scan for %s: %s", today.isoformat(), report.as_dict())
        return report

    def _expire(self, subscription: Subscription, decision: ScanDecision, now) -> bool:
        updated = Subscription.objects.filter(
            pk=subscription.pk, status__in=SCANNED_STATUSES
        ).update(status=SubscriptionStatus.EXPIRED, updated_at=now)
        if not updated:
            logger.info("Subscription %s changed during the scan; left alone", subscription.pk)
            return False

        self.recorder.record(
            entity_type=EntityType.SUBSCRIPTION,
            entity_id=subscription.pk,
            action="expired",
            actor=SYSTEM_ACTOR,
            details=f"Subscription {subscription.name} expired on {subscription.expiry_date.isoformat()}.",
            changes=changes(status=(subscription.status, SubscriptionStatus.EXPIRED)),
            timestamp=now,
        )
        logger.info("Subscription %s (%s) expired", subscription.pk, subscription.name)
        return True

    def _remind(
        self, subscription: Subscription, decision: ScanDecision, recipient: str, now
    ) -> bool:
        level = decision.level
        updated = Subscription.objects.filter(
            pk=subscription.pk, status__in=SCANNED_STATUSES, **{level.flag: False}
        ).update(status=SubscriptionStatus.EXPIRING_SOON, updated_at=now, **{level.flag: True})
        if not updated:
            logger.info("Subscription %s changed during the scan; left alone", subscription.pk)
            return False

        self.recorder.record(
            entity_type=EntityType.SUBSCRIPTION,
            entity_id=subscription.pk,
            action="reminder_sent",
            actor=SYSTEM_ACTOR,
            details=f"Reminder '{level.label}' sent to {recipient}.",
            changes=changes(
                **{
                    level.flag: (False, True),
                    "status": (subscription.status, SubscriptionStatus.EXPIRING_SOON),
                }
            ),
            timestamp=now,
        )
        self.sink.enqueue(
            messages.subscription_expiring(
                subscription, recipient, level.label, decision.days_left, subscription.expiry_date
            )
        )
        logger.info(
            "Subscription %s (%s): %s reminder queued for %s",
            subscription.pk,
            subscription.name,
            level.label,
            recipient,
        )
        return True

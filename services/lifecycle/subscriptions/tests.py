"""Tests for the subscription expiry scan."""
from __future__ import annotations

from datetime import date, datetime, timedelta
from datetime import timezone as dt_timezone
import os
from unittest import mock

from django.core.cache import cache
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework.test import APIClient

from audit.models import AuditEntry, EntityType
from lifecycle_service.errors import ConfigurationMissing, DependencyFailure
from lifecycle_service.settings import _cache_settings
from notifications.models import MailMessage

from .models import Subscription, SubscriptionStatus
from .scanner import REMINDER_LEVELS, SubscriptionExpiryScanner, decide
from .tasks import SCAN_LOCK_KEY, scan_subscription_expiry

TODAY = date(2024, 6, 1)
FLAGS = [level.flag for level in REMINDER_LEVELS]


class RecordingSink:
    def __init__(self) -> None:
        self.requests = []

    def enqueue(self, request):
        self.requests.append(request)
        return request


class StaticDirectory:
    def __init__(self, emails=None) -> None:
        self.emails = emails or {}
        self.lookups = []

    def email_for(self, user_id: str) -> str:
        self.lookups.append(user_id)
        if user_id not in self.emails:
            raise DependencyFailure(f"unknown user {user_id}")
        return self.emails[user_id]


def make_subscription(days_left: int, **kwargs) -> Subscription:
    defaults = {
        "name": "Adobe Creative Cloud",
        "provider": "Adobe",
        "expiry_date": TODAY + timedelta(days=days_left),
        "created_by": "adm-1",
    }
    defaults.update(kwargs)
    return Subscription.objects.create(**defaults)


class DecideTests(TestCase):
    def test_thirty_day_boundary(self) -> None:
        for days_left, expected in ((29, None), (30, "30 Hari"), (31, None)):
            subscription = Subscription(expiry_date=TODAY + timedelta(days=days_left))
            decision = decide(subscription, TODAY)
            label = decision.level.label if decision else None
            self.assertEqual(label, expected, days_left)

    def test_each_level_fires_on_its_day_only_once(self) -> None:
        for level in REMINDER_LEVELS:
            subscription = Subscription(expiry_date=TODAY + timedelta(days=level.days))
            self.assertEqual(decide(subscription, TODAY).level, level)
            setattr(subscription, level.flag, True)
            self.assertIsNone(decide(subscription, TODAY))

    def test_due_or_past_expiry_expires(self) -> None:
        for days_left in (0, -1, -90):
            subscription = Subscription(expiry_date=TODAY + timedelta(days=days_left))
            decision = decide(subscription, TODAY)
            self.assertTrue(decision.expires)
            self.assertIsNone(decision.level)


class ScannerTests(TestCase):
    def setUp(self) -> None:
        self.sink = RecordingSink()
        self.directory = StaticDirectory({"adm-1": "owner@example.com"})
        self.scanner = SubscriptionExpiryScanner(sink=self.sink, directory=self.directory)

    def test_lapsed_subscription_expires_without_reminder(self) -> None:
        subscription = make_subscription(-1)

        report = self.scanner.run(TODAY)

        subscription.refresh_from_db()
        self.assertEqual(subscription.status, SubscriptionStatus.EXPIRED)
        self.assertEqual([getattr(subscription, flag) for flag in FLAGS], [False] * 4)
        self.assertEqual(self.sink.requests, [])
        self.assertEqual(report.expired, 1)
        self.assertEqual(report.reminded, 0)
        entry = AuditEntry.objects.get(entity_type=EntityType.SUBSCRIPTION)
        self.assertEqual(entry.action, "expired")
        self.assertEqual(entry.action_by, "system")

    def test_reminder_sets_flag_and_queues_mail(self) -> None:
        subscription = make_subscription(30)

        report = self.scanner.run(TODAY)

        subscription.refresh_from_db()
        self.assertTrue(subscription.reminder_sent_h30)
        self.assertEqual(subscription.status, SubscriptionStatus.EXPIRING_SOON)
        self.assertEqual(report.reminded, 1)
        self.assertEqual(len(self.sink.requests), 1)
        request = self.sink.requests[0]
        self.assertEqual(request.to, ("owner@example.com",))
        self.assertEqual(request.subject, "[WARNING] Subscription Adobe Creative Cloud expires in 30 Hari")
        entry = AuditEntry.objects.get(action="reminder_sent")
        self.assertEqual(entry.changes["reminder_sent_h30"], {"old": False, "new": True})
        self.assertEqual(entry.changes["status"], {"old": "active", "new": "expiring_soon"})

    @override_settings(OPERATIONS_EMAIL="ops@example.com")
    def test_unresolvable_creator_falls_back_to_operations(self) -> None:
        make_subscription(7, created_by="gone-user")

        with self.assertLogs("notifications.directory", level="WARNING"):
            self.scanner.run(TODAY)

        self.assertEqual(self.sink.requests[0].to, ("ops@example.com",))
        self.assertEqual(self.directory.lookups, ["gone-user"])

    @override_settings(OPERATIONS_EMAIL="ops@example.com", IDENTITY_SERVICE_URL="http://identity:8000")
    def test_http_directory_lookup(self) -> None:
        make_subscription(14)
        response = mock.Mock()
        response.json.return_value = {"email": "owner@example.com"}
        scanner = SubscriptionExpiryScanner(sink=self.sink)

        with mock.patch("notifications.directory.requests.get", return_value=response) as get:
            scanner.run(TODAY)

        get.assert_called_once()
        self.assertEqual(self.sink.requests[0].to, ("owner@example.com",))

    def test_second_run_changes_nothing(self) -> None:
        make_subscription(30)
        make_subscription(-3, name="Old VPN")
        make_subscription(10, name="Quiet")

        first = self.scanner.run(TODAY)
        audit_count = AuditEntry.objects.count()
        second = self.scanner.run(TODAY)

        self.assertEqual((first.expired, first.reminded, first.skipped), (1, 1, 1))
        self.assertEqual((second.expired, second.reminded), (0, 0))
        self.assertEqual(second.evaluated, 2)
        self.assertEqual(AuditEntry.objects.count(), audit_count)
        self.assertEqual(len(self.sink.requests), 1)

    def test_missed_day_skips_the_level(self) -> None:
        subscription = make_subscription(31)
        self.scanner.run(TODAY)
        self.scanner.run(TODAY + timedelta(days=2))

        subscription.refresh_from_db()
        self.assertFalse(subscription.reminder_sent_h30)
        self.assertEqual(subscription.status, SubscriptionStatus.ACTIVE)
        self.assertEqual(self.sink.requests, [])

    def test_auto_renew_and_cancelled_are_not_scanned(self) -> None:
        renewing = make_subscription(30, auto_renew=True)
        cancelled = make_subscription(-5, status=SubscriptionStatus.CANCELLED)

        report = self.scanner.run(TODAY)

        self.assertEqual(report.evaluated, 0)
        renewing.refresh_from_db()
        cancelled.refresh_from_db()
        self.assertFalse(renewing.reminder_sent_h30)
        self.assertEqual(cancelled.status, SubscriptionStatus.CANCELLED)

    def test_empty_run_writes_nothing(self) -> None:
        make_subscription(20)
        report = self.scanner.run(TODAY)
        self.assertEqual(report.skipped, 1)
        self.assertFalse(AuditEntry.objects.exists())
        self.assertEqual(self.directory.lookups, [])

    def test_flags_and_expiry_are_monotonic_over_a_calendar(self) -> None:
        subscription = make_subscription(40)
        seen_flags = {flag: False for flag in FLAGS}
        seen_expired = False

        for offset in range(50):
            self.scanner.run(TODAY + timedelta(days=offset))
            self.scanner.run(TODAY + timedelta(days=offset))
            subscription.refresh_from_db()
            for flag in FLAGS:
                if seen_flags[flag]:
                    self.assertTrue(getattr(subscription, flag), (offset, flag))
                seen_flags[flag] = getattr(subscription, flag)
            if seen_expired:
                self.assertEqual(subscription.status, SubscriptionStatus.EXPIRED)
            seen_expired = subscription.status == SubscriptionStatus.EXPIRED

        self.assertTrue(all(seen_flags.values()))
        self.assertTrue(seen_expired)
        self.assertEqual(
            [request.subject.rsplit(" in ", 1)[1] for request in self.sink.requests],
            ["30 Hari", "14 Hari", "7 Hari", "1 Hari"],
        )
        self.assertEqual(AuditEntry.objects.filter(action="expired").count(), 1)

    @override_settings(OPERATIONS_EMAIL="")
    def test_missing_operations_address(self) -> None:
        make_subscription(30)
        with self.assertRaises(ConfigurationMissing):
            self.scanner.run(TODAY)
        self.assertFalse(Subscription.objects.get().reminder_sent_h30)

    def test_today_defaults_to_local_date(self) -> None:
        def clock() -> datetime:
            # 20:00 UTC on 31 May is already 1 June in Jakarta.
            return datetime(2024, 5, 31, 20, 0, tzinfo=dt_timezone.utc)

        scanner = SubscriptionExpiryScanner(sink=self.sink, directory=self.directory, clock=clock)
        make_subscription(30)

        with override_settings(TIME_ZONE="Asia/Jakarta"):
            report = scanner.run()

        self.assertEqual(report.reminded, 1)


class ScanTaskTests(TestCase):
    def tearDown(self) -> None:
        cache.delete(SCAN_LOCK_KEY)

    def test_lock_cache_is_shared_when_a_redis_broker_is_configured(self) -> None:
        with mock.patch.dict(os.environ, {"CELERY_BROKER_URL": "redis://broker:6379/0"}, clear=True):
            shared = _cache_settings()["default"]
        self.assertEqual(shared["BACKEND"], "django.core.cache.backends.redis.RedisCache")
        self.assertEqual(shared["LOCATION"], "redis://broker:6379/0")

        env = {"CELERY_BROKER_URL": "redis://broker:6379/0", "LIFECYCLE_CACHE_URL": "redis://cache:6379/1"}
        with mock.patch.dict(os.environ, env, clear=True):
            self.assertEqual(_cache_settings()["default"]["LOCATION"], "redis://cache:6379/1")

        with mock.patch.dict(os.environ, {}, clear=True):
            local = _cache_settings()["default"]
        self.assertEqual(local["BACKEND"], "django.core.cache.backends.locmem.LocMemCache")

    def test_overlapping_trigger_is_skipped(self) -> None:
        cache.add(SCAN_LOCK_KEY, "locked")
        with mock.patch("subscriptions.tasks.SubscriptionExpiryScanner") as scanner:
            with self.assertLogs("subscriptions.tasks", level="WARNING"):
                self.assertIsNone(scan_subscription_expiry())
        scanner.assert_not_called()

    def test_run_releases_the_lock(self) -> None:
        make_subscription(-1)
        with mock.patch(
            "subscriptions.scanner.timezone.localdate", return_value=TODAY
        ):
            result = scan_subscription_expiry()

        self.assertEqual(result["expired"], 1)
        self.assertIsNone(cache.get(SCAN_LOCK_KEY))

    @override_settings(OPERATIONS_EMAIL="")
    def test_missing_configuration_skips_the_run(self) -> None:
        with self.assertLogs("subscriptions.tasks", level="ERROR"):
            self.assertIsNone(scan_subscription_expiry())
        self.assertIsNone(cache.get(SCAN_LOCK_KEY))

    @override_settings(IDENTITY_SERVICE_URL="")
    def test_reminder_mail_is_queued(self) -> None:
        make_subscription(1)
        with mock.patch("subscriptions.scanner.timezone.localdate", return_value=TODAY):
            with self.assertLogs("notifications.directory", level="WARNING"):
                scan_subscription_expiry()
        self.assertEqual(MailMessage.objects.count(), 1)


class SubscriptionApiTests(TestCase):
    def setUp(self) -> None:
        self.client = APIClient()
        make_subscription(30)

    def act_as(self, role: str) -> None:
        self.client.credentials(HTTP_X_ACTOR_ID=f"{role}-1", HTTP_X_ACTOR_ROLE=role)

    def test_list_and_retrieve(self) -> None:
        self.act_as("employee")
        response = self.client.get(reverse("subscription-list"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 1)

        detail = self.client.get(reverse("subscription-detail", args=[response.data[0]["id"]]))
        self.assertEqual(detail.status_code, 200)
        self.assertEqual(detail.data["status"], "active")

    def test_admin_queues_a_scan(self) -> None:
        self.act_as("admin")
        with mock.patch("subscriptions.views.scan_subscription_expiry") as task:
            task.delay.return_value.id = "task-1"
            response = self.client.post(reverse("subscription-scan"))

        self.assertEqual(response.status_code, 202)
        self.assertEqual(response.data, {"task_id": "task-1"})
        task.delay.assert_called_once_with()

    def test_scan_requires_an_administrator(self) -> None:
        self.act_as("it_staff")
        with mock.patch("subscriptions.views.scan_subscription_expiry") as task:
            response = self.client.post(reverse("subscription-scan"))
        self.assertEqual(response.status_code, 403)
        task.delay.assert_not_called()

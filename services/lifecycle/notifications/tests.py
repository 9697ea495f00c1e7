"""Tests for the mail queue, its delivery task and the identity lookup."""
from __future__ import annotations

from unittest import mock

import requests
from django.core import mail
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework.test import APIClient

from lifecycle_service.errors import ConfigurationMissing, DependencyFailure

from .directory import HttpIdentityDirectory, resolve_email
from .models import MailMessage
from .sink import MailQueueSink, NotificationRequest, enqueue_quietly
from .tasks import deliver_mail


class NotificationRequestTests(TestCase):
    def test_build_drops_blank_and_duplicate_recipients(self) -> None:
        request = NotificationRequest.build(
            ["a@example.com", "", "b@example.com", "a@example.com"], "Subject", "Body"
        )
        self.assertEqual(request.to, ("a@example.com", "b@example.com"))

    def test_request_without_recipients_is_dropped(self) -> None:
        sink = mock.Mock()
        with self.assertLogs("notifications.sink", level="WARNING"):
            result = enqueue_quietly(sink, NotificationRequest.build([""], "Subject", "Body"))
        self.assertIsNone(result)
        sink.enqueue.assert_not_called()


class MailQueueSinkTests(TestCase):
    def test_enqueue_persists_and_dispatches_after_commit(self) -> None:
        request = NotificationRequest.build(["ops@example.com"], "Hello", "World")
        with mock.patch("notifications.tasks.deliver_mail") as deliver:
            with self.captureOnCommitCallbacks(execute=True):
                message = MailQueueSink().enqueue(request)
                deliver.delay.assert_not_called()

        deliver.delay.assert_called_once_with(message.pk)
        stored = MailMessage.objects.get(pk=message.pk)
        self.assertEqual(stored.to, ["ops@example.com"])
        self.assertEqual(stored.subject, "Hello")
        self.assertEqual(stored.status, MailMessage.PENDING)


class DeliverMailTests(TestCase):
    def setUp(self) -> None:
        self.message = MailMessage.objects.create(
            to=["budi@example.com"], subject="[TICKET UPDATE] TKT-2024-0001", body="Resolved"
        )

    def test_sends_pending_message(self) -> None:
        deliver_mail(self.message.pk)

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["budi@example.com"])
        self.message.refresh_from_db()
        self.assertEqual(self.message.status, MailMessage.SENT)
        self.assertEqual(self.message.attempts, 1)
        self.assertIsNotNone(self.message.sent_at)

    def test_sent_message_is_not_sent_twice(self) -> None:
        deliver_mail(self.message.pk)
        deliver_mail(self.message.pk)
        self.assertEqual(len(mail.outbox), 1)

    def test_missing_message_is_ignored(self) -> None:
        with self.assertLogs("notifications.tasks", level="WARNING"):
            deliver_mail(999999)

    @override_settings(MAIL_MAX_ATTEMPTS=3)
    def test_transport_error_keeps_message_pending_for_retry(self) -> None:
        with mock.patch("notifications.tasks.send_mail", side_effect=OSError("smtp down")):
            with self.assertLogs("notifications.tasks", level="ERROR"):
                with self.assertRaises(OSError):
                    deliver_mail(self.message.pk)

        self.message.refresh_from_db()
        self.assertEqual(self.message.status, MailMessage.PENDING)
        self.assertEqual(self.message.attempts, 1)
        self.assertEqual(self.message.error_message, "smtp down")

    @override_settings(MAIL_MAX_ATTEMPTS=1)
    def test_last_attempt_marks_message_failed(self) -> None:
        with mock.patch("notifications.tasks.send_mail", side_effect=OSError("smtp down")):
            with self.assertLogs("notifications.tasks", level="ERROR"):
                deliver_mail(self.message.pk)

        self.message.refresh_from_db()
        self.assertEqual(self.message.status, MailMessage.FAILED)
        self.assertEqual(self.message.attempts, 1)
        self.assertEqual(self.message.subject, "[TICKET UPDATE] TKT-2024-0001")


class IdentityDirectoryTests(TestCase):
    def test_reads_email_from_identity_service(self) -> None:
        response = mock.Mock()
        response.json.return_value = {"id": "u-1", "email": "owner@example.com"}
        with mock.patch("notifications.directory.requests.get", return_value=response) as get:
            email = HttpIdentityDirectory("http://identity:8000/", timeout=2).email_for("u-1")

        self.assertEqual(email, "owner@example.com")
        get.assert_called_once_with("http://identity:8000/api/users/u-1/", timeout=2)

    def test_transport_error_is_a_dependency_failure(self) -> None:
        with mock.patch(
            "notifications.directory.requests.get", side_effect=requests.ConnectionError("refused")
        ):
            with self.assertRaises(DependencyFailure):
                HttpIdentityDirectory("http://identity:8000").email_for("u-1")

    def test_missing_email_is_a_dependency_failure(self) -> None:
        response = mock.Mock()
        response.json.return_value = {"id": "u-1"}
        with mock.patch("notifications.directory.requests.get", return_value=response):
            with self.assertRaises(DependencyFailure):
                HttpIdentityDirectory("http://identity:8000").email_for("u-1")

    def test_unconfigured_directory(self) -> None:
        with self.assertRaises(ConfigurationMissing):
            HttpIdentityDirectory("").email_for("u-1")

    def test_resolve_email_falls_back(self) -> None:
        directory = HttpIdentityDirectory("")
        with self.assertLogs("notifications.directory", level="WARNING"):
            self.assertEqual(resolve_email(directory, "u-1", "ops@example.com"), "ops@example.com")
        self.assertEqual(resolve_email(directory, None, "ops@example.com"), "ops@example.com")


class QueueMetricsTests(TestCase):
    def test_counts_by_status(self) -> None:
        MailMessage.objects.create(to=["a@example.com"], subject="a", body="")
        MailMessage.objects.create(to=["b@example.com"], subject="b", body="", status=MailMessage.FAILED)
        client = APIClient()
        client.credentials(HTTP_X_ACTOR_ID="adm-1", HTTP_X_ACTOR_ROLE="admin")

        response = client.get(reverse("mail-queue-metrics"))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["pending"], 1)
        self.assertEqual(response.data["sent"], 0)
        self.assertEqual(response.data["failed"], 1)
        self.assertGreaterEqual(response.data["oldestPendingSeconds"], 0)

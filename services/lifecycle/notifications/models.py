"""Outbound mail queue."""
from __future__ import annotations

from django.db import models
from django.utils import timezone


class MailMessage(models.Model):
    """A queued notification; recipients, subject and body are written once."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"

    STATUS_CHOICES = [
        (PENDING, "Pending"),
        (SENT, "Sent"),
        (FAILED, "Failed"),
    ]

    to = models.JSONField(default=list)
    subject = models.CharField(max_length=255)
    body = models.TextField()
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=PENDING)
    attempts = models.PositiveIntegerField(default=0)
    error_message = models.TextField(blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)
    sent_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at", "id"]
        indexes = [
            models.Index(fields=["status"], name="mail_status_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.subject} -> {', '.join(self.to)} ({self.status})"

    def mark_sent(self) -> None:
        self.status = self.SENT
        self.attempts += 1
        self.sent_at = timezone.now()
        self.error_message = ""
        self.save(update_fields=["status", "attempts", "sent_at", "error_message", "updated_at"])

    def mark_retrying(self, message: str) -> None:
        self.attempts += 1
        self.error_message = message
        self.save(update_fields=["attempts", "error_message", "updated_at"])

    def mark_failed(self, message: str) -> None:
        self.status = self.FAILED
        self.attempts += 1
        self.error_message = message
        self.save(update_fields=["status", "attempts", "error_message", "updated_at"])

"""Database models for vendor subscriptions and service contracts."""
from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.utils import timezone


class SubscriptionStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    EXPIRING_SOON = "expiring_soon", "Expiring Soon"
    EXPIRED = "expired", "Expired"
    CANCELLED = "cancelled", "Cancelled"


SCANNED_STATUSES = (SubscriptionStatus.ACTIVE, SubscriptionStatus.EXPIRING_SOON)


class BillingCycle(models.TextChoices):
    MONTHLY = "monthly", "Monthly"
    QUARTERLY = "quarterly", "Quarterly"
    YEARLY = "yearly", "Yearly"
    ONE_TIME = "one_time", "One Time"


class Subscription(models.Model):
    """A license or contract tracked for renewal.

    The ``reminder_sent_*`` flags only ever go from false to true and are
    written by :mod:`subscriptions.scanner`.
    """

    name = models.CharField(max_length=255)
    provider = models.CharField(max_length=255, blank=True)
    status = models.CharField(
        max_length=32, choices=SubscriptionStatus.choices, default=SubscriptionStatus.ACTIVE
    )
    start_date = models.DateField(null=True, blank=True)
    expiry_date = models.DateField()
    auto_renew = models.BooleanField(default=False)

    reminder_sent_h30 = models.BooleanField(default=False)
    reminder_sent_h14 = models.BooleanField(default=False)
    reminder_sent_h7 = models.BooleanField(default=False)
    reminder_sent_h1 = models.BooleanField(default=False)

    cost_per_period = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    billing_cycle = models.CharField(
        max_length=16, choices=BillingCycle.choices, default=BillingCycle.YEARLY
    )
    currency = models.CharField(max_length=3, default="IDR")
    notes = models.TextField(blank=True)

    created_by = models.CharField(max_length=128)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["expiry_date", "id"]
        indexes = [
            models.Index(fields=["status", "expiry_date"], name="subscription_scan_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.status}, expires {self.expiry_date})"

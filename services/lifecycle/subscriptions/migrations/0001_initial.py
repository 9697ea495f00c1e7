# Generated manually for initial schema.
from __future__ import annotations

from decimal import Decimal

import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Subscription",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("provider", models.CharField(blank=True, max_length=255)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("active", "Active"),
                            ("expiring_soon", "Expiring Soon"),
                            ("expired", "Expired"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="active",
                        max_length=32,
                    ),
                ),
                ("start_date", models.DateField(blank=True, null=True)),
                ("expiry_date", models.DateField()),
                ("auto_renew", models.BooleanField(default=False)),
                ("reminder_sent_h30", models.BooleanField(default=False)),
                ("reminder_sent_h14", models.BooleanField(default=False)),
                ("reminder_sent_h7", models.BooleanField(default=False)),
                ("reminder_sent_h1", models.BooleanField(default=False)),
                ("cost_per_period", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=12)),
                (
                    "billing_cycle",
                    models.CharField(
                        choices=[
                            ("monthly", "Monthly"),
                            ("quarterly", "Quarterly"),
                            ("yearly", "Yearly"),
                            ("one_time", "One Time"),
                        ],
                        default="yearly",
                        max_length=16,
                    ),
                ),
                ("currency", models.CharField(default="IDR", max_length=3)),
                ("notes", models.TextField(blank=True)),
                ("created_by", models.CharField(max_length=128)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["expiry_date", "id"],
                "indexes": [
                    models.Index(fields=["status", "expiry_date"], name="subscription_scan_idx"),
                ],
            },
        ),
    ]

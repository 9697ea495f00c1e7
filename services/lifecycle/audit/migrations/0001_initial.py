# Generated manually for initial schema.
from __future__ import annotations

import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="AuditEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("entity_id", models.CharField(max_length=64)),
                (
                    "entity_type",
                    models.CharField(
                        choices=[
                            ("ticket", "Ticket"),
                            ("subscription", "Subscription"),
                            ("asset", "Asset"),
                            ("document", "Document"),
                            ("system", "System"),
                        ],
                        max_length=32,
                    ),
                ),
                ("action", models.CharField(max_length=64)),
                ("action_by", models.CharField(max_length=128)),
                ("action_by_name", models.CharField(blank=True, max_length=255)),
                ("timestamp", models.DateTimeField(default=django.utils.timezone.now)),
                ("details", models.TextField(blank=True)),
                ("changes", models.JSONField(blank=True, null=True)),
            ],
            options={
                "ordering": ["-timestamp", "id"],
                "verbose_name_plural": "audit entries",
                "indexes": [
                    models.Index(fields=["entity_type", "entity_id"], name="audit_entity_idx"),
                    models.Index(fields=["timestamp"], name="audit_timestamp_idx"),
                ],
            },
        ),
    ]

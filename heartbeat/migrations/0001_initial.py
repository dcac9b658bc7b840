import uuid

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models

import heartbeat.models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Check",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("ping_key", models.CharField(default=heartbeat.models.generate_ping_key, editable=False, max_length=64, unique=True)),
                ("name", models.CharField(blank=True, default="", max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                ("schedule_type", heartbeat.models.ChoicesField(choices=[("SIMPLE", "Simple"), ("CRON", "Cron")], default="SIMPLE", max_length=10)),
                ("ping_period", models.PositiveIntegerField(default=1)),
                ("ping_period_units", heartbeat.models.ChoicesField(choices=[("MINUTES", "Minutes"), ("HOURS", "Hours"), ("DAYS", "Days")], default="DAYS", max_length=10)),
                ("ping_cron_expression", models.CharField(blank=True, max_length=100, null=True)),
                ("grace_period", models.PositiveIntegerField(default=1)),
                ("grace_period_units", heartbeat.models.ChoicesField(choices=[("MINUTES", "Minutes"), ("HOURS", "Hours"), ("DAYS", "Days")], default="HOURS", max_length=10)),
                ("status", heartbeat.models.ChoicesField(choices=[("CREATED", "Created"), ("UP", "Up"), ("DOWN", "Down")], db_index=True, default="CREATED", max_length=10)),
                ("last_ping_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("deleted", models.BooleanField(db_index=True, default=False)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "verbose_name": "Check",
                "verbose_name_plural": "Checks",
                "ordering": ["name", "id"],
            },
        ),
        migrations.CreateModel(
            name="NotificationChannel",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("name", models.CharField(blank=True, default="", max_length=200)),
                ("channel_type", heartbeat.models.ChoicesField(choices=[("EMAIL", "Email"), ("WEBHOOK", "Webhook")], max_length=10)),
                ("email", models.EmailField(blank=True, max_length=254, null=True)),
                ("url", models.URLField(blank=True, max_length=500, null=True)),
                ("max_retries", models.PositiveIntegerField(default=5)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("deleted", models.BooleanField(db_index=True, default=False)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
                ("monitored_check", models.ForeignKey(db_column="check_id", on_delete=django.db.models.deletion.PROTECT, related_name="channels", to="heartbeat.check")),
            ],
            options={
                "verbose_name": "Notification Channel",
                "verbose_name_plural": "Notification Channels",
                "ordering": ["id"],
            },
        ),
        migrations.CreateModel(
            name="NotificationAlert",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("check_status", heartbeat.models.ChoicesField(choices=[("CREATED", "Created"), ("UP", "Up"), ("DOWN", "Down")], max_length=10)),
                ("delivery_status", heartbeat.models.ChoicesField(choices=[("QUEUED", "Queued"), ("DELIVERED", "Delivered"), ("FAILED", "Failed")], db_index=True, default="QUEUED", max_length=10)),
                ("retries_remaining", models.IntegerField()),
                ("attempts", models.PositiveIntegerField(default=0)),
                ("last_error", models.TextField(blank=True, default="")),
                ("claimed_by", models.CharField(blank=True, default="", max_length=100)),
                ("claimed_until", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("finished_at", models.DateTimeField(blank=True, null=True)),
                ("channel", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="alerts", to="heartbeat.notificationchannel")),
                ("monitored_check", models.ForeignKey(db_column="check_id", on_delete=django.db.models.deletion.PROTECT, related_name="alerts", to="heartbeat.check")),
            ],
            options={
                "verbose_name": "Notification Alert",
                "verbose_name_plural": "Notification Alerts",
                "ordering": ["created_at", "id"],
            },
        ),
        migrations.AddIndex(
            model_name="notificationalert",
            index=models.Index(fields=["delivery_status", "created_at"], name="alert_status_created_idx"),
        ),
        migrations.AddConstraint(
            model_name="notificationalert",
            constraint=models.UniqueConstraint(condition=models.Q(("finished_at__isnull", True)), fields=("monitored_check", "channel"), name="unique_outstanding_alert"),
        ),
    ]

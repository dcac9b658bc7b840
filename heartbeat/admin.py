"""
Django Admin configuration for heartbeat models.
"""
from django.contrib import admin

from .models import Check, NotificationAlert, NotificationChannel


class NotificationChannelInline(admin.TabularInline):
    model = NotificationChannel
    fk_name = "monitored_check"
    fields = ["name", "channel_type", "email", "url", "max_retries", "deleted"]
    readonly_fields = ["deleted"]
    extra = 0
    can_delete = False


@admin.register(Check)
class CheckAdmin(admin.ModelAdmin):
    """Admin for checks."""

    list_display = [
        "name",
        "uuid",
        "status",
        "schedule_summary",
        "last_ping_at",
        "deleted",
    ]
    list_filter = ["status", "schedule_type", "deleted"]
    search_fields = ["name", "description", "uuid"]
    readonly_fields = ["uuid", "ping_key", "status", "last_ping_at", "deleted_at"]
    ordering = ["name"]
    inlines = [NotificationChannelInline]
    actions = ["soft_delete_checks"]

    @admin.display(description="Schedule")
    def schedule_summary(self, obj):
        if obj.ping_cron_expression:
            return f"cron {obj.ping_cron_expression}"
        return f"every {obj.ping_period} {obj.ping_period_units.lower()}"

    @admin.action(description="Delete selected checks (keeps alert history)")
    def soft_delete_checks(self, request, queryset):
        checks = list(queryset.filter(deleted=False))
        for check in checks:
            check.soft_delete()
        self.message_user(request, f"{len(checks)} check(s) deleted.")

    # Checks carry alert history and are only ever soft-deleted
    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(NotificationChannel)
class NotificationChannelAdmin(admin.ModelAdmin):
    """Admin for notification channels."""

    list_display = ["__str__", "monitored_check", "channel_type", "max_retries", "deleted"]
    list_filter = ["channel_type", "deleted"]
    search_fields = ["name", "email", "url", "monitored_check__name"]
    readonly_fields = ["uuid", "deleted", "deleted_at"]
    list_select_related = ["monitored_check"]
    actions = ["soft_delete_channels"]

    @admin.action(description="Delete selected channels (keeps alert history)")
    def soft_delete_channels(self, request, queryset):
        channels = list(queryset.filter(deleted=False))
        for channel in channels:
            channel.soft_delete()
        self.message_user(request, f"{len(channels)} channel(s) deleted.")

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(NotificationAlert)
class NotificationAlertAdmin(admin.ModelAdmin):
    """Admin for queued and finished alerts (read-only)."""

    list_display = [
        "id",
        "monitored_check",
        "channel",
        "check_status",
        "delivery_status",
        "retries_remaining",
        "attempts",
        "created_at",
        "finished_at",
    ]
    list_filter = ["delivery_status", "check_status"]
    search_fields = ["monitored_check__name", "last_error"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    list_select_related = ["monitored_check", "channel"]

    # Alerts are system-generated, not manually edited
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        # Allow deletion for cleanup purposes
        return request.user.is_superuser

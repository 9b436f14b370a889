from django.contrib import admin

from .models import AuditLog, InboxNotification


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("created_at", "action", "actor_ref", "target_type", "target_id")
    list_filter = ("action", "target_type")
    search_fields = ("actor_ref", "target_id")
    readonly_fields = ("actor", "actor_ref", "action", "target_type",
                       "target_id", "details", "created_at")

    # Append-only: entries are written by AuditService, never by hand.
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(InboxNotification)
class InboxNotificationAdmin(admin.ModelAdmin):
    list_display = ("recipient", "title", "delivered", "seen", "created_at")
    list_filter = ("delivered", "seen")
    search_fields = ("recipient__username", "title")
    raw_id_fields = ("recipient",)

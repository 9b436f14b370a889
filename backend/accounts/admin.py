from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import Officer, Role, User


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin):
    list_display = ("name", "hierarchy_level", "description")
    search_fields = ("name",)
    ordering = ("-hierarchy_level",)
    filter_horizontal = ("permissions",)


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ("username", "email", "phone_number",
                    "first_name", "last_name", "is_active", "role")
    search_fields = ("username", "email", "phone_number")
    list_filter = ("is_active", "is_staff", "role")
    filter_horizontal = ("groups", "user_permissions")
    fieldsets = BaseUserAdmin.fieldsets + (
        ("Extra Info", {"fields": ("phone_number", "role")}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Extra Info", {"fields": ("email", "phone_number",
                                   "first_name", "last_name", "role")}),
    )


@admin.register(Officer)
class OfficerAdmin(admin.ModelAdmin):
    list_display = ("user", "rank", "status", "jurisdiction_id", "badge_number", "last_token_update")
    list_filter = ("rank", "status", "jurisdiction_id")
    search_fields = ("user__username", "user__first_name", "user__last_name", "badge_number")
    raw_id_fields = ("user",)
    readonly_fields = ("last_token_update", "created_at", "updated_at")

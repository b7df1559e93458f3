# users/admin.py

"""
STAFF ADMIN

Staff accounts are managed here: role, home branch, active flag.
The capability column shows what the role actually unlocks in the API
(permissions.roles is the source of truth; nothing is stored per user).
"""

from __future__ import annotations

from django.contrib import admin
from django.contrib.auth import get_user_model
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin

from permissions.roles import effective_capabilities_for

User = get_user_model()


@admin.register(User)
class StaffUserAdmin(DjangoUserAdmin):
    ordering = ("email",)
    list_display = ("email", "full_name", "role", "branch", "is_active", "last_login")
    list_filter = ("role", "branch", "is_active", "is_superuser")
    list_select_related = ("branch",)
    search_fields = ("email", "first_name", "last_name", "branch__name")
    readonly_fields = ("capabilities", "last_login", "created_at", "updated_at")

    fieldsets = (
        (None, {"fields": ("email", "password")}),
        ("Staff", {"fields": ("first_name", "last_name", "role", "branch", "capabilities")}),
        ("Access", {"fields": ("is_active", "is_staff", "is_superuser", "groups")}),
        ("Activity", {"fields": ("last_login", "created_at", "updated_at")}),
    )

    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("email", "password1", "password2", "role", "branch"),
            },
        ),
    )

    @admin.display(description="Name")
    def full_name(self, obj):
        return f"{obj.first_name} {obj.last_name}".strip() or "-"

    @admin.display(description="Capabilities")
    def capabilities(self, obj):
        if obj is None or obj.pk is None:
            return "-"
        return ", ".join(sorted(effective_capabilities_for(obj))) or "-"

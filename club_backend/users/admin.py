# users/admin.py

"""
USERS ADMIN REGISTRATION

Registers the custom User model so operators can attach users to a
tenant/member and pick their role.
"""

from __future__ import annotations

from django.contrib import admin
from django.contrib.auth import get_user_model
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin

User = get_user_model()


@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    ordering = ("email",)
    list_display = ("email", "role", "tenant", "member", "is_staff", "is_active")
    list_filter = ("role", "tenant", "is_staff", "is_active", "is_superuser")
    search_fields = ("email", "first_name", "last_name")
    raw_id_fields = ("member",)

    fieldsets = (
        (None, {"fields": ("email", "password")}),
        ("Profile", {"fields": ("first_name", "last_name", "role")}),
        ("Club", {"fields": ("tenant", "member")}),
        (
            "Permissions",
            {
                "fields": (
                    "is_active",
                    "is_staff",
                    "is_superuser",
                    "groups",
                    "user_permissions",
                )
            },
        ),
    )

    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": (
                    "email",
                    "password1",
                    "password2",
                    "role",
                    "tenant",
                    "member",
                    "is_staff",
                    "is_active",
                ),
            },
        ),
    )

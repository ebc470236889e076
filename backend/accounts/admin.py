from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ("username", "email", "phone_number", "first_name",
                    "last_name", "is_active", "role")
    search_fields = ("username", "email", "phone_number")
    list_filter = ("is_active", "role")
    fieldsets = BaseUserAdmin.fieldsets + (
        ("Community", {"fields": ("role", "phone_number", "apartment", "building")}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Community", {"fields": ("email", "first_name", "last_name", "role",
                                  "phone_number", "apartment", "building")}),
    )

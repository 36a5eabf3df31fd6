from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ("username", "email", "full_name", "user_type", "is_staff", "is_active")
    list_filter = BaseUserAdmin.list_filter + ("user_type",)
    fieldsets = BaseUserAdmin.fieldsets + (
        ("Marketplace", {"fields": ("user_type", "full_name", "phone", "bio")}),
        ("Profile photo", {"fields": ("profile_image_url",)}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Marketplace", {"fields": ("user_type", "full_name")}),
    )

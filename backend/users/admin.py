"""
Django admin configuration for CustomUser model.

Superuser accounts are restricted to the e-mails listed in
``settings.PROTECTED_SUPERUSER_EMAILS``.
"""

from django.conf import settings
from django.contrib import admin, messages
from django.contrib.auth.admin import UserAdmin

from .models import CustomUser


@admin.register(CustomUser)
class CustomUserAdmin(UserAdmin):
    list_display = ("username", "email", "is_active", "is_staff", "date_joined")
    search_fields = ("username", "email")

    def save_model(self, request, obj, form, change):
        protected = getattr(settings, "PROTECTED_SUPERUSER_EMAILS", [])
        if obj.is_superuser and obj.email not in protected:
            messages.error(request, "Superuser can only use protected system emails.")
            return
        super().save_model(request, obj, form, change)

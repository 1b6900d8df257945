"""
Signal handlers for the ledger app.
"""
from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

from ledger.models import Business, BusinessSettings, UserSettings


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def create_user_settings(sender, instance, created, **kwargs):
    """
    Create UserSettings when a new user is created.
    """
    if created:
        UserSettings.objects.get_or_create(user=instance)


@receiver(post_save, sender=Business)
def create_business_settings(sender, instance, created, **kwargs):
    """
    Make sure every business has a settings row holding its numbering
    counters, including businesses created outside ``BusinessService``.
    """
    if created:
        BusinessSettings.objects.get_or_create(business=instance)

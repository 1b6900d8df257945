"""
User model for the ledger application.

Every ledger entity is owned by exactly one user; the user model itself
only adds a unique e-mail address to Django's AbstractUser.
"""

from django.contrib.auth.models import AbstractUser
from django.db import models


class CustomUser(AbstractUser):
    """
    Custom user model extending Django's AbstractUser.

    ``settings.AUTH_USER_MODEL`` points here so ledger models can reference
    the owner through a stable swappable foreign key.
    """

    # Email field - unique and required for all users
    email = models.EmailField(
        unique=True,
        blank=False,
        help_text="User's unique email address, required for all accounts",
    )

    def __str__(self):
        return self.username or f"User {self.id} ({self.email})"

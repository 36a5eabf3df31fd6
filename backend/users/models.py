from __future__ import annotations

from urllib.parse import quote_plus

from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Marketplace profile for salon owners and the professionals who rent from them."""

    class UserType(models.TextChoices):
        SALON_OWNER = "salon_owner", "Salon owner"
        RENTER = "renter", "Renter"

    user_type = models.CharField(
        max_length=16,
        choices=UserType.choices,
        default=UserType.RENTER,
    )
    full_name = models.CharField(max_length=255, blank=True, default="")
    phone = models.CharField(
        max_length=32,
        blank=True,
        default="",
        help_text="Optional E.164 formatted phone number.",
    )
    bio = models.TextField(blank=True, default="")
    profile_image_url = models.URLField(
        max_length=1024,
        blank=True,
        default="",
        help_text="Public URL of the profile photo held by the object store.",
    )

    def is_salon_owner(self) -> bool:
        return self.user_type == self.UserType.SALON_OWNER

    @property
    def display_name(self) -> str:
        return (self.full_name or self.get_full_name() or self.username or "").strip()

    @property
    def avatar_url(self) -> str:
        """
        Return either the stored profile photo URL or a deterministic placeholder.
        """
        if self.profile_image_url:
            return self.profile_image_url
        seed = quote_plus(self.display_name or f"user-{self.pk or 'anon'}")
        return f"https://api.dicebear.com/7.x/initials/svg?seed={seed}&backgroundColor=5B8CA6"

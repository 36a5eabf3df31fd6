"""Application configuration for the listings app."""

from django.apps import AppConfig


class ListingsConfig(AppConfig):
    """Register the listings app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "listings"

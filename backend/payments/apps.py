"""Application configuration for the payments app."""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Register the payments app and apply Stripe client defaults."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"

    def ready(self) -> None:
        from .stripe_api import configure_stripe_client

        configure_stripe_client()

from django.conf import settings
from django.db import models


class OwnerPayoutAccount(models.Model):
    """Stripe Connect Express account tracking for salon owners."""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="payout_account",
    )
    stripe_account_id = models.CharField(max_length=255, unique=True)
    details_submitted = models.BooleanField(default=False)
    charges_enabled = models.BooleanField(default=False)
    payouts_enabled = models.BooleanField(default=False)
    requirements_due = models.JSONField(default=dict, blank=True)
    is_fully_onboarded = models.BooleanField(
        default=False,
        help_text="Details submitted, charges enabled, no disabled_reason.",
    )
    last_synced_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-last_synced_at", "user_id"]

    def __str__(self) -> str:
        return f"{self.user} - {self.stripe_account_id}"

    @property
    def can_accept_payments(self) -> bool:
        return bool(self.stripe_account_id and self.is_fully_onboarded and self.charges_enabled)

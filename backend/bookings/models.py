"""Database models for salon space bookings."""

from __future__ import annotations

import uuid

from django.conf import settings
from django.db import models
from django.db.models import F, Q

from listings.models import Listing


class Booking(models.Model):
    """A confirmed rental of a listing, materialized from a paid checkout."""

    class Status(models.TextChoices):
        PENDING = "pending", "pending"
        CONFIRMED = "confirmed", "confirmed"
        CANCELLED = "cancelled", "cancelled"
        COMPLETED = "completed", "completed"

    class BookingType(models.TextChoices):
        DAILY = "daily", "daily"
        WEEKLY = "weekly", "weekly"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    listing = models.ForeignKey(
        Listing,
        related_name="bookings",
        on_delete=models.CASCADE,
    )
    renter = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name="bookings_as_renter",
        on_delete=models.CASCADE,
    )
    start_date = models.DateField()
    end_date = models.DateField(help_text="End date (checkout), must be after start_date.")
    total_amount = models.PositiveIntegerField(help_text="Captured amount in minor units.")
    booking_type = models.CharField(
        max_length=8,
        choices=BookingType.choices,
        default=BookingType.DAILY,
    )
    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.PENDING,
    )
    stripe_payment_intent_id = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Stripe PaymentIntent that paid for this booking; empty outside the payment flow.",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["listing", "start_date", "end_date"],
                name="booking_listing_dates_idx",
            ),
            models.Index(fields=["renter", "status"], name="booking_renter_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(end_date__gt=F("start_date")),
                name="booking_end_after_start",
            ),
        ]

    def __str__(self) -> str:
        """Return a human-readable representation."""
        return f"Booking #{self.pk} for {self.listing_id} ({self.status})"

    @property
    def days(self) -> int:
        """Return the count of booked days."""
        if not self.start_date or not self.end_date:
            return 0
        return (self.end_date - self.start_date).days

    def is_terminal(self) -> bool:
        """Return True if the booking reached a terminal state."""
        return self.status in {
            self.Status.CANCELLED,
            self.Status.COMPLETED,
        }

"""Domain helpers for booking materialization and state transitions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from payments.exceptions import BookingCreationFailed, InvalidInput

from .models import Booking

logger = logging.getLogger(__name__)

CANCELLABLE_STATUSES = (
    Booking.Status.PENDING,
    Booking.Status.CONFIRMED,
)


@dataclass(frozen=True)
class BookingMetadata:
    """Booking fields carried on a Checkout session's metadata."""

    listing_id: UUID
    renter_id: int
    start_date: date
    end_date: date
    booking_type: str


@dataclass(frozen=True)
class MaterializationResult:
    booking: Booking
    created: bool


def validate_booking_dates(start_date: date, end_date: date, *, today: date) -> None:
    """Reject inverted, empty or already-started windows."""
    if start_date >= end_date:
        raise InvalidInput("End date must be after start date.")
    if start_date < today:
        raise InvalidInput("Start date cannot be in the past.")


def _find_booking_for_payment(payment_intent_id: str) -> Booking | None:
    return Booking.objects.filter(stripe_payment_intent_id=payment_intent_id).first()


def find_booking_for_payment(payment_intent_id: str) -> Booking | None:
    """Return the booking paid by the given PaymentIntent, if one was materialized."""
    if not payment_intent_id:
        return None
    return _find_booking_for_payment(payment_intent_id)


def materialize_booking(
    *,
    payment_intent_id: str,
    metadata: BookingMetadata,
    amount_total: int,
    today: date,
) -> MaterializationResult:
    """
    Insert the confirmed booking for a paid checkout, or return the existing one.

    The unique constraint on ``stripe_payment_intent_id`` decides concurrent
    deliveries: the loser of the insert race re-reads and returns the winner.
    """
    existing = _find_booking_for_payment(payment_intent_id)
    if existing is not None:
        logger.info(
            "bookings: payment already materialized",
            extra={"booking_id": str(existing.pk), "payment_intent_id": payment_intent_id},
        )
        return MaterializationResult(booking=existing, created=False)

    validate_booking_dates(metadata.start_date, metadata.end_date, today=today)

    try:
        with transaction.atomic():
            booking = Booking.objects.create(
                listing_id=metadata.listing_id,
                renter_id=metadata.renter_id,
                start_date=metadata.start_date,
                end_date=metadata.end_date,
                booking_type=metadata.booking_type,
                total_amount=amount_total,
                status=Booking.Status.CONFIRMED,
                stripe_payment_intent_id=payment_intent_id,
            )
    except IntegrityError as exc:
        winner = Booking.objects.filter(stripe_payment_intent_id=payment_intent_id).first()
        if winner is None:
            logger.exception(
                "bookings: booking insert failed",
                extra={"payment_intent_id": payment_intent_id},
            )
            raise BookingCreationFailed() from exc
        logger.info(
            "bookings: lost materialization race",
            extra={"booking_id": str(winner.pk), "payment_intent_id": payment_intent_id},
        )
        return MaterializationResult(booking=winner, created=False)

    logger.info(
        "bookings: booking materialized",
        extra={
            "booking_id": str(booking.pk),
            "payment_intent_id": payment_intent_id,
            "amount": amount_total,
        },
    )
    return MaterializationResult(booking=booking, created=True)


def assert_can_cancel(booking: Booking) -> None:
    """Ensure the booking can still be cancelled."""
    if booking.status not in CANCELLABLE_STATUSES:
        raise ValidationError({"status": ["Only pending or confirmed bookings can be cancelled."]})


def mark_cancelled(booking: Booking) -> Booking:
    assert_can_cancel(booking)
    booking.status = Booking.Status.CANCELLED
    booking.save(update_fields=["status", "updated_at"])
    return booking

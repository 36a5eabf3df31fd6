"""Stripe webhook ingestion: verify, parse, deduplicate and materialize bookings."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Union
from uuid import UUID

import stripe
from django.contrib.auth import get_user_model
from django.db import OperationalError

from bookings.domain import BookingMetadata, materialize_booking
from listings.models import Listing

from . import stripe_api
from .exceptions import InvalidSignature, MalformedMetadata, PaymentNotCompleted, ProviderTimeout
from .quotes import BOOKING_TYPES
from .splits import BOOKING_CHECKOUT_KIND

logger = logging.getLogger(__name__)
User = get_user_model()

CHECKOUT_COMPLETED = "checkout.session.completed"
REQUIRED_METADATA = ("listing_id", "renter_id", "start_date", "end_date", "booking_type")


@dataclass(frozen=True)
class CheckoutCompleted:
    event_id: str
    session_id: str
    payment_status: str
    amount_total: int | None
    payment_intent_id: str
    metadata: dict[str, str]


@dataclass(frozen=True)
class IgnoredEvent:
    event_id: str
    event_type: str


WebhookEvent = Union[CheckoutCompleted, IgnoredEvent]

_value = stripe_api._stripe_value


def verify_event(payload: bytes, sig_header: str) -> Any:
    """
    Check the Stripe-Signature header and decode the event.

    A missing webhook secret surfaces as StripeConfigurationError so the
    caller can answer 500 instead of dropping deliveries as forged.
    """
    if not sig_header:
        logger.warning("stripe_webhook: missing Stripe-Signature header")
        raise InvalidSignature()
    try:
        return stripe_api.construct_webhook_event(payload, sig_header)
    except ValueError as exc:
        logger.warning("stripe_webhook: unparseable payload: %s", exc)
        raise InvalidSignature() from exc
    except stripe.SignatureVerificationError as exc:
        logger.warning("stripe_webhook: signature verification failed")
        raise InvalidSignature() from exc


def _payment_intent_id(value: Any) -> str:
    if isinstance(value, str):
        return value
    return _value(value, "id", "") or ""


def parse_event(event: Any) -> WebhookEvent:
    """Classify a verified event; only booking checkout completions are actionable."""
    event_id = _value(event, "id", "") or ""
    event_type = _value(event, "type", "") or ""
    if event_type != CHECKOUT_COMPLETED:
        return IgnoredEvent(event_id=event_id, event_type=event_type)

    session = _value(_value(event, "data"), "object")
    raw_metadata = _value(session, "metadata")
    kind = _value(raw_metadata, "kind")
    if kind and kind != BOOKING_CHECKOUT_KIND:
        return IgnoredEvent(event_id=event_id, event_type=event_type)

    metadata: dict[str, str] = {}
    for key in REQUIRED_METADATA:
        field_value = _value(raw_metadata, key)
        if field_value not in (None, ""):
            metadata[key] = str(field_value)

    return CheckoutCompleted(
        event_id=event_id,
        session_id=_value(session, "id", "") or "",
        payment_status=_value(session, "payment_status", "") or "",
        amount_total=_value(session, "amount_total"),
        payment_intent_id=_payment_intent_id(_value(session, "payment_intent")),
        metadata=metadata,
    )


def extract_booking_metadata(metadata: dict[str, str]) -> BookingMetadata:
    """Rebuild booking fields from session metadata or raise MalformedMetadata."""
    missing = [key for key in REQUIRED_METADATA if not metadata.get(key)]
    if missing:
        raise MalformedMetadata(f"Missing metadata: {', '.join(missing)}")

    try:
        listing_id = UUID(metadata["listing_id"])
        renter_id = int(metadata["renter_id"])
        start_date = date.fromisoformat(metadata["start_date"])
        end_date = date.fromisoformat(metadata["end_date"])
    except (TypeError, ValueError) as exc:
        raise MalformedMetadata("Unparseable booking metadata.") from exc

    booking_type = metadata["booking_type"]
    if booking_type not in BOOKING_TYPES:
        raise MalformedMetadata("Unknown booking type in metadata.")
    if not Listing.objects.filter(pk=listing_id).exists():
        raise MalformedMetadata("Metadata references an unknown listing.")
    if not User.objects.filter(pk=renter_id).exists():
        raise MalformedMetadata("Metadata references an unknown renter.")

    return BookingMetadata(
        listing_id=listing_id,
        renter_id=renter_id,
        start_date=start_date,
        end_date=end_date,
        booking_type=booking_type,
    )


def ingest_event(event: Any, *, today: date) -> dict[str, Any]:
    """Drive a verified event to materialization and return the response body."""
    parsed = parse_event(event)
    if isinstance(parsed, IgnoredEvent):
        logger.info(
            "stripe_webhook: ignoring event",
            extra={"event_id": parsed.event_id, "event_type": parsed.event_type},
        )
        return {"received": True}

    try:
        return _materialize_checkout(parsed, today=today)
    except OperationalError as exc:
        logger.warning(
            "stripe_webhook: database unavailable",
            extra={"session_id": parsed.session_id, "error": str(exc)},
        )
        raise ProviderTimeout() from exc


def _materialize_checkout(parsed: CheckoutCompleted, *, today: date) -> dict[str, Any]:
    booking_metadata = extract_booking_metadata(parsed.metadata)
    if not parsed.payment_intent_id:
        raise MalformedMetadata("Checkout session has no payment intent.")
    if parsed.payment_status != "paid":
        logger.info(
            "stripe_webhook: checkout not paid",
            extra={"session_id": parsed.session_id, "payment_status": parsed.payment_status},
        )
        raise PaymentNotCompleted()
    if isinstance(parsed.amount_total, bool) or not isinstance(parsed.amount_total, int):
        raise MalformedMetadata("Checkout session has no amount total.")

    result = materialize_booking(
        payment_intent_id=parsed.payment_intent_id,
        metadata=booking_metadata,
        amount_total=parsed.amount_total,
        today=today,
    )
    return {"success": True, "booking_id": str(result.booking.pk)}

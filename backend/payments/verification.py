"""Read-only payment status checks polled by the booking success page."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import OperationalError

from bookings.domain import find_booking_for_payment

from . import stripe_api
from .exceptions import InvalidInput, PaymentSetupFailed, ProviderTimeout, SessionNotFound, Unauthorized

logger = logging.getLogger(__name__)
_value = stripe_api._stripe_value


@dataclass(frozen=True)
class PaymentVerification:
    verified: bool
    payment_status: str
    amount: int | None
    booking_exists: bool
    booking_id: str | None = None

    def as_payload(self) -> dict:
        payload = {
            "verified": self.verified,
            "payment_status": self.payment_status,
            "amount": self.amount,
            "booking_exists": self.booking_exists,
        }
        if self.booking_id:
            payload["booking_id"] = self.booking_id
        return payload


def verify_payment(*, session_id: str, caller) -> PaymentVerification:
    """
    Report what Stripe and the database currently say about a checkout.

    Never writes; booking creation belongs to the webhook.
    """
    if not session_id or not isinstance(session_id, str):
        raise InvalidInput("Missing session ID.")

    try:
        session = stripe_api.retrieve_checkout_session(session_id)
    except stripe_api.StripeTransientError as exc:
        logger.warning("payments: session lookup timed out for %s: %s", session_id, exc)
        raise ProviderTimeout() from exc
    except stripe_api.StripeConfigurationError as exc:
        logger.warning("payments: session lookup misconfigured: %s", exc)
        raise PaymentSetupFailed() from exc
    except stripe_api.StripePaymentError as exc:
        logger.warning("payments: session lookup rejected for %s: %s", session_id, exc)
        raise SessionNotFound() from exc
    if session is None:
        raise SessionNotFound()

    renter_id = _value(_value(session, "metadata"), "renter_id")
    if not renter_id or str(renter_id) != str(caller.pk):
        logger.warning(
            "payments: verification denied",
            extra={"session_id": session_id, "caller_id": caller.pk},
        )
        raise Unauthorized()

    payment_status = _value(session, "payment_status", "") or ""
    payment_intent = _value(session, "payment_intent")
    if not isinstance(payment_intent, str):
        payment_intent = _value(payment_intent, "id", "") or ""

    try:
        booking = find_booking_for_payment(payment_intent)
    except OperationalError as exc:
        logger.warning("payments: booking lookup failed for %s: %s", session_id, exc)
        raise ProviderTimeout() from exc

    return PaymentVerification(
        verified=payment_status == "paid",
        payment_status=payment_status,
        amount=_value(session, "amount_total"),
        booking_exists=booking is not None,
        booking_id=str(booking.pk) if booking is not None else None,
    )

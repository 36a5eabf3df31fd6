"""Hosted Stripe Checkout sessions for booking payments."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from . import stripe_api
from .quotes import Quote
from .splits import SplitPayment, payment_setup_errors

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutSession:
    session_id: str
    checkout_url: str


def _line_item(quote: Quote, split: SplitPayment) -> dict:
    request = quote.request
    product_data = {
        "name": quote.listing.title,
        "description": (
            f"{request.booking_type} rental from "
            f"{request.start_date.isoformat()} to {request.end_date.isoformat()}"
        ),
    }
    if quote.listing.image_url:
        product_data["images"] = [quote.listing.image_url]
    return {
        "price_data": {
            "currency": split.currency,
            "product_data": product_data,
            "unit_amount": split.amount,
        },
        "quantity": 1,
    }


def create_booking_checkout_session(*, quote: Quote, split: SplitPayment, renter) -> CheckoutSession:
    """
    Open a Checkout session for the quoted booking.

    Nothing is written locally; the booking row only appears once the
    ``checkout.session.completed`` webhook arrives.
    """
    origin = stripe_api._get_frontend_origin()
    listing_id = str(quote.request.listing_id)
    params = {
        "mode": "payment",
        "line_items": [_line_item(quote, split)],
        "payment_intent_data": {
            "application_fee_amount": split.platform_fee,
            "transfer_data": {"destination": split.destination},
            "metadata": split.metadata,
        },
        "metadata": split.metadata,
        "client_reference_id": str(renter.pk),
        "success_url": f"{origin}/booking-success?session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": f"{origin}/listing/{listing_id}",
    }
    if getattr(renter, "email", ""):
        params["customer_email"] = renter.email

    with payment_setup_errors("checkout session creation"):
        session_id, session_url = stripe_api.create_checkout_session(**params)

    logger.info(
        "payments: checkout session created",
        extra={"session_id": session_id, "listing_id": listing_id, "renter_id": renter.pk},
    )
    return CheckoutSession(session_id=session_id, checkout_url=session_url)

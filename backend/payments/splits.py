"""Platform fee split and PaymentIntent registration for booking checkouts."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterator

from django.conf import settings

from . import stripe_api
from .exceptions import OwnerNotOnboarded, PaymentSetupFailed, ProviderTimeout
from .quotes import Quote

logger = logging.getLogger(__name__)
BOOKING_CHECKOUT_KIND = "booking_checkout"


@dataclass(frozen=True)
class SplitPayment:
    amount: int
    platform_fee: int
    owner_payout: int
    destination: str
    currency: str
    metadata: dict[str, str] = field(default_factory=dict)
    payment_intent_id: str = ""


def _platform_fee_rate() -> Decimal:
    return Decimal(str(getattr(settings, "PLATFORM_FEE_RATE", "0.10")))


def compute_split(amount: int) -> tuple[int, int]:
    """Return ``(platform_fee, owner_payout)`` for an amount in minor units."""
    fee = int(
        (Decimal(amount) * _platform_fee_rate()).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    )
    return fee, amount - fee


def booking_metadata(quote: Quote, renter_id: int, platform_fee: int, owner_payout: int) -> dict[str, str]:
    """Metadata that lets the webhook rebuild the booking without a database lookup."""
    request = quote.request
    return {
        "listing_id": str(request.listing_id),
        "renter_id": str(renter_id),
        "start_date": request.start_date.isoformat(),
        "end_date": request.end_date.isoformat(),
        "booking_type": request.booking_type,
        "platform_fee": str(platform_fee),
        "owner_payout": str(owner_payout),
        "kind": BOOKING_CHECKOUT_KIND,
        "env": stripe_api._stripe_env(),
    }


def _idempotency_key(quote: Quote, renter_id: int) -> str:
    request = quote.request
    return ":".join(
        [
            "booking_intent",
            str(request.listing_id),
            str(renter_id),
            request.start_date.isoformat(),
            request.end_date.isoformat(),
            str(request.total_amount),
            stripe_api.IDEMPOTENCY_VERSION,
        ]
    )


@contextmanager
def payment_setup_errors(operation: str) -> Iterator[None]:
    """Translate Stripe failures raised inside the block into API errors."""
    try:
        yield
    except stripe_api.StripeTransientError as exc:
        logger.warning("payments: %s timed out or was throttled: %s", operation, exc)
        raise ProviderTimeout() from exc
    except (stripe_api.StripePaymentError, stripe_api.StripeConfigurationError) as exc:
        logger.warning("payments: %s rejected by Stripe: %s", operation, exc)
        raise PaymentSetupFailed() from exc


def build_split_payment(quote: Quote, renter) -> SplitPayment:
    """Compute the split and register the pending PaymentIntent with Stripe."""
    owner = quote.listing.owner
    if owner is None or not owner.can_accept_payments:
        raise OwnerNotOnboarded()

    amount = quote.request.total_amount
    platform_fee, owner_payout = compute_split(amount)
    metadata = booking_metadata(quote, renter.pk, platform_fee, owner_payout)

    with payment_setup_errors("payment intent creation"):
        intent_id = stripe_api.create_split_payment_intent(
            amount=amount,
            application_fee_amount=platform_fee,
            destination=owner.connect_account_id,
            metadata=metadata,
            idempotency_key=_idempotency_key(quote, renter.pk),
        )

    logger.info(
        "payments: registered booking payment intent",
        extra={
            "payment_intent_id": intent_id,
            "listing_id": metadata["listing_id"],
            "renter_id": metadata["renter_id"],
            "amount": amount,
            "platform_fee": platform_fee,
        },
    )
    return SplitPayment(
        amount=amount,
        platform_fee=platform_fee,
        owner_payout=owner_payout,
        destination=owner.connect_account_id,
        currency=stripe_api._stripe_currency(),
        metadata=metadata,
        payment_intent_id=intent_id,
    )

"""Booking payment, verification, webhook and owner Connect endpoints."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from django.db import OperationalError
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import (
    api_view,
    authentication_classes,
    permission_classes,
    throttle_classes,
)
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from listings.services import get_listing_snapshot

from .checkout import create_booking_checkout_session
from .exceptions import ListingNotFound, ProviderTimeout, ReconciliationError
from .models import OwnerPayoutAccount
from .quotes import parse_booking_request, validate_quote
from .splits import build_split_payment
from .stripe_api import (
    StripeConfigurationError,
    StripePaymentError,
    StripeTransientError,
    create_connect_onboarding_link,
    refresh_payout_account,
)
from .verification import verify_payment
from .webhooks import ingest_event, verify_event

logger = logging.getLogger(__name__)
STRIPE_API_ERRORS = (StripeConfigurationError, StripePaymentError, StripeTransientError)
ONBOARDING_ERROR_MESSAGE = "Stripe onboarding is temporarily unavailable. Please try again later."


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def create_booking_payment(request):
    """Validate a booking quote and open a Stripe Checkout session for it."""
    try:
        booking_request = parse_booking_request(request.data, today=timezone.localdate())
        try:
            listing = get_listing_snapshot(booking_request.listing_id)
        except OperationalError as exc:
            raise ProviderTimeout() from exc
        if listing is None:
            raise ListingNotFound()
        quote = validate_quote(booking_request, listing)
        split = build_split_payment(quote, request.user)
        session = create_booking_checkout_session(quote=quote, split=split, renter=request.user)
    except ReconciliationError as exc:
        logger.info(
            "payments: booking checkout rejected",
            extra={"user_id": request.user.id, "code": exc.code},
        )
        return exc.as_response()

    return Response({"checkoutUrl": session.checkout_url, "sessionId": session.session_id})


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def verify_payment_view(request):
    """Report payment status and booking existence for the caller's checkout session."""
    data = request.data if isinstance(request.data, Mapping) else {}
    session_id = data.get("sessionId") or data.get("session_id") or ""
    try:
        verification = verify_payment(session_id=session_id, caller=request.user)
    except ReconciliationError as exc:
        return exc.as_response()
    return Response(verification.as_payload())


@api_view(["POST"])
@authentication_classes([])
@permission_classes([])
@throttle_classes([])
def stripe_webhook(request):
    """Handle Stripe webhook callbacks for booking checkouts."""
    payload = request.body
    sig_header = request.META.get("HTTP_STRIPE_SIGNATURE", "")

    try:
        event = verify_event(payload, sig_header)
        body = ingest_event(event, today=timezone.localdate())
    except StripeConfigurationError:
        logger.error("stripe_webhook: webhook secret not configured")
        return Response(
            {"detail": "Webhook endpoint is not configured.", "code": "configuration_error"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    except ReconciliationError as exc:
        logger.warning(
            "stripe_webhook: event rejected",
            extra={"code": exc.code, "retryable": exc.retryable},
        )
        return exc.as_response()

    return Response(body, status=status.HTTP_200_OK)


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def connect_onboarding(request):
    """Return a Stripe Connect onboarding link for the salon owner."""
    user = request.user
    if not user.is_salon_owner():
        return Response(
            {"detail": "Only salon owners can set up payouts."},
            status=status.HTTP_403_FORBIDDEN,
        )

    try:
        onboarding_url = create_connect_onboarding_link(user)
    except STRIPE_API_ERRORS as exc:
        logger.warning("payments: onboarding link failure for user %s: %s", user.id, exc)
        return Response(
            {"detail": ONBOARDING_ERROR_MESSAGE},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    payout_account = OwnerPayoutAccount.objects.filter(user=user).first()
    return Response(
        {
            "url": onboarding_url,
            "stripe_account_id": payout_account.stripe_account_id if payout_account else None,
        }
    )


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def connect_status(request):
    """Re-sync the owner's Connect account and report whether it can take payments."""
    payout_account = OwnerPayoutAccount.objects.filter(user=request.user).first()
    if payout_account is None:
        return Response(
            {
                "onboarded": False,
                "details_submitted": False,
                "charges_enabled": False,
                "payouts_enabled": False,
            }
        )

    try:
        payout_account = refresh_payout_account(payout_account)
    except STRIPE_API_ERRORS as exc:
        logger.warning(
            "payments: connect status sync failed for user %s: %s", request.user.id, exc
        )
        return Response(
            {"detail": ONBOARDING_ERROR_MESSAGE},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    return Response(
        {
            "onboarded": payout_account.is_fully_onboarded,
            "details_submitted": payout_account.details_submitted,
            "charges_enabled": payout_account.charges_enabled,
            "payouts_enabled": payout_account.payouts_enabled,
        }
    )

"""Stripe helpers for Connect accounts, booking checkouts and webhooks."""

from __future__ import annotations

import logging
from typing import Any

import stripe
from django.conf import settings
from django.contrib.auth import get_user_model
from django.utils import timezone

from payments.models import OwnerPayoutAccount

logger = logging.getLogger(__name__)
IDEMPOTENCY_VERSION = "v1"
User = get_user_model()


class StripeConfigurationError(Exception):
    """Stripe is not configured correctly in the environment."""


class StripeTransientError(Exception):
    """Temporary Stripe/API issue that should be retried."""


class StripePaymentError(Exception):
    """Permanent failure reported by Stripe for a payment request."""


def configure_stripe_client() -> None:
    """Bound every Stripe network call with a timeout and a small retry budget."""
    stripe.max_network_retries = getattr(settings, "STRIPE_MAX_NETWORK_RETRIES", 2)
    stripe.default_http_client = stripe.RequestsClient(
        timeout=getattr(settings, "STRIPE_TIMEOUT_SECONDS", 10.0),
    )


def _get_stripe_api_key() -> str:
    """Return the configured Stripe API key or raise if missing."""
    api_key = getattr(settings, "STRIPE_SECRET_KEY", "")
    if not api_key:
        raise StripeConfigurationError("Stripe secret key not configured.")
    return api_key


def _stripe_env() -> str:
    return getattr(settings, "STRIPE_ENV", "dev") or "dev"


def _stripe_currency() -> str:
    return (getattr(settings, "STRIPE_CURRENCY", "") or "usd").lower()


def _handle_stripe_error(exc: stripe.StripeError) -> None:
    """Map Stripe SDK errors onto internal exception types."""
    if isinstance(exc, stripe.CardError):
        message = exc.user_message or "Your card was declined."
        raise StripePaymentError(message) from exc
    if isinstance(
        exc,
        (
            stripe.RateLimitError,
            stripe.APIConnectionError,
            stripe.APIError,
        ),
    ):
        raise StripeTransientError("Temporary Stripe error, please retry.") from exc
    if isinstance(exc, (stripe.AuthenticationError, stripe.PermissionError)):
        raise StripeConfigurationError("Stripe credentials are invalid or unauthorized.") from exc
    if isinstance(exc, stripe.InvalidRequestError):
        raise StripePaymentError(exc.user_message or "Invalid payment request.") from exc
    raise StripePaymentError(exc.user_message or "Stripe payment failure.") from exc


def _stripe_value(stripe_object: Any, field: str, default: Any = None) -> Any:
    """Safely fetch a field from a Stripe object or dict payload."""
    if stripe_object is None:
        return default
    if isinstance(stripe_object, dict):
        return stripe_object.get(field, default)
    return getattr(stripe_object, field, default)


def _listify(value: Any) -> list[Any]:
    """Convert requirement entries into a JSON-serializable list."""
    if value in (None, "", ()):
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, (tuple, set)):
        return list(value)
    if isinstance(value, (str, bytes)):
        return [value]
    try:
        return list(value)
    except TypeError:
        return [value]


def _serialize_account_requirements(account_data: Any) -> dict[str, Any]:
    """Extract the requirements sub-structure from a Stripe account payload."""
    requirements = _stripe_value(account_data, "requirements", {}) or {}

    def _req_value(field: str, default: Any) -> Any:
        return _stripe_value(requirements, field, default) or default

    return {
        "currently_due": _listify(_req_value("currently_due", [])),
        "eventually_due": _listify(_req_value("eventually_due", [])),
        "past_due": _listify(_req_value("past_due", [])),
        "disabled_reason": _req_value("disabled_reason", ""),
    }


def sync_payout_account_from_stripe(
    payout_account: OwnerPayoutAccount,
    account_data: Any,
) -> OwnerPayoutAccount:
    """Update persisted payout account fields from a Stripe account payload."""
    account_id = _stripe_value(account_data, "id", payout_account.stripe_account_id)
    if account_id:
        payout_account.stripe_account_id = account_id
    details_submitted = bool(_stripe_value(account_data, "details_submitted", False))
    charges_enabled = bool(_stripe_value(account_data, "charges_enabled", False))
    payouts_enabled = bool(_stripe_value(account_data, "payouts_enabled", False))
    requirements_due = _serialize_account_requirements(account_data)
    disabled_reason = requirements_due.get("disabled_reason")

    payout_account.details_submitted = details_submitted
    payout_account.charges_enabled = charges_enabled
    payout_account.payouts_enabled = payouts_enabled
    payout_account.requirements_due = requirements_due
    payout_account.is_fully_onboarded = bool(
        details_submitted and charges_enabled and not disabled_reason
    )
    payout_account.last_synced_at = timezone.now()
    payout_account.save()
    return payout_account


def retrieve_connect_account(account_id: str) -> Any:
    """Fetch a Stripe Connect account by id."""
    stripe.api_key = _get_stripe_api_key()
    return stripe.Account.retrieve(account_id)


def refresh_payout_account(payout_account: OwnerPayoutAccount) -> OwnerPayoutAccount:
    """Re-read the Connect account from Stripe and persist its current state."""
    try:
        account_data = retrieve_connect_account(payout_account.stripe_account_id)
    except stripe.StripeError as exc:
        _handle_stripe_error(exc)
    return sync_payout_account_from_stripe(payout_account, account_data)


def ensure_connect_account(user: User) -> OwnerPayoutAccount:
    """Ensure the salon owner has a Stripe Connect Express account and sync it locally."""
    stripe.api_key = _get_stripe_api_key()

    payout_account = OwnerPayoutAccount.objects.filter(user=user).first()
    existing_account_id = payout_account.stripe_account_id if payout_account else ""

    account_data: Any | None = None
    if existing_account_id:
        try:
            account_data = retrieve_connect_account(existing_account_id)
        except stripe.InvalidRequestError as exc:
            if getattr(exc, "code", "") == "resource_missing":
                logger.info(
                    "Stripe Connect account %s missing for user %s; recreating.",
                    existing_account_id,
                    user.id,
                )
            else:
                _handle_stripe_error(exc)
        except stripe.StripeError as exc:
            _handle_stripe_error(exc)

    if account_data is None:
        account_params: dict[str, Any] = {
            "type": "express",
            "country": getattr(settings, "STRIPE_CONNECT_COUNTRY", "") or "US",
            "capabilities": {
                "card_payments": {"requested": True},
                "transfers": {"requested": True},
            },
            "business_profile": {
                "product_description": getattr(
                    settings, "CONNECT_BUSINESS_PRODUCT_DESCRIPTION", ""
                )
                or "Salon space rental services",
            },
            "metadata": {"user_id": str(user.id), "env": _stripe_env()},
        }
        if user.email:
            account_params["email"] = user.email
        try:
            account_data = stripe.Account.create(
                **account_params,
                idempotency_key=f"connect_account:{user.id}:{IDEMPOTENCY_VERSION}",
            )
        except stripe.StripeError as exc:
            _handle_stripe_error(exc)

    account_id = _stripe_value(account_data, "id", "")
    if not account_id:
        raise StripeConfigurationError("Stripe did not return a Connect account id.")

    if payout_account is None:
        payout_account = OwnerPayoutAccount(user=user, stripe_account_id=account_id)
    return sync_payout_account_from_stripe(payout_account, account_data)


def _get_frontend_origin() -> str:
    """Return the configured frontend origin or a local fallback."""
    configured = (getattr(settings, "FRONTEND_ORIGIN", "") or "").strip()
    base = configured or "http://localhost:3000"
    return base.rstrip("/") or base


def create_connect_onboarding_link(user: User) -> str:
    """Create a Stripe Connect onboarding link for the salon owner."""
    payout_account = ensure_connect_account(user)
    stripe.api_key = _get_stripe_api_key()

    base_origin = _get_frontend_origin()
    refresh_url = f"{base_origin}/salon-onboarding?refresh=true"
    return_url = f"{base_origin}/salon-onboarding?success=true"

    try:
        link = stripe.AccountLink.create(
            account=payout_account.stripe_account_id,
            type="account_onboarding",
            refresh_url=refresh_url,
            return_url=return_url,
        )
    except stripe.StripeError as exc:
        _handle_stripe_error(exc)

    link_url = _stripe_value(link, "url")
    if not link_url:
        raise StripeConfigurationError("Stripe did not return an onboarding link.")
    return link_url


def create_split_payment_intent(
    *,
    amount: int,
    application_fee_amount: int,
    destination: str,
    metadata: dict[str, str],
    idempotency_key: str,
) -> str:
    """Register a PaymentIntent that routes everything but the fee to the owner account."""
    stripe.api_key = _get_stripe_api_key()
    try:
        intent = stripe.PaymentIntent.create(
            amount=amount,
            currency=_stripe_currency(),
            application_fee_amount=application_fee_amount,
            transfer_data={"destination": destination},
            metadata=metadata,
            idempotency_key=idempotency_key,
        )
    except stripe.StripeError as exc:
        _handle_stripe_error(exc)

    intent_id = _stripe_value(intent, "id")
    if not intent_id:
        raise StripePaymentError("Stripe did not return a payment intent id.")
    return intent_id


def create_checkout_session(**params: Any) -> tuple[str, str]:
    """Create a hosted Checkout session and return its (id, url)."""
    stripe.api_key = _get_stripe_api_key()
    try:
        session = stripe.checkout.Session.create(**params)
    except stripe.StripeError as exc:
        _handle_stripe_error(exc)

    session_id = _stripe_value(session, "id")
    session_url = _stripe_value(session, "url")
    if not session_id or not session_url:
        raise StripeConfigurationError("Stripe did not return a checkout session URL.")
    return session_id, session_url


def retrieve_checkout_session(session_id: str) -> Any | None:
    """Retrieve a Checkout session, returning None if Stripe has no such session."""
    stripe.api_key = _get_stripe_api_key()
    try:
        return stripe.checkout.Session.retrieve(session_id)
    except stripe.InvalidRequestError as exc:
        if getattr(exc, "code", "") == "resource_missing":
            logger.info("Stripe checkout session %s missing.", session_id)
            return None
        _handle_stripe_error(exc)
    except stripe.StripeError as exc:
        _handle_stripe_error(exc)
    return None


def construct_webhook_event(payload: bytes, sig_header: str) -> Any:
    """
    Verify the Stripe-Signature header and return the decoded event.

    Raises ValueError for unparseable payloads and
    stripe.SignatureVerificationError for signature mismatches.
    """
    endpoint_secret = getattr(settings, "STRIPE_WEBHOOK_SECRET", "")
    if not endpoint_secret:
        raise StripeConfigurationError("Stripe webhook secret not configured.")
    return stripe.Webhook.construct_event(
        payload=payload,
        sig_header=sig_header,
        secret=endpoint_secret,
    )

"""Error taxonomy for booking payments and their reconciliation."""

from __future__ import annotations

from typing import Any

from rest_framework import status
from rest_framework.response import Response


class ReconciliationError(Exception):
    """
    Base class for failures of the booking payment flow.

    ``status_code`` is the HTTP status returned to the caller, ``retryable``
    tells the client (or Stripe, for webhooks) whether repeating the same
    request can succeed, and ``extra`` is merged into the response body.
    """

    code = "reconciliation_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Payment processing failed."
    retryable = False

    def __init__(self, detail: str | None = None, **extra: Any) -> None:
        self.detail = detail or self.default_detail
        self.extra = extra
        super().__init__(self.detail)

    def payload(self) -> dict[str, Any]:
        return {"detail": self.detail, "code": self.code, **self.extra}

    def as_response(self) -> Response:
        return Response(self.payload(), status=self.status_code)


class InvalidInput(ReconciliationError):
    code = "invalid_input"
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid booking request."


class AmountMismatch(ReconciliationError):
    code = "amount_mismatch"
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Booking total changed, please refresh and try again."

    def __init__(self, *, expected_amount: int, received_amount: int) -> None:
        super().__init__(
            f"Amount mismatch: expected {expected_amount}, received {received_amount}",
            expected_amount=expected_amount,
        )
        self.expected_amount = expected_amount
        self.received_amount = received_amount


class ListingNotFound(ReconciliationError):
    code = "listing_not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Requested resource not found."


class ListingUnavailable(ReconciliationError):
    code = "listing_unavailable"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Listing is not available for booking."


class OwnerNotOnboarded(ReconciliationError):
    code = "owner_not_onboarded"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The salon owner has not finished payment setup."


class PaymentSetupFailed(ReconciliationError):
    code = "payment_setup_failed"
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Payment creation failed. Please try again."
    retryable = True


class InvalidSignature(ReconciliationError):
    code = "invalid_signature"
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid signature."


class MalformedMetadata(ReconciliationError):
    code = "malformed_metadata"
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Missing metadata."
    retryable = True


class PaymentNotCompleted(ReconciliationError):
    code = "payment_not_completed"
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Payment not completed."


class Unauthorized(ReconciliationError):
    code = "unauthorized"
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You do not have access to this payment."


class SessionNotFound(ReconciliationError):
    code = "session_not_found"
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Payment session not found."
    retryable = True


class ProviderTimeout(ReconciliationError):
    code = "provider_timeout"
    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    default_detail = "Temporary payment issue, please retry."
    retryable = True


class BookingCreationFailed(ReconciliationError):
    code = "booking_creation_failed"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Booking creation failed."
    retryable = True

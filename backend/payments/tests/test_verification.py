"""Tests for the read-only payment verification endpoint."""

from __future__ import annotations

import pytest
import stripe
from django.db import OperationalError
from rest_framework.test import APIClient

from bookings import domain as booking_domain
from bookings.models import Booking
from payments import stripe_api
from payments.exceptions import ProviderTimeout, SessionNotFound, Unauthorized
from payments.verification import verify_payment

pytestmark = pytest.mark.django_db

VERIFY_URL = "/api/payments/verify/"


def patch_session_retrieve(monkeypatch, retrieve):
    monkeypatch.setattr(
        stripe_api.stripe.checkout,
        "Session",
        type("MockSession", (), {"retrieve": staticmethod(retrieve)}),
    )


def paid_session(renter_id, **overrides):
    session = {
        "id": "cs_test_verify",
        "payment_status": "paid",
        "amount_total": 300,
        "payment_intent": "pi_verify",
        "metadata": {"renter_id": str(renter_id), "listing_id": "ignored"},
    }
    session.update(overrides)
    return session


def test_verify_reports_pending_materialization(auth_client, renter_user, monkeypatch):
    patch_session_retrieve(monkeypatch, lambda session_id: paid_session(renter_user.id))

    response = auth_client(renter_user).post(VERIFY_URL, {"sessionId": "cs_test_verify"}, format="json")

    assert response.status_code == 200
    assert response.data == {
        "verified": True,
        "payment_status": "paid",
        "amount": 300,
        "booking_exists": False,
    }
    assert Booking.objects.count() == 0


def test_verify_reports_existing_booking(auth_client, renter_user, booking_factory, monkeypatch):
    booking = booking_factory(stripe_payment_intent_id="pi_verify")
    patch_session_retrieve(monkeypatch, lambda session_id: paid_session(renter_user.id))

    response = auth_client(renter_user).post(VERIFY_URL, {"session_id": "cs_test_verify"}, format="json")

    assert response.status_code == 200
    assert response.data["booking_exists"] is True
    assert response.data["booking_id"] == str(booking.id)


def test_verify_is_read_only_across_polls(auth_client, renter_user, monkeypatch):
    patch_session_retrieve(monkeypatch, lambda session_id: paid_session(renter_user.id))
    client = auth_client(renter_user)

    for _ in range(3):
        response = client.post(VERIFY_URL, {"sessionId": "cs_test_verify"}, format="json")
        assert response.status_code == 200

    assert Booking.objects.count() == 0


def test_unpaid_session_is_not_verified(renter_user, monkeypatch):
    patch_session_retrieve(
        monkeypatch,
        lambda session_id: paid_session(renter_user.id, payment_status="unpaid", payment_intent=None),
    )

    result = verify_payment(session_id="cs_test_verify", caller=renter_user)

    assert result.verified is False
    assert result.payment_status == "unpaid"
    assert result.booking_exists is False
    assert result.booking_id is None


def test_other_user_cannot_see_payment(auth_client, renter_user, other_user, monkeypatch):
    patch_session_retrieve(monkeypatch, lambda session_id: paid_session(renter_user.id))

    response = auth_client(other_user).post(VERIFY_URL, {"sessionId": "cs_test_verify"}, format="json")

    assert response.status_code == 403
    assert response.data == {
        "detail": "You do not have access to this payment.",
        "code": "unauthorized",
    }
    assert "amount" not in response.data
    assert "payment_status" not in response.data


def test_session_without_renter_metadata_is_unauthorized(renter_user, monkeypatch):
    patch_session_retrieve(monkeypatch, lambda session_id: paid_session(renter_user.id, metadata={}))

    with pytest.raises(Unauthorized):
        verify_payment(session_id="cs_test_verify", caller=renter_user)


def test_missing_session_id_is_invalid(auth_client, renter_user):
    response = auth_client(renter_user).post(VERIFY_URL, {}, format="json")

    assert response.status_code == 400
    assert response.data["code"] == "invalid_input"


@pytest.mark.parametrize("body", [["cs_test_verify"], "cs_test_verify"])
def test_non_object_body_is_invalid(auth_client, renter_user, body):
    response = auth_client(renter_user).post(VERIFY_URL, body, format="json")

    assert response.status_code == 400
    assert response.data["code"] == "invalid_input"


def test_unknown_session_returns_session_not_found(auth_client, renter_user, monkeypatch):
    def retrieve(session_id):
        raise stripe.InvalidRequestError(
            f"No such checkout.session: '{session_id}'", "id", code="resource_missing"
        )

    patch_session_retrieve(monkeypatch, retrieve)

    response = auth_client(renter_user).post(VERIFY_URL, {"sessionId": "cs_missing"}, format="json")

    assert response.status_code == 502
    assert response.data["code"] == "session_not_found"


def test_provider_timeout_fails_closed(renter_user, monkeypatch):
    def retrieve(session_id):
        raise stripe.APIConnectionError("Request timed out")

    patch_session_retrieve(monkeypatch, retrieve)

    with pytest.raises(ProviderTimeout):
        verify_payment(session_id="cs_test_verify", caller=renter_user)


def test_database_timeout_fails_closed(renter_user, monkeypatch):
    patch_session_retrieve(monkeypatch, lambda session_id: paid_session(renter_user.id))

    def slow_lookup(payment_intent_id):
        raise OperationalError("canceling statement due to statement timeout")

    monkeypatch.setattr(booking_domain, "_find_booking_for_payment", slow_lookup)

    with pytest.raises(ProviderTimeout):
        verify_payment(session_id="cs_test_verify", caller=renter_user)


def test_verify_requires_authentication():
    response = APIClient().post(VERIFY_URL, {"sessionId": "cs_test_verify"}, format="json")
    assert response.status_code == 401


def test_session_not_found_helper_returns_none(monkeypatch, renter_user):
    def retrieve(session_id):
        raise stripe.InvalidRequestError("No such session", "id", code="resource_missing")

    patch_session_retrieve(monkeypatch, retrieve)

    assert stripe_api.retrieve_checkout_session("cs_missing") is None
    with pytest.raises(SessionNotFound):
        verify_payment(session_id="cs_missing", caller=renter_user)

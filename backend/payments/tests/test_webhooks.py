"""Tests for Stripe webhook ingestion and booking materialization."""

from __future__ import annotations

import json
import threading
from datetime import timedelta
from uuid import uuid4

import pytest
import stripe
from django.db import OperationalError, connection
from django.utils import timezone

from bookings import domain as booking_domain
from bookings.models import Booking
from payments import webhooks
from payments.api import stripe_webhook
from payments.exceptions import InvalidInput, MalformedMetadata, PaymentNotCompleted
from payments.webhooks import CheckoutCompleted, IgnoredEvent, ingest_event, parse_event

pytestmark = pytest.mark.django_db

WEBHOOK_URL = "/api/payments/stripe/webhook/"


def post_event(client, monkeypatch, event_payload, *, signature="t=1,v1=test"):
    monkeypatch.setattr(
        stripe.Webhook,
        "construct_event",
        lambda payload, sig_header, secret: event_payload,
    )
    headers = {"HTTP_STRIPE_SIGNATURE": signature} if signature else {}
    return client.post(
        WEBHOOK_URL,
        data=json.dumps(event_payload),
        content_type="application/json",
        **headers,
    )


def test_happy_path_materializes_confirmed_booking(
    api_client, monkeypatch, checkout_completed_event, listing, renter_user
):
    event = checkout_completed_event()

    response = post_event(api_client, monkeypatch, event)

    assert response.status_code == 200
    booking = Booking.objects.get(stripe_payment_intent_id="pi_test_123")
    assert response.data == {"success": True, "booking_id": str(booking.id)}
    assert booking.status == Booking.Status.CONFIRMED
    assert booking.total_amount == 300
    assert booking.listing_id == listing.id
    assert booking.renter_id == renter_user.id
    assert booking.booking_type == Booking.BookingType.DAILY
    assert booking.days == 3


def test_provider_amount_is_authoritative(api_client, monkeypatch, checkout_completed_event):
    response = post_event(api_client, monkeypatch, checkout_completed_event(amount_total=297))

    assert response.status_code == 200
    assert Booking.objects.get().total_amount == 297


def test_duplicate_deliveries_return_same_booking(api_client, monkeypatch, checkout_completed_event):
    event = checkout_completed_event()

    responses = [post_event(api_client, monkeypatch, event) for _ in range(3)]

    assert [r.status_code for r in responses] == [200, 200, 200]
    booking_ids = {r.data["booking_id"] for r in responses}
    assert len(booking_ids) == 1
    assert Booking.objects.filter(stripe_payment_intent_id="pi_test_123").count() == 1


def test_concurrent_insert_race_returns_winner(monkeypatch, checkout_completed_event, booking_factory):
    winner = booking_factory(stripe_payment_intent_id="pi_race")
    # The losing delivery misses the winner on its first read and hits the unique constraint.
    monkeypatch.setattr(booking_domain, "_find_booking_for_payment", lambda payment_intent_id: None)

    body = ingest_event(
        checkout_completed_event(payment_intent="pi_race"),
        today=timezone.localdate(),
    )

    assert body == {"success": True, "booking_id": str(winner.id)}
    assert Booking.objects.filter(stripe_payment_intent_id="pi_race").count() == 1


@pytest.mark.django_db(transaction=True)
@pytest.mark.skipif(connection.vendor != "postgresql", reason="needs concurrent database writers")
def test_concurrent_deliveries_materialize_one_booking(monkeypatch, checkout_completed_event):
    event = checkout_completed_event(payment_intent="pi_concurrent")
    barrier = threading.Barrier(2)
    find_booking = booking_domain._find_booking_for_payment

    def find_after_both_arrive(payment_intent_id):
        found = find_booking(payment_intent_id)
        barrier.wait(timeout=5)
        return found

    monkeypatch.setattr(booking_domain, "_find_booking_for_payment", find_after_both_arrive)
    results, errors = [], []

    def deliver():
        try:
            results.append(ingest_event(event, today=timezone.localdate()))
        except Exception as exc:
            errors.append(exc)
        finally:
            connection.close()

    threads = [threading.Thread(target=deliver) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert errors == []
    assert len(results) == 2
    assert len({body["booking_id"] for body in results}) == 1
    assert Booking.objects.filter(stripe_payment_intent_id="pi_concurrent").count() == 1


def test_database_timeout_returns_provider_timeout(api_client, monkeypatch, checkout_completed_event):
    def timing_out_materialize(**kwargs):
        raise OperationalError("canceling statement due to statement timeout")

    monkeypatch.setattr(webhooks, "materialize_booking", timing_out_materialize)

    response = post_event(api_client, monkeypatch, checkout_completed_event())

    assert response.status_code == 504
    assert response.data == {
        "detail": "Temporary payment issue, please retry.",
        "code": "provider_timeout",
    }
    assert Booking.objects.count() == 0


def test_webhook_is_exempt_from_throttling():
    assert stripe_webhook.cls.throttle_classes == []


def test_expanded_payment_intent_object_is_accepted(checkout_completed_event):
    event = checkout_completed_event(payment_intent={"id": "pi_expanded", "object": "payment_intent"})

    body = ingest_event(event, today=timezone.localdate())

    assert Booking.objects.get(pk=body["booking_id"]).stripe_payment_intent_id == "pi_expanded"


def test_other_event_types_are_acknowledged(api_client, monkeypatch):
    event = {"id": "evt_other", "type": "payment_intent.succeeded", "data": {"object": {}}}

    response = post_event(api_client, monkeypatch, event)

    assert response.status_code == 200
    assert response.data == {"received": True}
    assert Booking.objects.count() == 0


def test_foreign_checkout_kind_is_ignored(checkout_completed_event):
    event = checkout_completed_event(metadata={"kind": "gift_card"})

    assert isinstance(parse_event(event), IgnoredEvent)
    assert ingest_event(event, today=timezone.localdate()) == {"received": True}


def test_parse_event_returns_checkout_completed(checkout_completed_event):
    parsed = parse_event(checkout_completed_event())

    assert isinstance(parsed, CheckoutCompleted)
    assert parsed.session_id == "cs_test_123"
    assert parsed.payment_intent_id == "pi_test_123"
    assert parsed.payment_status == "paid"
    assert parsed.amount_total == 300
    assert set(parsed.metadata) == {"listing_id", "renter_id", "start_date", "end_date", "booking_type"}


def test_missing_signature_header_is_rejected(api_client, monkeypatch, checkout_completed_event):
    response = post_event(api_client, monkeypatch, checkout_completed_event(), signature="")

    assert response.status_code == 400
    assert response.data["code"] == "invalid_signature"
    assert Booking.objects.count() == 0


def test_bad_signature_is_rejected(api_client, monkeypatch):
    def raise_signature_error(payload, sig_header, secret):
        raise stripe.SignatureVerificationError("No signatures found", sig_header)

    monkeypatch.setattr(stripe.Webhook, "construct_event", raise_signature_error)
    response = api_client.post(
        WEBHOOK_URL,
        data="{}",
        content_type="application/json",
        HTTP_STRIPE_SIGNATURE="t=1,v1=forged",
    )

    assert response.status_code == 400
    assert response.data == {"detail": "Invalid signature.", "code": "invalid_signature"}


def test_unparseable_payload_is_rejected(api_client, monkeypatch):
    def raise_value_error(payload, sig_header, secret):
        raise ValueError("Invalid payload")

    monkeypatch.setattr(stripe.Webhook, "construct_event", raise_value_error)
    response = api_client.post(
        WEBHOOK_URL, data="not json", content_type="application/json", HTTP_STRIPE_SIGNATURE="sig"
    )

    assert response.status_code == 400
    assert response.data["code"] == "invalid_signature"


def test_missing_webhook_secret_is_a_server_error(
    api_client, monkeypatch, settings, checkout_completed_event
):
    settings.STRIPE_WEBHOOK_SECRET = ""

    response = post_event(api_client, monkeypatch, checkout_completed_event())

    assert response.status_code == 500
    assert response.data["code"] == "configuration_error"


@pytest.mark.parametrize(
    "metadata",
    [
        {"listing_id": None},
        {"renter_id": None},
        {"start_date": None},
        {"booking_type": None},
        {"listing_id": "not-a-uuid"},
        {"renter_id": "abc"},
        {"end_date": "05/03/2030"},
        {"booking_type": "hourly"},
    ],
)
def test_malformed_metadata_is_rejected(api_client, monkeypatch, checkout_completed_event, metadata):
    response = post_event(api_client, monkeypatch, checkout_completed_event(metadata=metadata))

    assert response.status_code == 400
    assert response.data["code"] == "malformed_metadata"
    assert Booking.objects.count() == 0


def test_unknown_listing_or_renter_is_malformed(checkout_completed_event):
    with pytest.raises(MalformedMetadata):
        ingest_event(
            checkout_completed_event(metadata={"listing_id": str(uuid4())}),
            today=timezone.localdate(),
        )
    with pytest.raises(MalformedMetadata):
        ingest_event(
            checkout_completed_event(metadata={"renter_id": "987654"}),
            today=timezone.localdate(),
        )


def test_missing_payment_intent_is_malformed(checkout_completed_event):
    with pytest.raises(MalformedMetadata):
        ingest_event(checkout_completed_event(payment_intent=None), today=timezone.localdate())


def test_unpaid_checkout_is_not_materialized(api_client, monkeypatch, checkout_completed_event):
    event = checkout_completed_event(payment_status="unpaid")

    response = post_event(api_client, monkeypatch, event)

    assert response.status_code == 400
    assert response.data["code"] == "payment_not_completed"
    assert Booking.objects.count() == 0
    with pytest.raises(PaymentNotCompleted):
        ingest_event(event, today=timezone.localdate())


@pytest.mark.parametrize(
    ("start_offset", "end_offset"),
    [
        (-1, 2),
        (3, 3),
        (4, 2),
    ],
)
def test_past_or_inverted_dates_fail_materialization(checkout_completed_event, start_offset, end_offset):
    today = timezone.localdate()
    event = checkout_completed_event(
        metadata={
            "start_date": (today + timedelta(days=start_offset)).isoformat(),
            "end_date": (today + timedelta(days=end_offset)).isoformat(),
        }
    )

    with pytest.raises(InvalidInput):
        ingest_event(event, today=today)
    assert Booking.objects.count() == 0


def test_stale_session_replayed_after_start_is_rejected(checkout_completed_event):
    event = checkout_completed_event()
    later = timezone.localdate() + timedelta(days=5)

    with pytest.raises(InvalidInput):
        ingest_event(event, today=later)


def test_replay_after_materialization_skips_date_check(checkout_completed_event):
    event = checkout_completed_event()
    first = ingest_event(event, today=timezone.localdate())

    replay = ingest_event(event, today=timezone.localdate() + timedelta(days=30))

    assert replay == first

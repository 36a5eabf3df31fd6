"""Shared fixtures for bookings and payments tests."""

from __future__ import annotations

from datetime import timedelta
from typing import Callable

import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone

from bookings.models import Booking
from listings.models import Listing
from payments.models import OwnerPayoutAccount

User = get_user_model()


def _create_user(*, username: str, user_type: str) -> User:
    return User.objects.create_user(
        username=username,
        email=f"{username}@shearplace.test",
        password="testpass",
        user_type=user_type,
    )


def _mark_onboarded(user: User, suffix: str) -> OwnerPayoutAccount:
    return OwnerPayoutAccount.objects.create(
        user=user,
        stripe_account_id=f"acct_test_{suffix}",
        details_submitted=True,
        payouts_enabled=True,
        charges_enabled=True,
        is_fully_onboarded=True,
        requirements_due={
            "currently_due": [],
            "eventually_due": [],
            "past_due": [],
            "disabled_reason": "",
        },
        last_synced_at=timezone.now(),
    )


@pytest.fixture
def owner_user():
    user = _create_user(username="owner", user_type=User.UserType.SALON_OWNER)
    _mark_onboarded(user, "owner")
    return user


@pytest.fixture
def renter_user():
    return _create_user(username="renter", user_type=User.UserType.RENTER)


@pytest.fixture
def other_user():
    return _create_user(username="other", user_type=User.UserType.RENTER)


@pytest.fixture
def listing(owner_user):
    return Listing.objects.create(
        owner=owner_user,
        title="Corner styling chair",
        description="Sunny chair by the window with a backwash sink.",
        space_type=Listing.SpaceType.CHAIR,
        city="Austin",
        state="TX",
        images=["https://cdn.shearplace.test/chair.jpg"],
        price_per_day=100,
        price_per_week=600,
        available=True,
    )


@pytest.fixture
def booking_factory(listing, renter_user) -> Callable[..., Booking]:
    def _create(**overrides) -> Booking:
        start = overrides.pop("start_date", timezone.localdate() + timedelta(days=1))
        end = overrides.pop("end_date", start + timedelta(days=3))
        defaults = {
            "listing": listing,
            "renter": renter_user,
            "start_date": start,
            "end_date": end,
            "total_amount": 300,
            "booking_type": Booking.BookingType.DAILY,
            "status": Booking.Status.CONFIRMED,
        }
        defaults.update(overrides)
        return Booking.objects.create(**defaults)

    return _create


@pytest.fixture
def checkout_completed_event(listing, renter_user) -> Callable[..., dict]:
    """Build a ``checkout.session.completed`` payload as Stripe would send it."""

    def _build(*, payment_intent="pi_test_123", metadata=None, **session_overrides) -> dict:
        start = timezone.localdate() + timedelta(days=1)
        session_metadata = {
            "listing_id": str(listing.id),
            "renter_id": str(renter_user.id),
            "start_date": start.isoformat(),
            "end_date": (start + timedelta(days=3)).isoformat(),
            "booking_type": "daily",
            "platform_fee": "30",
            "owner_payout": "270",
            "kind": "booking_checkout",
            "env": "dev",
        }
        if metadata is not None:
            session_metadata.update(metadata)
        session = {
            "id": "cs_test_123",
            "object": "checkout.session",
            "payment_status": "paid",
            "amount_total": 300,
            "payment_intent": payment_intent,
            "metadata": {k: v for k, v in session_metadata.items() if v is not None},
        }
        session.update(session_overrides)
        return {
            "id": "evt_test_123",
            "type": "checkout.session.completed",
            "data": {"object": session},
        }

    return _build

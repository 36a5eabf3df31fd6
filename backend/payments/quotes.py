"""Booking quote parsing and server-side price validation."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Mapping
from uuid import UUID

from django.conf import settings

from listings.services import ListingSnapshot

from .exceptions import AmountMismatch, InvalidInput, ListingUnavailable, OwnerNotOnboarded

BOOKING_TYPES = ("daily", "weekly")
LISTING_ID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
FIELD_ALIASES = {
    "listing_id": ("listingId", "listing_id"),
    "start_date": ("startDate", "start_date"),
    "end_date": ("endDate", "end_date"),
    "total_amount": ("totalAmount", "total_amount"),
    "booking_type": ("bookingType", "booking_type"),
}


@dataclass(frozen=True)
class BookingRequest:
    listing_id: UUID
    start_date: date
    end_date: date
    total_amount: int
    booking_type: str

    @property
    def duration_days(self) -> int:
        return (self.end_date - self.start_date).days


@dataclass(frozen=True)
class Quote:
    """A booking request whose amount matched the server-side price."""

    request: BookingRequest
    duration_days: int
    expected_amount: int
    tolerance: int
    listing: ListingSnapshot


def _max_amount() -> int:
    return int(getattr(settings, "BOOKING_MAX_AMOUNT", 1_000_000))


def _max_days() -> int:
    return int(getattr(settings, "BOOKING_MAX_DAYS", 365))


def _field(data: Mapping[str, Any], name: str) -> Any:
    for key in FIELD_ALIASES[name]:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


def parse_iso_date(value: Any, label: str) -> date:
    """Parse a strict ``YYYY-MM-DD`` string."""
    if isinstance(value, str) and re.fullmatch(r"\d{4}-\d{2}-\d{2}", value):
        try:
            return date.fromisoformat(value)
        except ValueError:
            pass
    raise InvalidInput(f"Invalid {label}: expected YYYY-MM-DD.")


def check_date_range(start_date: date, end_date: date, *, today: date) -> int:
    """Validate a booking window and return its length in days."""
    if start_date >= end_date:
        raise InvalidInput("End date must be after start date.")
    if start_date < today:
        raise InvalidInput("Start date cannot be in the past.")
    duration = (end_date - start_date).days
    if duration > _max_days():
        raise InvalidInput(f"Bookings cannot exceed {_max_days()} days.")
    return duration


def parse_booking_request(data: Mapping[str, Any], *, today: date) -> BookingRequest:
    """
    Validate the raw create-payment body and return a typed request.

    Raises InvalidInput naming the first problem found.
    """
    if not isinstance(data, Mapping):
        raise InvalidInput("Request body must be a JSON object.")

    values = {name: _field(data, name) for name in FIELD_ALIASES}
    missing = [FIELD_ALIASES[name][0] for name, value in values.items() if value is None]
    if missing:
        raise InvalidInput(f"Missing required fields: {', '.join(missing)}")

    raw_listing_id = values["listing_id"]
    if not isinstance(raw_listing_id, str) or not LISTING_ID_RE.match(raw_listing_id):
        raise InvalidInput("Invalid listing ID format.")

    amount = values["total_amount"]
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidInput("Total amount must be an integer number of cents.")
    if amount <= 0 or amount > _max_amount():
        raise InvalidInput("Invalid amount.")

    start_date = parse_iso_date(values["start_date"], "start date")
    end_date = parse_iso_date(values["end_date"], "end date")
    check_date_range(start_date, end_date, today=today)

    booking_type = values["booking_type"]
    if booking_type not in BOOKING_TYPES:
        raise InvalidInput("Booking type must be 'daily' or 'weekly'.")

    return BookingRequest(
        listing_id=UUID(raw_listing_id),
        start_date=start_date,
        end_date=end_date,
        total_amount=amount,
        booking_type=booking_type,
    )


def expected_amount(listing: ListingSnapshot, duration_days: int, booking_type: str) -> int:
    """Price a stay, blending whole weeks at the weekly rate when requested."""
    if booking_type == "weekly" and listing.price_per_week and duration_days >= 7:
        weeks, days = divmod(duration_days, 7)
        return weeks * listing.price_per_week + days * listing.price_per_day
    return duration_days * listing.price_per_day


def tolerance_for(expected: int) -> int:
    # Integer floor of 1%, never below one minor unit.
    return max(1, expected // 100)


def validate_quote(request: BookingRequest, listing: ListingSnapshot) -> Quote:
    """Check the client's amount and the listing's business preconditions."""
    if not listing.available:
        raise ListingUnavailable()

    duration = request.duration_days
    expected = expected_amount(listing, duration, request.booking_type)
    tolerance = tolerance_for(expected)
    if abs(request.total_amount - expected) > tolerance:
        raise AmountMismatch(expected_amount=expected, received_amount=request.total_amount)

    if listing.owner is None or not listing.owner.can_accept_payments:
        raise OwnerNotOnboarded()

    return Quote(
        request=request,
        duration_days=duration,
        expected_amount=expected,
        tolerance=tolerance,
        listing=listing,
    )

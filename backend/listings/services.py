"""Read-only listing snapshots consumed by the payment flow."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from .models import Listing


@dataclass(frozen=True)
class OwnerAccountSnapshot:
    connect_account_id: str
    onboarded: bool
    charges_enabled: bool

    @property
    def can_accept_payments(self) -> bool:
        return bool(self.connect_account_id and self.onboarded and self.charges_enabled)


@dataclass(frozen=True)
class ListingSnapshot:
    """Immutable view of a listing and its owner's payout account at quote time."""

    id: UUID
    title: str
    price_per_day: int
    price_per_week: int | None
    available: bool
    owner_id: int
    owner: OwnerAccountSnapshot | None
    image_url: str = ""


def snapshot_listing(listing: Listing) -> ListingSnapshot:
    payout_account = getattr(listing.owner, "payout_account", None)
    owner_snapshot = None
    if payout_account is not None:
        owner_snapshot = OwnerAccountSnapshot(
            connect_account_id=payout_account.stripe_account_id or "",
            onboarded=bool(payout_account.is_fully_onboarded),
            charges_enabled=bool(payout_account.charges_enabled),
        )
    return ListingSnapshot(
        id=listing.id,
        title=listing.title,
        price_per_day=listing.price_per_day,
        price_per_week=listing.price_per_week,
        available=listing.available,
        owner_id=listing.owner_id,
        owner=owner_snapshot,
        image_url=listing.primary_image_url,
    )


def get_listing_snapshot(listing_id: UUID | str) -> ListingSnapshot | None:
    """Return a snapshot for the listing id, or None when no such listing exists."""
    listing = (
        Listing.objects.select_related("owner", "owner__payout_account")
        .filter(pk=listing_id)
        .first()
    )
    if listing is None:
        return None
    return snapshot_listing(listing)

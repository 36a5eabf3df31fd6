"""Serializers for booking-related API endpoints."""

from __future__ import annotations

from rest_framework import serializers

from .models import Booking


class BookingSerializer(serializers.ModelSerializer):
    listing_title = serializers.CharField(source="listing.title", read_only=True)
    listing_image = serializers.CharField(source="listing.primary_image_url", read_only=True)
    owner_id = serializers.IntegerField(source="listing.owner_id", read_only=True)
    days = serializers.IntegerField(read_only=True)

    class Meta:
        model = Booking
        fields = [
            "id",
            "listing",
            "listing_title",
            "listing_image",
            "owner_id",
            "renter",
            "start_date",
            "end_date",
            "days",
            "total_amount",
            "booking_type",
            "status",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

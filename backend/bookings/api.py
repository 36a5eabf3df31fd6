"""Booking list, detail and cancellation endpoints for renters and salon owners."""

from __future__ import annotations

import logging

from django.core.exceptions import ValidationError
from django.db.models import Q
from rest_framework import mixins, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from .domain import mark_cancelled
from .filters import BookingFilter
from .models import Booking
from .serializers import BookingSerializer

logger = logging.getLogger(__name__)


class IsBookingParticipant(permissions.BasePermission):
    """Allow access only to the renter or the listing's owner."""

    def has_object_permission(self, request, view, obj: Booking) -> bool:
        user_id = getattr(request.user, "id", None)
        return user_id in (obj.listing.owner_id, obj.renter_id)


class BookingViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Read access and cancellation for bookings; creation happens through payments."""

    serializer_class = BookingSerializer
    permission_classes = (permissions.IsAuthenticated, IsBookingParticipant)
    filterset_class = BookingFilter
    ordering_fields = ["created_at", "start_date"]

    def get_queryset(self):
        """Restrict bookings to the authenticated participant."""
        user = self.request.user
        if not user.is_authenticated:
            return Booking.objects.none()
        return (
            Booking.objects.select_related("listing", "listing__owner", "renter")
            .filter(Q(listing__owner=user) | Q(renter=user))
            .order_by("-created_at")
        )

    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request, *args, **kwargs):
        """Cancel a pending or confirmed booking (owner or renter)."""
        booking: Booking = self.get_object()
        try:
            mark_cancelled(booking)
        except ValidationError as exc:
            return Response(exc.message_dict, status=status.HTTP_400_BAD_REQUEST)

        logger.info(
            "bookings: booking cancelled",
            extra={"booking_id": str(booking.pk), "user_id": request.user.id},
        )
        return Response(self.get_serializer(booking).data)

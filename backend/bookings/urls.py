"""Routes for renter and owner booking views; creation lives under payments."""

from rest_framework.routers import DefaultRouter

from .api import BookingViewSet

app_name = "bookings"

router = DefaultRouter()
router.register("", BookingViewSet, basename="booking")

urlpatterns = router.urls

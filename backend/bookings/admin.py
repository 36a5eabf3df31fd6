from django.contrib import admin

from .models import Booking


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "listing",
        "renter",
        "start_date",
        "end_date",
        "total_amount",
        "status",
        "stripe_payment_intent_id",
    )
    list_filter = ("status", "booking_type")
    search_fields = ("stripe_payment_intent_id", "renter__username", "listing__title")
    readonly_fields = ("stripe_payment_intent_id", "total_amount", "created_at", "updated_at")

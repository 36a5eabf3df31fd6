from django.urls import path

from .api import (
    connect_onboarding,
    connect_status,
    create_booking_payment,
    stripe_webhook,
    verify_payment_view,
)

app_name = "payments"

urlpatterns = [
    path("bookings/checkout/", create_booking_payment, name="booking_checkout"),
    path("verify/", verify_payment_view, name="verify_payment"),
    path("stripe/webhook/", stripe_webhook, name="stripe_webhook"),
    path("connect/onboarding/", connect_onboarding, name="connect_onboarding"),
    path("connect/status/", connect_status, name="connect_status"),
]

from django.contrib import admin

from .models import Listing


@admin.register(Listing)
class ListingAdmin(admin.ModelAdmin):
    list_display = ("title", "owner", "space_type", "price_per_day", "price_per_week", "available")
    list_filter = ("space_type", "available")
    search_fields = ("title", "city", "owner__username")

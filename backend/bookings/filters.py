import django_filters as filters

from .models import Booking


class BookingFilter(filters.FilterSet):
    status = filters.CharFilter(field_name="status", lookup_expr="iexact")
    role = filters.ChoiceFilter(
        choices=(("renter", "renter"), ("owner", "owner")),
        method="filter_role",
    )
    start_date_after = filters.DateFilter(field_name="start_date", lookup_expr="gte")

    class Meta:
        model = Booking
        fields = ["status", "role", "start_date_after"]

    def filter_role(self, queryset, name, value):
        user = getattr(self.request, "user", None)
        if not value or user is None:
            return queryset
        if value == "renter":
            return queryset.filter(renter=user)
        return queryset.filter(listing__owner=user)

import django_filters

from modules.orders.models import Order


class OrderFilter(django_filters.FilterSet):
    status = django_filters.CharFilter(field_name="status", lookup_expr="iexact")
    merchant = django_filters.UUIDFilter(field_name="merchant_id")
    start_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__gte")
    end_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__lte")

    class Meta:
        model = Order
        fields = [
            "status",
            "merchant",
            "start_date",
            "end_date",
        ]

import django_filters

from modules.orders.constants import OrderStatus
from modules.orders.models import ArchivedOrder


class ArchivedOrderFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(field_name="status", choices=OrderStatus.choices)
    business = django_filters.UUIDFilter(field_name="business_id")
    client = django_filters.CharFilter(field_name="client_id")
    start_date = django_filters.DateFilter(field_name="order_created_at", lookup_expr="date__gte")
    end_date = django_filters.DateFilter(field_name="order_created_at", lookup_expr="date__lte")
    min_total = django_filters.NumberFilter(field_name="total_price", lookup_expr="gte")
    max_total = django_filters.NumberFilter(field_name="total_price", lookup_expr="lte")

    class Meta:
        model = ArchivedOrder
        fields = ["status", "business", "client", "start_date", "end_date", "min_total", "max_total"]

import django_filters
from django.db.models import Q

from modules.orders.constants import OrderStatus, PaymentStatus
from modules.orders.models import Order


class OrderFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=OrderStatus.choices)
    payment_status = django_filters.ChoiceFilter(choices=PaymentStatus.choices)
    from_date = django_filters.DateFilter(field_name="order_date", lookup_expr="date__gte")
    to_date = django_filters.DateFilter(field_name="order_date", lookup_expr="date__lte")
    user_id = django_filters.UUIDFilter(field_name="user_id")
    assigned_driver_id = django_filters.UUIDFilter(field_name="assigned_driver_id")
    search = django_filters.CharFilter(method="filter_search")

    class Meta:
        model = Order
        fields = [
            "status",
            "payment_status",
            "from_date",
            "to_date",
            "user_id",
            "assigned_driver_id",
            "search",
        ]

    def filter_search(self, queryset, name, value):
        """Match order id, address, notes or the customer's contact."""
        term = value.strip()
        if not term:
            return queryset
        return queryset.filter(
            Q(id__icontains=term)
            | Q(delivery_address__icontains=term)
            | Q(notes__icontains=term)
            | Q(user__name__icontains=term)
            | Q(user__email__icontains=term)
            | Q(user__phone__icontains=term)
        )

import django_filters
from django.db.models import Q
from .models import Order, OrderStatus, PaymentStatus


class OrderFilter(django_filters.FilterSet):
    """Back-office order search"""
    search = django_filters.CharFilter(method='filter_search')
    order_status = django_filters.ChoiceFilter(choices=OrderStatus.CHOICES)
    payment_status = django_filters.ChoiceFilter(choices=PaymentStatus.CHOICES)
    is_guest = django_filters.BooleanFilter()

    class Meta:
        model = Order
        fields = ['search', 'order_status', 'payment_status', 'is_guest']

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(order_number__icontains=value) |
            Q(guest_email__icontains=value) |
            Q(shipping_address__email__icontains=value) |
            Q(shipping_address__first_name__icontains=value) |
            Q(shipping_address__last_name__icontains=value)
        )

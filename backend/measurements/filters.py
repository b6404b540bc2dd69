import django_filters
from django.db.models import Q
from .models import MeasurementOrder, MeasurementOrderStatus


class MeasurementOrderFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search')
    status = django_filters.ChoiceFilter(choices=MeasurementOrderStatus.CHOICES)
    is_guest = django_filters.BooleanFilter()

    class Meta:
        model = MeasurementOrder
        fields = ['search', 'status', 'is_guest']

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(order_number__icontains=value) |
            Q(customer_name__icontains=value) |
            Q(customer_email__icontains=value) |
            Q(guest_email__icontains=value)
        )

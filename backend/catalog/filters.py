import django_filters
from django.db.models import Q, Min
from .models import Product


class ProductFilter(django_filters.FilterSet):
    """Storefront product filters; variant filters match when any variant qualifies"""
    search = django_filters.CharFilter(method='filter_search')
    category = django_filters.CharFilter(field_name='category')
    featured = django_filters.BooleanFilter(field_name='is_featured')
    in_stock = django_filters.BooleanFilter(field_name='variants__in_stock', distinct=True)
    size = django_filters.CharFilter(field_name='variants__size', distinct=True)
    min_price = django_filters.NumberFilter(field_name='variants__price', lookup_expr='gte', distinct=True)
    max_price = django_filters.NumberFilter(field_name='variants__price', lookup_expr='lte', distinct=True)
    sort_by = django_filters.CharFilter(method='filter_sort')

    class Meta:
        model = Product
        fields = ['search', 'category', 'featured', 'in_stock', 'size', 'min_price', 'max_price']

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(Q(name__icontains=value) | Q(description__icontains=value))

    def filter_sort(self, queryset, name, value):
        if value in ('price-low', 'price-high'):
            queryset = queryset.annotate(lowest_price=Min('variants__price'))
            return queryset.order_by('lowest_price' if value == 'price-low' else '-lowest_price', 'name')
        if value == 'newest':
            return queryset.order_by('-created_at')
        return queryset.order_by('name')

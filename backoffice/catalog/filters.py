import django_filters
from django.db.models import F, Q
from .models import Product


class ProductFilter(django_filters.FilterSet):
    """Filter for Product model using django-filter"""

    # Searches across name and SKU (product and variant)
    search = django_filters.CharFilter(method='filter_search', label='Search')

    category = django_filters.NumberFilter(field_name='category_id', lookup_expr='exact')
    brand = django_filters.NumberFilter(field_name='brand_id', lookup_expr='exact')
    is_active = django_filters.BooleanFilter(field_name='is_active')
    in_stock = django_filters.BooleanFilter(field_name='in_stock')
    low_stock = django_filters.BooleanFilter(method='filter_low_stock', label='Low Stock')

    class Meta:
        model = Product
        fields = ['search', 'category', 'brand', 'is_active', 'in_stock', 'low_stock']

    def filter_search(self, queryset, name, value):
        """Match every word of the search string against name or SKU"""
        words = value.split() if value else []
        for word in words:
            queryset = queryset.filter(
                Q(name__icontains=word) |
                Q(sku__icontains=word) |
                Q(variants__sku__icontains=word)
            )
        return queryset.distinct() if words else queryset

    def filter_low_stock(self, queryset, name, value):
        if value is None:
            return queryset
        low = Q(total_stock__lte=F('low_stock_threshold'))
        return queryset.filter(low) if value else queryset.exclude(low)

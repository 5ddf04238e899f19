from django.urls import path
from .views import (
    category_list_create, category_detail,
    brand_list_create, brand_detail,
    size_list_create, size_detail,
    product_list_create, product_detail,
    product_variants, product_stock,
    product_variant_list_create, product_variant_detail,
)

urlpatterns = [
    # Category endpoints
    path('categories/', category_list_create, name='category-list-create'),
    path('categories/<int:pk>/', category_detail, name='category-detail'),

    # Brand endpoints
    path('brands/', brand_list_create, name='brand-list-create'),
    path('brands/<int:pk>/', brand_detail, name='brand-detail'),

    # Size endpoints
    path('sizes/', size_list_create, name='size-list-create'),
    path('sizes/<int:pk>/', size_detail, name='size-detail'),

    # Product endpoints
    path('products/', product_list_create, name='product-list-create'),
    path('products/<int:pk>/', product_detail, name='product-detail'),
    path('products/<int:pk>/variants/', product_variants, name='product-variants'),
    path('products/<int:pk>/stock/', product_stock, name='product-stock'),

    # ProductVariant endpoints
    path('variants/', product_variant_list_create, name='product-variant-list-create'),
    path('variants/<int:pk>/', product_variant_detail, name='product-variant-detail'),
]

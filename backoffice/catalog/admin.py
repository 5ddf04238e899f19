from django.contrib import admin
from .models import Category, Brand, Size, Product, ProductVariant


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'parent', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name']
    ordering = ['name']


@admin.register(Brand)
class BrandAdmin(admin.ModelAdmin):
    list_display = ['name', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name']
    ordering = ['name']


@admin.register(Size)
class SizeAdmin(admin.ModelAdmin):
    list_display = ['name', 'sort_order']
    ordering = ['sort_order', 'name']


class ProductVariantInline(admin.TabularInline):
    model = ProductVariant
    extra = 0
    filter_horizontal = ['sizes']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'sku', 'category', 'brand', 'selling_price', 'total_stock', 'in_stock', 'is_active']
    list_filter = ['is_active', 'in_stock', 'category', 'brand']
    search_fields = ['name', 'sku']
    ordering = ['name']
    readonly_fields = ['total_stock', 'in_stock', 'created_at', 'updated_at']
    inlines = [ProductVariantInline]


@admin.register(ProductVariant)
class ProductVariantAdmin(admin.ModelAdmin):
    list_display = ['product', 'name', 'sku', 'is_active']
    list_filter = ['is_active']
    search_fields = ['name', 'sku', 'product__name']
    filter_horizontal = ['sizes']

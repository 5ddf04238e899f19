from django.contrib import admin
from .models import Combo, ComboItem, Coupon, CouponUsage, Promotion


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'discount_type', 'discount_value', 'usage_count', 'usage_limit', 'status', 'end_date', 'is_deleted']
    list_filter = ['status', 'discount_type', 'is_deleted']
    search_fields = ['code', 'name']
    ordering = ['-created_at']
    readonly_fields = ['usage_count', 'created_at', 'updated_at']
    filter_horizontal = ['applicable_products', 'applicable_categories', 'excluded_products']


@admin.register(CouponUsage)
class CouponUsageAdmin(admin.ModelAdmin):
    list_display = ['coupon', 'customer', 'order', 'discount_applied', 'used_at']
    search_fields = ['coupon__code', 'customer']
    ordering = ['-used_at']


@admin.register(Promotion)
class PromotionAdmin(admin.ModelAdmin):
    list_display = ['name', 'promotion_type', 'discount_value', 'priority', 'status', 'start_date', 'end_date']
    list_filter = ['status', 'promotion_type']
    search_fields = ['name']
    ordering = ['-priority', '-created_at']


class ComboItemInline(admin.TabularInline):
    model = ComboItem
    extra = 0


@admin.register(Combo)
class ComboAdmin(admin.ModelAdmin):
    list_display = ['name', 'combo_type', 'original_price', 'combo_price', 'status', 'start_date', 'end_date']
    list_filter = ['status', 'combo_type']
    search_fields = ['name']
    ordering = ['-created_at']
    inlines = [ComboItemInline]
    readonly_fields = ['original_price', 'created_at', 'updated_at']

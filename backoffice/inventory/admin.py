from django.contrib import admin
from .models import InventoryItem, InventoryAdjustment, AdjustmentItem


@admin.register(InventoryItem)
class InventoryItemAdmin(admin.ModelAdmin):
    list_display = ['product', 'variant', 'size', 'location', 'quantity', 'updated_at']
    list_filter = ['location']
    search_fields = ['product__name', 'product__sku', 'variant__name']
    ordering = ['product__name', 'location__name']
    readonly_fields = ['created_at', 'updated_at']


class AdjustmentItemInline(admin.TabularInline):
    model = AdjustmentItem
    extra = 0
    readonly_fields = ['applied_quantity']


@admin.register(InventoryAdjustment)
class InventoryAdjustmentAdmin(admin.ModelAdmin):
    list_display = ['adjustment_number', 'adjustment_type', 'reason', 'adjusted_by', 'created_at']
    list_filter = ['adjustment_type', 'created_at']
    search_fields = ['adjustment_number', 'reason', 'notes']
    ordering = ['-created_at']
    readonly_fields = ['adjustment_number', 'created_at', 'updated_at']
    inlines = [AdjustmentItemInline]

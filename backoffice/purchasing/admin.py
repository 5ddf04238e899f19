from django.contrib import admin
from .models import PurchaseOrder, PurchaseOrderItem, GoodsReceivedNote, GRNItem


class PurchaseOrderItemInline(admin.TabularInline):
    model = PurchaseOrderItem
    extra = 0
    fields = ['product', 'variant', 'size', 'quantity', 'received_quantity', 'unit_cost', 'total_cost']
    readonly_fields = ['received_quantity', 'total_cost']


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(admin.ModelAdmin):
    list_display = ['po_number', 'supplier', 'status', 'order_date', 'expected_date', 'total_amount', 'created_by']
    list_filter = ['status', 'supplier', 'order_date']
    search_fields = ['po_number', 'notes', 'supplier__name']
    ordering = ['-created_at']
    inlines = [PurchaseOrderItemInline]
    readonly_fields = ['po_number', 'total_amount', 'created_at', 'updated_at']


class GRNItemInline(admin.TabularInline):
    model = GRNItem
    extra = 0
    readonly_fields = ['po_item', 'product', 'variant', 'size', 'ordered_quantity', 'received_quantity',
                       'unit_cost', 'total_cost', 'location']


@admin.register(GoodsReceivedNote)
class GoodsReceivedNoteAdmin(admin.ModelAdmin):
    list_display = ['grn_number', 'purchase_order', 'supplier', 'received_date', 'total_amount', 'received_by']
    list_filter = ['received_date', 'supplier']
    search_fields = ['grn_number', 'purchase_order__po_number']
    ordering = ['-created_at']
    inlines = [GRNItemInline]
    readonly_fields = ['grn_number', 'total_amount', 'created_at']

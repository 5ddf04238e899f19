from django.contrib import admin
from .models import Order, OrderItem, OrderPayment, PaymentMethod


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['product', 'variant', 'size', 'name', 'quantity', 'price', 'discount', 'buying_price']


class OrderPaymentInline(admin.TabularInline):
    model = OrderPayment
    extra = 0


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'source', 'customer_name', 'status', 'payment_status', 'total', 'restocked', 'created_at']
    list_filter = ['source', 'status', 'payment_status', 'restocked']
    search_fields = ['order_number', 'customer_name', 'customer_email', 'customer_phone']
    ordering = ['-created_at']
    inlines = [OrderItemInline, OrderPaymentInline]
    readonly_fields = ['order_number', 'total', 'restocked', 'restocked_at', 'created_at', 'updated_at']


@admin.register(PaymentMethod)
class PaymentMethodAdmin(admin.ModelAdmin):
    list_display = ['name', 'fee', 'status', 'available', 'updated_at']
    list_filter = ['status']
    search_fields = ['name']

from django.contrib import admin
from .models import StockLocation


@admin.register(StockLocation)
class StockLocationAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'location_type', 'phone', 'is_active', 'created_at']
    list_filter = ['location_type', 'is_active']
    search_fields = ['name', 'code']
    ordering = ['name']

from rest_framework import serializers
from .models import StockLocation


class StockLocationSerializer(serializers.ModelSerializer):
    class Meta:
        model = StockLocation
        fields = ['id', 'name', 'code', 'location_type', 'address', 'phone', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

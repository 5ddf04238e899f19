from rest_framework import serializers
from backoffice.catalog.models import Product, ProductVariant
from backoffice.locations.models import StockLocation
from .models import InventoryItem, InventoryAdjustment, AdjustmentItem


def _check_variant(attrs):
    variant = attrs.get('variant')
    if variant is not None and variant.product_id != attrs['product'].id:
        raise serializers.ValidationError({'variant': 'Variant does not belong to the selected product'})


class InventoryItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    product_sku = serializers.CharField(source='product.sku', read_only=True)
    variant_name = serializers.CharField(source='variant.name', read_only=True, default=None)
    location_name = serializers.CharField(source='location.name', read_only=True)

    class Meta:
        model = InventoryItem
        fields = ['id', 'product', 'product_name', 'product_sku', 'variant', 'variant_name', 'size',
                  'location', 'location_name', 'quantity', 'created_at', 'updated_at']
        read_only_fields = fields


class SizeQuantitySerializer(serializers.Serializer):
    size = serializers.CharField(max_length=50, allow_blank=True)
    quantity = serializers.IntegerField(min_value=0)


class InventoryCreateSerializer(serializers.Serializer):
    """Input for POST inventory/: a single line or, with ``bulk``, several sizes"""
    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all())
    variant = serializers.PrimaryKeyRelatedField(queryset=ProductVariant.objects.all(), required=False, allow_null=True)
    location = serializers.PrimaryKeyRelatedField(queryset=StockLocation.objects.all())
    size = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')
    quantity = serializers.IntegerField(min_value=0, required=False)
    bulk = serializers.BooleanField(required=False, default=False)
    size_quantities = SizeQuantitySerializer(many=True, required=False)

    def validate(self, attrs):
        _check_variant(attrs)
        if attrs.get('bulk'):
            if not attrs.get('size_quantities'):
                raise serializers.ValidationError({'size_quantities': 'At least one size quantity is required for bulk add'})
        elif attrs.get('quantity') is None:
            raise serializers.ValidationError({'quantity': 'This field is required.'})
        return attrs


class InventoryQuantitySerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=0)


class AdjustmentItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    variant_name = serializers.CharField(source='variant.name', read_only=True, default=None)
    location_name = serializers.CharField(source='location.name', read_only=True)
    destination_location_name = serializers.CharField(source='destination_location.name', read_only=True, default=None)
    quantity = serializers.IntegerField(min_value=1)

    class Meta:
        model = AdjustmentItem
        fields = ['id', 'product', 'product_name', 'variant', 'variant_name', 'size', 'quantity', 'applied_quantity',
                  'location', 'location_name', 'destination_location', 'destination_location_name']
        read_only_fields = ['applied_quantity']

    def validate(self, attrs):
        _check_variant(attrs)
        return attrs


class InventoryAdjustmentSerializer(serializers.ModelSerializer):
    items = AdjustmentItemSerializer(many=True)
    adjusted_by_name = serializers.CharField(source='adjusted_by.username', read_only=True, default=None)

    class Meta:
        model = InventoryAdjustment
        fields = ['id', 'adjustment_number', 'adjustment_type', 'reason', 'notes', 'adjusted_by',
                  'adjusted_by_name', 'items', 'created_at', 'updated_at']
        read_only_fields = ['adjustment_number', 'adjusted_by', 'created_at', 'updated_at']

    def validate(self, attrs):
        items = attrs.get('items') or []
        if not items:
            raise serializers.ValidationError({'items': 'At least one item is required'})
        if attrs.get('adjustment_type') == 'transfer':
            for index, item in enumerate(items):
                destination = item.get('destination_location')
                if destination is None:
                    raise serializers.ValidationError({'items': f'Item {index + 1}: destination_location is required for transfers'})
                if destination == item['location']:
                    raise serializers.ValidationError({'items': f'Item {index + 1}: destination must differ from the source location'})
        return attrs

from django.db import transaction
from rest_framework import serializers
from backoffice.core.exceptions import InvalidStatusTransition
from backoffice.core.utils import generate_document_number
from backoffice.locations.models import StockLocation
from .models import PurchaseOrder, PurchaseOrderItem, GoodsReceivedNote, GRNItem


class PurchaseOrderItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    variant_name = serializers.CharField(source='variant.name', read_only=True, default=None)
    remaining_quantity = serializers.IntegerField(read_only=True)
    quantity = serializers.IntegerField(min_value=1)
    unit_cost = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)

    class Meta:
        model = PurchaseOrderItem
        fields = ['id', 'product', 'product_name', 'variant', 'variant_name', 'size', 'quantity',
                  'received_quantity', 'remaining_quantity', 'unit_cost', 'total_cost']
        read_only_fields = ['received_quantity', 'total_cost']

    def validate(self, attrs):
        variant = attrs.get('variant')
        if variant is not None and variant.product_id != attrs['product'].id:
            raise serializers.ValidationError({'variant': 'Variant does not belong to the selected product'})
        return attrs


class PurchaseOrderSerializer(serializers.ModelSerializer):
    """
    Purchase order with its lines.

    Lines are passed separately through ``context['items_data']`` and replace
    the existing ones on update.
    """
    items = PurchaseOrderItemSerializer(many=True, read_only=True)
    supplier_name = serializers.CharField(source='supplier.name', read_only=True)
    location_name = serializers.CharField(source='location.name', read_only=True, default=None)
    created_by_name = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = PurchaseOrder
        fields = ['id', 'po_number', 'supplier', 'supplier_name', 'location', 'location_name', 'status',
                  'order_date', 'expected_date', 'notes', 'total_amount', 'created_by', 'created_by_name',
                  'items', 'created_at', 'updated_at']
        read_only_fields = ['po_number', 'status', 'total_amount', 'created_by', 'created_at', 'updated_at']

    def validate(self, attrs):
        items_data = self.context.get('items_data')
        if self.instance is None and not items_data:
            raise serializers.ValidationError({'items': 'At least one item is required'})
        if items_data is not None:
            item_serializer = PurchaseOrderItemSerializer(data=items_data, many=True)
            if not item_serializer.is_valid():
                raise serializers.ValidationError({'items': item_serializer.errors})
            if not item_serializer.validated_data:
                raise serializers.ValidationError({'items': 'At least one item is required'})
            self._validated_items = item_serializer.validated_data
        else:
            self._validated_items = None

        expected_date = attrs.get('expected_date', getattr(self.instance, 'expected_date', None))
        order_date = attrs.get('order_date', getattr(self.instance, 'order_date', None))
        if expected_date and order_date and expected_date < order_date:
            raise serializers.ValidationError({'expected_date': 'Expected date cannot be before the order date'})
        return attrs

    def _write_items(self, purchase_order, items):
        total = 0
        for item in items:
            line = PurchaseOrderItem(purchase_order=purchase_order, **item)
            line.save()
            total += line.total_cost
        purchase_order.total_amount = total
        purchase_order.save(update_fields=['total_amount', 'updated_at'])

    @transaction.atomic
    def create(self, validated_data):
        validated_data['po_number'] = generate_document_number(PurchaseOrder, 'po_number', 'PO')
        purchase_order = PurchaseOrder.objects.create(**validated_data)
        self._write_items(purchase_order, self._validated_items)
        return purchase_order

    @transaction.atomic
    def update(self, instance, validated_data):
        # Status may have moved on since the view loaded the order
        locked = PurchaseOrder.objects.select_for_update().get(pk=instance.pk)
        if locked.status != 'draft':
            raise InvalidStatusTransition(
                f'Purchase order {locked.po_number} is "{locked.status}"; only draft orders can be modified.'
            )
        for attr, value in validated_data.items():
            setattr(locked, attr, value)
        locked.save(update_fields=[*validated_data, 'updated_at'])
        if self._validated_items is not None:
            locked.items.all().delete()
            self._write_items(locked, self._validated_items)
        return locked


class GRNItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    variant_name = serializers.CharField(source='variant.name', read_only=True, default=None)
    location_name = serializers.CharField(source='location.name', read_only=True)

    class Meta:
        model = GRNItem
        fields = ['id', 'po_item', 'product', 'product_name', 'variant', 'variant_name', 'size',
                  'ordered_quantity', 'received_quantity', 'unit_cost', 'total_cost', 'location', 'location_name']


class GoodsReceivedNoteSerializer(serializers.ModelSerializer):
    items = GRNItemSerializer(many=True, read_only=True)
    po_number = serializers.CharField(source='purchase_order.po_number', read_only=True)
    supplier_name = serializers.CharField(source='supplier.name', read_only=True)
    received_by_name = serializers.CharField(source='received_by.username', read_only=True, default=None)

    class Meta:
        model = GoodsReceivedNote
        fields = ['id', 'grn_number', 'purchase_order', 'po_number', 'supplier', 'supplier_name',
                  'received_date', 'notes', 'total_amount', 'received_by', 'received_by_name',
                  'items', 'created_at']


class GRNLineInputSerializer(serializers.Serializer):
    po_item = serializers.IntegerField()
    received_quantity = serializers.IntegerField(min_value=1)
    unit_cost = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)
    location = serializers.PrimaryKeyRelatedField(queryset=StockLocation.objects.all(), required=False, allow_null=True)


class GRNCreateSerializer(serializers.Serializer):
    """Input for receiving goods against a purchase order"""
    purchase_order = serializers.PrimaryKeyRelatedField(queryset=PurchaseOrder.objects.all())
    received_date = serializers.DateField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    items = GRNLineInputSerializer(many=True)

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError('At least one item is required')
        return value

from decimal import Decimal
from django.db import transaction
from rest_framework import serializers
from .models import Combo, ComboItem, Coupon, CouponUsage, Promotion


class CouponSerializer(serializers.ModelSerializer):
    discount_value = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)

    class Meta:
        model = Coupon
        fields = ['id', 'code', 'name', 'description', 'discount_type', 'discount_value', 'max_discount',
                  'min_order_amount', 'min_quantity', 'applicable_products', 'applicable_categories',
                  'excluded_products', 'usage_limit', 'usage_count', 'per_user_limit', 'start_date',
                  'end_date', 'status', 'first_order_only', 'created_at', 'updated_at']
        read_only_fields = ['usage_count', 'created_at', 'updated_at']
        # Uniqueness is checked case-insensitively in validate_code
        extra_kwargs = {'code': {'validators': []}}

    def validate_code(self, value):
        code = value.strip().upper()
        if not code:
            raise serializers.ValidationError('Coupon code is required')
        duplicates = Coupon.objects.filter(code__iexact=code)
        if self.instance is not None:
            duplicates = duplicates.exclude(pk=self.instance.pk)
        if duplicates.exists():
            raise serializers.ValidationError('A coupon with this code already exists')
        return code

    def validate(self, attrs):
        discount_type = attrs.get('discount_type', getattr(self.instance, 'discount_type', None))
        discount_value = attrs.get('discount_value', getattr(self.instance, 'discount_value', None))
        if discount_type == 'PERCENTAGE' and discount_value is not None and discount_value > 100:
            raise serializers.ValidationError({'discount_value': 'Percentage discount cannot exceed 100'})
        start_date = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end_date = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start_date and end_date and end_date < start_date:
            raise serializers.ValidationError({'end_date': 'End date cannot be before the start date'})
        return attrs


class CouponUsageSerializer(serializers.ModelSerializer):
    order_number = serializers.CharField(source='order.order_number', read_only=True, default=None)

    class Meta:
        model = CouponUsage
        fields = ['id', 'coupon', 'customer', 'order', 'order_number', 'discount_applied', 'used_at']


class CartLineSerializer(serializers.Serializer):
    product = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)
    price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)


class CouponValidateSerializer(serializers.Serializer):
    code = serializers.CharField()
    customer = serializers.CharField(required=False, allow_blank=True, default='')
    cart_total = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0)
    shipping_fee = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False, default=0)
    cart_items = CartLineSerializer(many=True, required=False, default=list)


class PromotionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Promotion
        fields = ['id', 'name', 'description', 'promotion_type', 'discount_value', 'priority', 'conditions',
                  'start_date', 'end_date', 'status', 'usage_count', 'created_at', 'updated_at']
        read_only_fields = ['usage_count', 'created_at', 'updated_at']

    def validate(self, attrs):
        start_date = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end_date = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start_date and end_date and end_date < start_date:
            raise serializers.ValidationError({'end_date': 'End date cannot be before the start date'})
        return attrs


class ComboItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    variant_name = serializers.CharField(source='variant.name', read_only=True, default=None)
    quantity = serializers.IntegerField(min_value=1)

    class Meta:
        model = ComboItem
        fields = ['id', 'product', 'product_name', 'variant', 'variant_name', 'quantity', 'required']

    def validate(self, attrs):
        variant = attrs.get('variant')
        if variant is not None and variant.product_id != attrs['product'].id:
            raise serializers.ValidationError({'variant': 'Variant does not belong to the selected product'})
        return attrs


class ComboSerializer(serializers.ModelSerializer):
    """
    Bundle with its items. ``original_price`` is the sum of the items'
    selling prices and ``savings`` the difference to ``combo_price``; both
    are computed, never taken from the request. Items replace the existing
    ones on update.
    """
    items = ComboItemSerializer(many=True)
    combo_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    get_discount = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=0, max_value=100,
                                            required=False, allow_null=True)
    savings = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = Combo
        fields = ['id', 'name', 'description', 'combo_type', 'items', 'original_price', 'combo_price', 'savings',
                  'buy_quantity', 'get_quantity', 'get_discount', 'status', 'start_date', 'end_date',
                  'created_at', 'updated_at']
        read_only_fields = ['original_price', 'created_at', 'updated_at']

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError('At least one item is required')
        return value

    def validate(self, attrs):
        combo_type = attrs.get('combo_type', getattr(self.instance, 'combo_type', 'BUNDLE'))
        if combo_type in ('BOGO', 'MULTI_BUY'):
            buy_quantity = attrs.get('buy_quantity', getattr(self.instance, 'buy_quantity', None))
            get_quantity = attrs.get('get_quantity', getattr(self.instance, 'get_quantity', None))
            if not buy_quantity or not get_quantity:
                raise serializers.ValidationError(
                    {'buy_quantity': f'{combo_type} combos need buy_quantity and get_quantity'}
                )
        start_date = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end_date = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start_date and end_date and end_date < start_date:
            raise serializers.ValidationError({'end_date': 'End date cannot be before the start date'})
        return attrs

    def _write_items(self, combo, items):
        original = Decimal('0.00')
        for item in items:
            ComboItem.objects.create(combo=combo, **item)
            original += item['product'].selling_price * item['quantity']
        combo.original_price = original
        combo.save(update_fields=['original_price', 'updated_at'])

    @transaction.atomic
    def create(self, validated_data):
        items = validated_data.pop('items')
        combo = Combo.objects.create(**validated_data)
        self._write_items(combo, items)
        return combo

    @transaction.atomic
    def update(self, instance, validated_data):
        items = validated_data.pop('items', None)
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        instance.save()
        if items is not None:
            instance.items.all().delete()
            self._write_items(instance, items)
        return instance

from rest_framework import serializers
from backoffice.catalog.models import Product, ProductVariant
from backoffice.locations.models import StockLocation
from .models import Order, OrderItem, OrderPayment, PaymentMethod


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = ['id', 'product', 'variant', 'size', 'name', 'variant_name', 'quantity', 'price', 'discount', 'buying_price']


class OrderPaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderPayment
        fields = ['id', 'payment_method', 'amount', 'reference', 'created_at']
        read_only_fields = ['created_at']


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    payments = OrderPaymentSerializer(many=True, read_only=True)
    location_name = serializers.CharField(source='location.name', read_only=True, default=None)

    class Meta:
        model = Order
        fields = ['id', 'order_number', 'source', 'location', 'location_name', 'customer_name', 'customer_email',
                  'customer_phone', 'shipping_address', 'status', 'payment_status', 'payment_method', 'total',
                  'shipping_fee', 'discount', 'fee', 'transaction_fee_charge', 'coupon_code', 'restocked',
                  'restocked_at', 'items', 'payments', 'created_at', 'updated_at']
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    item_count = serializers.IntegerField(source='items.count', read_only=True)

    class Meta:
        model = Order
        fields = ['id', 'order_number', 'source', 'customer_name', 'status', 'payment_status', 'payment_method',
                  'total', 'discount', 'shipping_fee', 'restocked', 'item_count', 'created_at']


class OrderLineInputSerializer(serializers.Serializer):
    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all())
    variant = serializers.PrimaryKeyRelatedField(queryset=ProductVariant.objects.all(), required=False, allow_null=True)
    size = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')
    name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    variant_name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    quantity = serializers.IntegerField(min_value=1)
    price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)
    buying_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)

    def validate(self, attrs):
        variant = attrs.get('variant')
        if variant is not None and variant.product_id != attrs['product'].id:
            raise serializers.ValidationError({'variant': 'Variant does not belong to the selected product'})
        if attrs.get('discount') and attrs['discount'] > attrs['price']:
            raise serializers.ValidationError({'discount': 'Discount cannot exceed the price'})
        return attrs


class PaymentInputSerializer(serializers.Serializer):
    payment_method = serializers.CharField(max_length=50)
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    reference = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')


class OrderCreateSerializer(serializers.Serializer):
    order_number = serializers.CharField(max_length=50, required=False, allow_blank=True)
    source = serializers.ChoiceField(choices=Order.SOURCE_CHOICES)
    location = serializers.PrimaryKeyRelatedField(queryset=StockLocation.objects.all(), required=False, allow_null=True)
    customer_name = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    customer_email = serializers.EmailField(required=False, allow_blank=True, default='')
    customer_phone = serializers.CharField(max_length=20, required=False, allow_blank=True, default='')
    shipping_address = serializers.CharField(required=False, allow_blank=True, default='')
    status = serializers.ChoiceField(choices=Order.STATUS_CHOICES, required=False)
    payment_status = serializers.ChoiceField(choices=Order.PAYMENT_STATUS_CHOICES, required=False)
    payment_method = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')
    shipping_fee = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)
    fee = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)
    transaction_fee_charge = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)
    coupon_code = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')
    items = OrderLineInputSerializer(many=True)
    payments = PaymentInputSerializer(many=True, required=False, default=list)

    def validate_order_number(self, value):
        if value and Order.objects.filter(order_number=value).exists():
            raise serializers.ValidationError('An order with this number already exists')
        return value

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError('Order items are required')
        return value


class OrderUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Order.STATUS_CHOICES, required=False)
    payment_status = serializers.ChoiceField(choices=Order.PAYMENT_STATUS_CHOICES, required=False)
    payment_method = serializers.CharField(max_length=50, required=False, allow_blank=True)
    customer_name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    customer_email = serializers.EmailField(required=False, allow_blank=True)
    customer_phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    shipping_address = serializers.CharField(required=False, allow_blank=True)


class PaymentMethodSerializer(serializers.ModelSerializer):
    fee = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)
    available = serializers.ListField(
        child=serializers.ChoiceField(choices=Order.SOURCE_CHOICES), required=False
    )

    class Meta:
        model = PaymentMethod
        fields = ['id', 'name', 'description', 'fee', 'status', 'available', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']
        # Uniqueness is checked case-insensitively in validate_name
        extra_kwargs = {'name': {'validators': []}}

    def validate_name(self, value):
        name = value.strip()
        if not name:
            raise serializers.ValidationError('Name is required')
        duplicates = PaymentMethod.objects.filter(name__iexact=name)
        if self.instance is not None:
            duplicates = duplicates.exclude(pk=self.instance.pk)
        if duplicates.exists():
            raise serializers.ValidationError('A payment method with this name already exists')
        return name

    def validate_available(self, value):
        return sorted(set(value))

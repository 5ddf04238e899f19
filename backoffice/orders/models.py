from django.db import models
from django.utils import timezone
from decimal import Decimal
from backoffice.catalog.models import Product, ProductVariant
from backoffice.locations.models import StockLocation
from backoffice.core.models import User


class Order(models.Model):
    """Customer order from the shop floor or the website"""
    SOURCE_CHOICES = [
        ('store', 'Store'),
        ('website', 'Website'),
    ]
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('processing', 'Processing'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]
    PAYMENT_STATUS_CHOICES = [
        ('Pending', 'Pending'),
        ('Paid', 'Paid'),
        ('Failed', 'Failed'),
        ('Refunded', 'Refunded'),
        ('Returned', 'Returned'),
    ]

    order_number = models.CharField(max_length=50, unique=True)
    source = models.CharField(max_length=20, choices=SOURCE_CHOICES)
    location = models.ForeignKey(StockLocation, on_delete=models.PROTECT, null=True, blank=True, related_name='orders')
    customer_name = models.CharField(max_length=200, blank=True)
    customer_email = models.EmailField(blank=True)
    customer_phone = models.CharField(max_length=20, blank=True)
    shipping_address = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default='Pending', db_index=True)
    payment_method = models.CharField(max_length=50, blank=True)
    # total = items after discounts + shipping_fee + fee
    total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    shipping_fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    # Order fee charged to the customer (e.g. cash-on-delivery fee)
    fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    # Payment processor charge borne by the business
    transaction_fee_charge = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    coupon_code = models.CharField(max_length=50, blank=True)
    restocked = models.BooleanField(default=False)
    restocked_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.order_number

    class Meta:
        db_table = 'orders'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['payment_status', 'created_at'], name='idx_order_payment_created'),
        ]


class OrderItem(models.Model):
    """Order line; prices and cost are snapshots taken at sale time"""
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='order_items')
    variant = models.ForeignKey(ProductVariant, on_delete=models.PROTECT, null=True, blank=True, related_name='order_items')
    size = models.CharField(max_length=50, blank=True, default='')
    name = models.CharField(max_length=255)
    variant_name = models.CharField(max_length=200, blank=True)
    quantity = models.PositiveIntegerField()
    price = models.DecimalField(max_digits=12, decimal_places=2)
    # Per-unit discount
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    buying_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))

    class Meta:
        db_table = 'order_items'
        ordering = ['id']


class OrderPayment(models.Model):
    """Split payment of an order; refunds are negative amounts"""
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='payments')
    payment_method = models.CharField(max_length=50)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    reference = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'order_payments'
        ordering = ['id']


class PaymentMethod(models.Model):
    """Payment option offered at checkout, with the fee it adds to an order"""
    STATUS_CHOICES = [
        ('Active', 'Active'),
        ('Inactive', 'Inactive'),
    ]

    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)
    fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='Active')
    # Order sources the method is offered on ("store", "website")
    available = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'payment_methods'
        ordering = ['name']

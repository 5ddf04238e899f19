from django.db import models
from decimal import Decimal
from backoffice.catalog.models import Category, Product


class Coupon(models.Model):
    """Discount code customers enter at checkout"""
    DISCOUNT_TYPE_CHOICES = [
        ('PERCENTAGE', 'Percentage'),
        ('FIXED', 'Fixed Amount'),
        ('FREE_SHIPPING', 'Free Shipping'),
    ]
    STATUS_CHOICES = [
        ('ACTIVE', 'Active'),
        ('INACTIVE', 'Inactive'),
        ('EXPIRED', 'Expired'),
    ]

    # Stored upper-cased, matched case-insensitively
    code = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    discount_type = models.CharField(max_length=20, choices=DISCOUNT_TYPE_CHOICES)
    discount_value = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    max_discount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    min_order_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    min_quantity = models.PositiveIntegerField(null=True, blank=True)
    applicable_products = models.ManyToManyField(Product, blank=True, related_name='coupons')
    applicable_categories = models.ManyToManyField(Category, blank=True, related_name='coupons')
    excluded_products = models.ManyToManyField(Product, blank=True, related_name='excluded_from_coupons')
    usage_limit = models.PositiveIntegerField(null=True, blank=True)
    usage_count = models.PositiveIntegerField(default=0)
    per_user_limit = models.PositiveIntegerField(null=True, blank=True)
    start_date = models.DateTimeField(null=True, blank=True)
    end_date = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='ACTIVE')
    first_order_only = models.BooleanField(default=False)
    is_deleted = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.code

    def save(self, *args, **kwargs):
        self.code = (self.code or '').strip().upper()
        super().save(*args, **kwargs)

    class Meta:
        db_table = 'coupons'
        ordering = ['-created_at']


class CouponUsage(models.Model):
    """One redemption of a coupon by a customer"""
    coupon = models.ForeignKey(Coupon, on_delete=models.CASCADE, related_name='usages')
    # Customer identifier (email or phone)
    customer = models.CharField(max_length=255, blank=True)
    order = models.ForeignKey('orders.Order', on_delete=models.SET_NULL, null=True, blank=True, related_name='coupon_usages')
    discount_applied = models.DecimalField(max_digits=12, decimal_places=2)
    used_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'coupon_usages'
        ordering = ['-used_at']
        indexes = [
            models.Index(fields=['coupon', 'customer'], name='idx_coupon_usage_customer'),
        ]


class Promotion(models.Model):
    """Automatic promotion rule"""
    PROMOTION_TYPE_CHOICES = [
        ('PERCENTAGE', 'Percentage'),
        ('FIXED', 'Fixed Amount'),
        ('BOGO', 'Buy One Get One'),
        ('FREE_SHIPPING', 'Free Shipping'),
    ]
    STATUS_CHOICES = [
        ('ACTIVE', 'Active'),
        ('INACTIVE', 'Inactive'),
        ('SCHEDULED', 'Scheduled'),
        ('EXPIRED', 'Expired'),
    ]

    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    promotion_type = models.CharField(max_length=20, choices=PROMOTION_TYPE_CHOICES)
    discount_value = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    priority = models.IntegerField(default=0)
    conditions = models.JSONField(default=dict, blank=True)
    start_date = models.DateTimeField(null=True, blank=True)
    end_date = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='ACTIVE')
    usage_count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'promotions'
        ordering = ['-priority', '-created_at']


class Combo(models.Model):
    """Product bundle sold at a combined price"""
    COMBO_TYPE_CHOICES = [
        ('BUNDLE', 'Bundle'),
        ('BOGO', 'Buy One Get One'),
        ('MULTI_BUY', 'Multi Buy'),
    ]
    STATUS_CHOICES = [
        ('ACTIVE', 'Active'),
        ('INACTIVE', 'Inactive'),
    ]

    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    combo_type = models.CharField(max_length=20, choices=COMBO_TYPE_CHOICES, default='BUNDLE')
    # Sum of the item selling prices, recomputed whenever items change
    original_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    combo_price = models.DecimalField(max_digits=12, decimal_places=2)
    # BOGO / MULTI_BUY: buy X, get Y at Z% off (100 = free)
    buy_quantity = models.PositiveIntegerField(null=True, blank=True)
    get_quantity = models.PositiveIntegerField(null=True, blank=True)
    get_discount = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='ACTIVE')
    start_date = models.DateTimeField(null=True, blank=True)
    end_date = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    @property
    def savings(self):
        return max(self.original_price - self.combo_price, Decimal('0.00'))

    class Meta:
        db_table = 'combos'
        ordering = ['-created_at', '-id']


class ComboItem(models.Model):
    combo = models.ForeignKey(Combo, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='combo_items')
    variant = models.ForeignKey('catalog.ProductVariant', on_delete=models.PROTECT, null=True, blank=True, related_name='combo_items')
    quantity = models.PositiveIntegerField(default=1)
    # Must be in the cart for the combo to apply
    required = models.BooleanField(default=True)

    class Meta:
        db_table = 'combo_items'
        ordering = ['id']

from django.db import models
from decimal import Decimal


class Category(models.Model):
    """Product categories"""
    name = models.CharField(max_length=200, db_index=True)
    parent = models.ForeignKey('self', on_delete=models.SET_NULL, null=True, blank=True, related_name='children')
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'categories'
        verbose_name_plural = 'categories'
        ordering = ['name']


class Brand(models.Model):
    """Product brands"""
    name = models.CharField(max_length=200, unique=True)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'brands'
        ordering = ['name']


class Size(models.Model):
    """Size labels (S, M, L, 42, ...) a variant can be stocked in"""
    name = models.CharField(max_length=50, unique=True)
    sort_order = models.IntegerField(default=0)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'sizes'
        ordering = ['sort_order', 'name']


class Product(models.Model):
    """Product master"""
    name = models.CharField(max_length=200, db_index=True)
    sku = models.CharField(max_length=100, unique=True, blank=True, null=True, db_index=True)
    category = models.ForeignKey(Category, on_delete=models.SET_NULL, null=True, blank=True, related_name='products')
    brand = models.ForeignKey(Brand, on_delete=models.SET_NULL, null=True, blank=True, related_name='products')
    description = models.TextField(blank=True)
    buying_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    selling_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    low_stock_threshold = models.IntegerField(default=10)
    # Maintained by inventory services
    total_stock = models.IntegerField(default=0)
    in_stock = models.BooleanField(default=False, db_index=True)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.sku or 'NO-SKU'})"

    class Meta:
        db_table = 'products'
        ordering = ['name']


class ProductVariant(models.Model):
    """Product variants (colour, style, ...), each available in a set of sizes"""
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='variants')
    name = models.CharField(max_length=200)  # e.g., "Red"
    sku = models.CharField(max_length=100, unique=True, blank=True, null=True)
    sizes = models.ManyToManyField(Size, blank=True, related_name='variants')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.product.name} - {self.name}"

    class Meta:
        db_table = 'product_variants'
        ordering = ['product_id', 'name']

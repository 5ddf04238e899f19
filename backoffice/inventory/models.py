from django.db import models
from django.db.models import Q
from backoffice.catalog.models import Product, ProductVariant
from backoffice.locations.models import StockLocation


class InventoryItem(models.Model):
    """Stock ledger line: quantity of one product/variant/size at one location"""
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='inventory_items')
    variant = models.ForeignKey(ProductVariant, on_delete=models.CASCADE, related_name='inventory_items', null=True, blank=True)
    size = models.CharField(max_length=50, blank=True, default='')
    location = models.ForeignKey(StockLocation, on_delete=models.CASCADE, related_name='inventory_items')
    quantity = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        label = self.product.name
        if self.variant_id:
            label += f" / {self.variant.name}"
        if self.size:
            label += f" / {self.size}"
        return f"{label} @ {self.location.name}: {self.quantity}"

    class Meta:
        db_table = 'inventory_items'
        constraints = [
            models.UniqueConstraint(
                fields=['product', 'variant', 'size', 'location'],
                name='uniq_inventory_line',
            ),
            # NULL variants never collide in a plain unique index
            models.UniqueConstraint(
                fields=['product', 'size', 'location'],
                condition=Q(variant__isnull=True),
                name='uniq_inventory_line_no_variant',
            ),
        ]
        indexes = [
            models.Index(fields=['product', 'location'], name='idx_inventory_product_location'),
            models.Index(fields=['location'], name='idx_inventory_location'),
        ]


class InventoryAdjustment(models.Model):
    """A manual stock movement document (ADJ-YYYYMM-NNNN)"""
    ADJUSTMENT_TYPE_CHOICES = [
        ('add', 'Add'),
        ('remove', 'Remove'),
        ('damage', 'Damage'),
        ('return', 'Return'),
        ('transfer', 'Transfer'),
    ]

    adjustment_number = models.CharField(max_length=50, unique=True)
    adjustment_type = models.CharField(max_length=20, choices=ADJUSTMENT_TYPE_CHOICES)
    reason = models.CharField(max_length=255, blank=True)
    notes = models.TextField(blank=True)
    adjusted_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='inventory_adjustments')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.adjustment_number

    class Meta:
        db_table = 'inventory_adjustments'
        ordering = ['-created_at', '-id']


class AdjustmentItem(models.Model):
    """One line of an inventory adjustment"""
    adjustment = models.ForeignKey(InventoryAdjustment, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='adjustment_items')
    variant = models.ForeignKey(ProductVariant, on_delete=models.PROTECT, related_name='adjustment_items', null=True, blank=True)
    size = models.CharField(max_length=50, blank=True, default='')
    quantity = models.PositiveIntegerField()
    # Units actually moved; lower than quantity when a remove/damage was clamped at zero
    applied_quantity = models.PositiveIntegerField(default=0)
    location = models.ForeignKey(StockLocation, on_delete=models.PROTECT, related_name='adjustment_items')
    destination_location = models.ForeignKey(
        StockLocation, on_delete=models.PROTECT, related_name='incoming_adjustment_items', null=True, blank=True
    )

    class Meta:
        db_table = 'inventory_adjustment_items'

from django.db import models
from django.utils import timezone
from decimal import Decimal
from backoffice.catalog.models import Product, ProductVariant
from backoffice.parties.models import Supplier
from backoffice.locations.models import StockLocation
from backoffice.core.models import User


class PurchaseOrder(models.Model):
    """Order placed with a supplier (PO-YYYYMM-NNNN)"""
    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('sent', 'Sent'),
        ('partial', 'Partially Received'),
        ('received', 'Received'),
        ('cancelled', 'Cancelled'),
    ]

    po_number = models.CharField(max_length=50, unique=True)
    supplier = models.ForeignKey(Supplier, on_delete=models.PROTECT, related_name='purchase_orders')
    # Default receiving location
    location = models.ForeignKey(StockLocation, on_delete=models.PROTECT, null=True, blank=True, related_name='purchase_orders')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft')
    order_date = models.DateField(default=timezone.localdate)
    expected_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True)
    total_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='purchase_orders')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.po_number

    def is_fully_received(self):
        return all(item.received_quantity >= item.quantity for item in self.items.all())

    class Meta:
        db_table = 'purchase_orders'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['status'], name='idx_po_status'),
            models.Index(fields=['supplier', 'status'], name='idx_po_supplier_status'),
        ]


class PurchaseOrderItem(models.Model):
    """Purchase order line"""
    purchase_order = models.ForeignKey(PurchaseOrder, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='purchase_order_items')
    variant = models.ForeignKey(ProductVariant, on_delete=models.PROTECT, null=True, blank=True, related_name='purchase_order_items')
    size = models.CharField(max_length=50, blank=True, default='')
    quantity = models.PositiveIntegerField()
    received_quantity = models.PositiveIntegerField(default=0)
    unit_cost = models.DecimalField(max_digits=12, decimal_places=2)
    total_cost = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))

    @property
    def remaining_quantity(self):
        return max(self.quantity - self.received_quantity, 0)

    def save(self, *args, **kwargs):
        self.total_cost = self.unit_cost * self.quantity
        super().save(*args, **kwargs)

    class Meta:
        db_table = 'purchase_order_items'
        ordering = ['id']


class GoodsReceivedNote(models.Model):
    """Goods received against a purchase order (GRN-YYYYMM-NNNN)"""
    grn_number = models.CharField(max_length=50, unique=True)
    purchase_order = models.ForeignKey(PurchaseOrder, on_delete=models.PROTECT, related_name='grns')
    supplier = models.ForeignKey(Supplier, on_delete=models.PROTECT, related_name='grns')
    received_date = models.DateField(default=timezone.localdate)
    notes = models.TextField(blank=True)
    total_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    received_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='grns')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.grn_number

    class Meta:
        db_table = 'goods_received_notes'
        ordering = ['-created_at', '-id']


class GRNItem(models.Model):
    """Quantity of one purchase order line received into one location"""
    grn = models.ForeignKey(GoodsReceivedNote, on_delete=models.CASCADE, related_name='items')
    po_item = models.ForeignKey(PurchaseOrderItem, on_delete=models.PROTECT, related_name='grn_items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='grn_items')
    variant = models.ForeignKey(ProductVariant, on_delete=models.PROTECT, null=True, blank=True, related_name='grn_items')
    size = models.CharField(max_length=50, blank=True, default='')
    ordered_quantity = models.PositiveIntegerField()
    received_quantity = models.PositiveIntegerField()
    unit_cost = models.DecimalField(max_digits=12, decimal_places=2)
    total_cost = models.DecimalField(max_digits=14, decimal_places=2)
    location = models.ForeignKey(StockLocation, on_delete=models.PROTECT, related_name='grn_items')

    class Meta:
        db_table = 'grn_items'
        ordering = ['id']

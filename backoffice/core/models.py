from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Back-office user with contact details"""
    phone = models.CharField(max_length=20, blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'users'


class Setting(models.Model):
    """Runtime business settings (key/value)"""
    key = models.CharField(max_length=100, unique=True)
    value = models.TextField()
    description = models.TextField(blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.key

    class Meta:
        db_table = 'settings'


class AuditLog(models.Model):
    """Audit log for critical operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('stock_adjust', 'Stock Adjustment'),
        ('stock_receive', 'Stock Received (GRN)'),
        ('stock_sale', 'Stock Removed (Sale)'),
        ('stock_restock', 'Stock Returned (Restock)'),
        ('status_change', 'Status Change'),
        ('order_create', 'Order Created'),
        ('order_update', 'Order Updated'),
        ('coupon_redeem', 'Coupon Redeemed'),
        ('payment_add', 'Payment Added'),
        ('review', 'Review'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., product name, PO number)")
    object_reference = models.CharField(max_length=255, blank=True, null=True, help_text="Reference identifier (e.g., order number, GRN number)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at']),
            models.Index(fields=['action']),
            models.Index(fields=['model_name']),
            models.Index(fields=['object_reference']),
        ]


class DocumentSequence(models.Model):
    """Last number issued per document prefix and month (e.g. ``PO-202610-``)"""
    prefix = models.CharField(max_length=50, unique=True)
    last_number = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.prefix}{self.last_number}"

    class Meta:
        db_table = 'document_sequences'

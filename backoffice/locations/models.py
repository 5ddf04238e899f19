from django.db import models


class StockLocation(models.Model):
    """A place that holds stock: a shop, a warehouse or the online store's fulfilment stock"""
    LOCATION_TYPE_CHOICES = [
        ('store', 'Store'),
        ('warehouse', 'Warehouse'),
        ('online', 'Online'),
    ]

    name = models.CharField(max_length=200)
    code = models.CharField(max_length=50, unique=True)
    location_type = models.CharField(max_length=20, choices=LOCATION_TYPE_CHOICES, default='store')
    address = models.TextField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'stock_locations'
        ordering = ['name']

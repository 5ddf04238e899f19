from django.urls import path
from .views import inventory_list_create, inventory_detail, adjustment_list_create, adjustment_detail

urlpatterns = [
    path('inventory/', inventory_list_create, name='inventory-list-create'),
    path('inventory/<int:pk>/', inventory_detail, name='inventory-detail'),
    path('inventory/adjustments/', adjustment_list_create, name='adjustment-list-create'),
    path('inventory/adjustments/<int:pk>/', adjustment_detail, name='adjustment-detail'),
]

from django.urls import path
from .views import purchase_order_list_create, purchase_order_detail, grn_list_create, grn_detail

urlpatterns = [
    path('purchase-orders/', purchase_order_list_create, name='purchase-order-list-create'),
    path('purchase-orders/<int:pk>/', purchase_order_detail, name='purchase-order-detail'),
    path('grns/', grn_list_create, name='grn-list-create'),
    path('grns/<int:pk>/', grn_detail, name='grn-detail'),
]

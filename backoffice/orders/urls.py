from django.urls import path
from .views import (
    order_list_create, order_detail, order_restock, order_payment_create,
    payment_method_list_create, payment_method_detail
)

urlpatterns = [
    path('orders/', order_list_create, name='order-list-create'),
    path('orders/<int:pk>/', order_detail, name='order-detail'),
    path('orders/<int:pk>/restock/', order_restock, name='order-restock'),
    path('orders/<int:pk>/payments/', order_payment_create, name='order-payment-create'),
    path('payment-methods/', payment_method_list_create, name='payment-method-list-create'),
    path('payment-methods/<int:pk>/', payment_method_detail, name='payment-method-detail'),
]

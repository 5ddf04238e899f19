from django.urls import path
from .views import (
    coupon_list_create, coupon_detail, coupon_validate,
    promotion_list_create, promotion_detail,
    combo_list_create, combo_detail,
)

urlpatterns = [
    path('coupons/', coupon_list_create, name='coupon-list-create'),
    path('coupons/validate/', coupon_validate, name='coupon-validate'),
    path('coupons/<int:pk>/', coupon_detail, name='coupon-detail'),
    path('promotions/', promotion_list_create, name='promotion-list-create'),
    path('promotions/<int:pk>/', promotion_detail, name='promotion-detail'),
    path('combos/', combo_list_create, name='combo-list-create'),
    path('combos/<int:pk>/', combo_detail, name='combo-detail'),
]

from django.urls import path
from .views import (
    expense_category_list_create, expense_category_dropdown, expense_category_detail,
    petty_cash_list_create, petty_cash_detail, petty_cash_review,
    bank_account_list_create, bank_account_detail,
    supplier_invoice_list_create, supplier_invoice_detail, supplier_invoice_payment_create,
    finance_dashboard,
)

urlpatterns = [
    path('finance/dashboard/', finance_dashboard, name='finance-dashboard'),
    path('expense-categories/', expense_category_list_create, name='expense-category-list-create'),
    path('expense-categories/dropdown/', expense_category_dropdown, name='expense-category-dropdown'),
    path('expense-categories/<int:pk>/', expense_category_detail, name='expense-category-detail'),
    path('petty-cash/', petty_cash_list_create, name='petty-cash-list-create'),
    path('petty-cash/<int:pk>/', petty_cash_detail, name='petty-cash-detail'),
    path('petty-cash/<int:pk>/review/', petty_cash_review, name='petty-cash-review'),
    path('bank-accounts/', bank_account_list_create, name='bank-account-list-create'),
    path('bank-accounts/<int:pk>/', bank_account_detail, name='bank-account-detail'),
    path('supplier-invoices/', supplier_invoice_list_create, name='supplier-invoice-list-create'),
    path('supplier-invoices/<int:pk>/', supplier_invoice_detail, name='supplier-invoice-detail'),
    path('supplier-invoices/<int:pk>/payments/', supplier_invoice_payment_create, name='supplier-invoice-payment-create'),
]

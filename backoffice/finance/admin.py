from django.contrib import admin
from .models import ExpenseCategory, PettyCash, BankAccount, SupplierInvoice, SupplierPayment


@admin.register(ExpenseCategory)
class ExpenseCategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'type', 'status', 'is_deleted']
    list_filter = ['type', 'status', 'is_deleted']
    search_fields = ['name']


@admin.register(PettyCash)
class PettyCashAdmin(admin.ModelAdmin):
    list_display = ['entry_number', 'amount', 'type', 'category', 'status', 'created_by', 'created_at']
    list_filter = ['type', 'status', 'category']
    search_fields = ['entry_number', 'paid_for', 'note']
    readonly_fields = ['entry_number', 'reviewed_by', 'reviewed_at']


@admin.register(BankAccount)
class BankAccountAdmin(admin.ModelAdmin):
    list_display = ['account_name', 'bank_name', 'account_number', 'current_balance', 'status']
    list_filter = ['status', 'bank_name']


class SupplierPaymentInline(admin.TabularInline):
    model = SupplierPayment
    extra = 0
    readonly_fields = ['amount', 'bank_account', 'paid_at', 'created_by']


@admin.register(SupplierInvoice)
class SupplierInvoiceAdmin(admin.ModelAdmin):
    list_display = ['invoice_number', 'supplier', 'invoice_date', 'due_date', 'total_amount', 'paid_amount', 'status']
    list_filter = ['status', 'supplier']
    search_fields = ['invoice_number', 'supplier__name']
    inlines = [SupplierPaymentInline]

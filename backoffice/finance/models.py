from django.db import models
from django.utils import timezone
from decimal import Decimal
from backoffice.core.models import User
from backoffice.parties.models import Supplier


class ExpenseCategory(models.Model):
    """Category for petty cash entries"""
    TYPE_CHOICES = [
        ('expense', 'Expense'),
        ('income', 'Income'),
    ]
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('inactive', 'Inactive'),
    ]

    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='expense')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    is_deleted = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'expense_categories'
        ordering = ['name']
        verbose_name_plural = 'Expense categories'


class PettyCash(models.Model):
    """Petty cash expense or income entry, reviewed before it counts in the P&L"""
    TYPE_CHOICES = ExpenseCategory.TYPE_CHOICES
    STATUS_CHOICES = [
        ('PENDING', 'Pending'),
        ('APPROVED', 'Approved'),
        ('REJECTED', 'Rejected'),
    ]

    entry_number = models.CharField(max_length=50, unique=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='expense')
    category = models.ForeignKey(ExpenseCategory, on_delete=models.PROTECT, related_name='entries')
    paid_for = models.CharField(max_length=255, blank=True)
    note = models.TextField(blank=True)
    payment_method = models.CharField(max_length=50, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='PENDING')
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='petty_cash_entries')
    reviewed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='reviewed_petty_cash')
    reviewed_at = models.DateTimeField(null=True, blank=True)
    is_deleted = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.entry_number} - {self.amount}"

    class Meta:
        db_table = 'petty_cash'
        ordering = ['-created_at']
        verbose_name_plural = 'Petty cash'
        indexes = [
            models.Index(fields=['status', 'type', 'created_at'], name='idx_petty_cash_report'),
        ]


class BankAccount(models.Model):
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('inactive', 'Inactive'),
    ]

    account_name = models.CharField(max_length=200)
    bank_name = models.CharField(max_length=200)
    account_number = models.CharField(max_length=50)
    current_balance = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    is_deleted = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.bank_name} - {self.account_name}"

    class Meta:
        db_table = 'bank_accounts'
        ordering = ['bank_name', 'account_name']


class SupplierInvoice(models.Model):
    """Bill received from a supplier, settled by one or more payments"""
    STATUS_CHOICES = [
        ('UNPAID', 'Unpaid'),
        ('PARTIAL', 'Partially Paid'),
        ('PAID', 'Paid'),
    ]

    invoice_number = models.CharField(max_length=100)
    supplier = models.ForeignKey(Supplier, on_delete=models.PROTECT, related_name='invoices')
    purchase_order = models.ForeignKey('purchasing.PurchaseOrder', on_delete=models.SET_NULL, null=True, blank=True, related_name='invoices')
    grn = models.ForeignKey('purchasing.GoodsReceivedNote', on_delete=models.SET_NULL, null=True, blank=True, related_name='invoices')
    invoice_date = models.DateField(default=timezone.localdate)
    due_date = models.DateField(null=True, blank=True)
    total_amount = models.DecimalField(max_digits=14, decimal_places=2)
    paid_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='UNPAID')
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='supplier_invoices')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def outstanding_amount(self):
        return self.total_amount - self.paid_amount

    def __str__(self):
        return f"{self.invoice_number} - {self.supplier.name}"

    class Meta:
        db_table = 'supplier_invoices'
        ordering = ['-invoice_date', '-id']
        constraints = [
            models.UniqueConstraint(fields=['supplier', 'invoice_number'], name='uniq_supplier_invoice_number'),
        ]


class SupplierPayment(models.Model):
    invoice = models.ForeignKey(SupplierInvoice, on_delete=models.CASCADE, related_name='payments')
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    bank_account = models.ForeignKey(BankAccount, on_delete=models.PROTECT, null=True, blank=True, related_name='supplier_payments')
    notes = models.TextField(blank=True)
    paid_at = models.DateTimeField(default=timezone.now)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='supplier_payments')

    def __str__(self):
        return f"{self.invoice.invoice_number} - {self.amount}"

    class Meta:
        db_table = 'supplier_payments'
        ordering = ['-paid_at']

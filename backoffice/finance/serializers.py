from rest_framework import serializers
from .models import ExpenseCategory, PettyCash, BankAccount, SupplierInvoice, SupplierPayment


class ExpenseCategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = ExpenseCategory
        fields = ['id', 'name', 'description', 'type', 'status', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_name(self, value):
        queryset = ExpenseCategory.objects.filter(name__iexact=value.strip(), is_deleted=False)
        if self.instance:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError('A category with this name already exists')
        return value.strip()


class PettyCashSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source='category.name', read_only=True)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)
    reviewed_by_username = serializers.CharField(source='reviewed_by.username', read_only=True, default=None)

    class Meta:
        model = PettyCash
        fields = ['id', 'entry_number', 'amount', 'type', 'category', 'category_name', 'paid_for', 'note',
                  'payment_method', 'status', 'created_by', 'created_by_username', 'reviewed_by',
                  'reviewed_by_username', 'reviewed_at', 'created_at', 'updated_at']
        read_only_fields = ['entry_number', 'status', 'created_by', 'reviewed_by', 'reviewed_at', 'updated_at']

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError('Amount must be greater than zero')
        return value

    def validate_category(self, value):
        if value.is_deleted:
            raise serializers.ValidationError('This category has been deleted')
        return value

    def validate(self, attrs):
        if self.instance is not None and self.instance.status != 'PENDING':
            raise serializers.ValidationError('Reviewed entries cannot be modified')
        return attrs


class PettyCashReviewSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=['APPROVED', 'REJECTED'])


class BankAccountSerializer(serializers.ModelSerializer):
    class Meta:
        model = BankAccount
        fields = ['id', 'account_name', 'bank_name', 'account_number', 'current_balance', 'status',
                  'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']


class SupplierPaymentSerializer(serializers.ModelSerializer):
    bank_account_name = serializers.CharField(source='bank_account.account_name', read_only=True, default=None)

    class Meta:
        model = SupplierPayment
        fields = ['id', 'invoice', 'amount', 'bank_account', 'bank_account_name', 'notes', 'paid_at', 'created_by']
        read_only_fields = ['invoice', 'paid_at', 'created_by']


class SupplierInvoiceSerializer(serializers.ModelSerializer):
    supplier_name = serializers.CharField(source='supplier.name', read_only=True)
    outstanding_amount = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)
    payments = SupplierPaymentSerializer(many=True, read_only=True)

    class Meta:
        model = SupplierInvoice
        fields = ['id', 'invoice_number', 'supplier', 'supplier_name', 'purchase_order', 'grn', 'invoice_date',
                  'due_date', 'total_amount', 'paid_amount', 'outstanding_amount', 'status', 'notes',
                  'payments', 'created_by', 'created_at', 'updated_at']
        read_only_fields = ['paid_amount', 'status', 'created_by', 'created_at', 'updated_at']

    def validate_total_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError('Total amount must be greater than zero')
        return value

    def validate(self, attrs):
        supplier = attrs.get('supplier', getattr(self.instance, 'supplier', None))
        purchase_order = attrs.get('purchase_order')
        if purchase_order is not None and supplier is not None and purchase_order.supplier_id != supplier.id:
            raise serializers.ValidationError({'purchase_order': 'Purchase order belongs to another supplier'})
        grn = attrs.get('grn')
        if grn is not None and supplier is not None and grn.supplier_id != supplier.id:
            raise serializers.ValidationError({'grn': 'Goods received note belongs to another supplier'})

        invoice_date = attrs.get('invoice_date', getattr(self.instance, 'invoice_date', None))
        due_date = attrs.get('due_date', getattr(self.instance, 'due_date', None))
        if invoice_date and due_date and due_date < invoice_date:
            raise serializers.ValidationError({'due_date': 'Due date cannot be before the invoice date'})

        if self.instance is not None and 'total_amount' in attrs and attrs['total_amount'] < self.instance.paid_amount:
            raise serializers.ValidationError({'total_amount': 'Total amount cannot be less than the amount already paid'})

        number = attrs.get('invoice_number', getattr(self.instance, 'invoice_number', None))
        if supplier is not None and number:
            duplicates = SupplierInvoice.objects.filter(supplier=supplier, invoice_number=number)
            if self.instance is not None:
                duplicates = duplicates.exclude(pk=self.instance.pk)
            if duplicates.exists():
                raise serializers.ValidationError({'invoice_number': 'This supplier already has an invoice with this number'})
        return attrs


class SupplierInvoicePaymentSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    bank_account = serializers.PrimaryKeyRelatedField(
        queryset=BankAccount.objects.filter(is_deleted=False), required=False, allow_null=True
    )
    notes = serializers.CharField(required=False, allow_blank=True, default='')

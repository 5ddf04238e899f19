import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from django.db.models import ProtectedError
from django.db import transaction
from backoffice.core.cache_utils import invalidate_reports_cache
from backoffice.core.exceptions import BusinessRuleError
from backoffice.core.utils import business_error_response, create_audit_log, generate_document_number, paginate
from .models import ExpenseCategory, PettyCash, BankAccount, SupplierInvoice
from .serializers import (
    ExpenseCategorySerializer, PettyCashSerializer, PettyCashReviewSerializer, BankAccountSerializer,
    SupplierInvoiceSerializer, SupplierInvoicePaymentSerializer, SupplierPaymentSerializer
)
from . import services

logger = logging.getLogger('backoffice.finance')


# Expense category views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def expense_category_list_create(request):
    """List expense categories or create a new one"""
    if request.method == 'GET':
        categories = ExpenseCategory.objects.filter(is_deleted=False)
        type_filter = request.query_params.get('type')
        status_filter = request.query_params.get('status')
        if type_filter:
            categories = categories.filter(type=type_filter)
        if status_filter:
            categories = categories.filter(status=status_filter)
        serializer = ExpenseCategorySerializer(categories, many=True)
        return Response(serializer.data)
    else:
        serializer = ExpenseCategorySerializer(data=request.data)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def expense_category_dropdown(request):
    """Active categories as id/name pairs for pickers"""
    categories = ExpenseCategory.objects.filter(is_deleted=False, status='active')
    type_filter = request.query_params.get('type')
    if type_filter:
        categories = categories.filter(type=type_filter)
    return Response(list(categories.values('id', 'name', 'type')))


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def expense_category_detail(request, pk):
    category = get_object_or_404(ExpenseCategory, pk=pk, is_deleted=False)

    if request.method == 'GET':
        return Response(ExpenseCategorySerializer(category).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = ExpenseCategorySerializer(category, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        category.is_deleted = True
        category.save(update_fields=['is_deleted', 'updated_at'])
        return Response(status=status.HTTP_204_NO_CONTENT)


# Petty cash views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def petty_cash_list_create(request):
    """List petty cash entries or record a new one (pending review)"""
    if request.method == 'GET':
        entries = PettyCash.objects.filter(is_deleted=False).select_related('category', 'created_by', 'reviewed_by')
        for param, field in (('status', 'status'), ('type', 'type'), ('category', 'category_id')):
            value = request.query_params.get(param)
            if value:
                entries = entries.filter(**{field: value})
        entries = entries.order_by('-created_at', '-id')
        return Response(paginate(request, entries, PettyCashSerializer))
    else:
        serializer = PettyCashSerializer(data=request.data)
        if serializer.is_valid():
            with transaction.atomic():
                entry = serializer.save(
                    entry_number=generate_document_number(PettyCash, 'entry_number', 'PC'),
                    created_by=request.user,
                )
                transaction.on_commit(invalidate_reports_cache)
            create_audit_log(
                request=request,
                action='create',
                model_name='PettyCash',
                object_id=entry.id,
                object_name=entry.paid_for,
                object_reference=entry.entry_number,
                changes={'amount': str(entry.amount), 'type': entry.type, 'category': entry.category.name},
            )
            return Response(PettyCashSerializer(entry).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def petty_cash_detail(request, pk):
    entry = get_object_or_404(PettyCash.objects.select_related('category'), pk=pk, is_deleted=False)

    if request.method == 'GET':
        return Response(PettyCashSerializer(entry).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = PettyCashSerializer(entry, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            transaction.on_commit(invalidate_reports_cache)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        entry.is_deleted = True
        entry.save(update_fields=['is_deleted', 'updated_at'])
        transaction.on_commit(invalidate_reports_cache)
        create_audit_log(
            request=request,
            action='delete',
            model_name='PettyCash',
            object_id=entry.id,
            object_name=entry.paid_for,
            object_reference=entry.entry_number,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def petty_cash_review(request, pk):
    """Approve or reject a pending petty cash entry"""
    entry = get_object_or_404(PettyCash, pk=pk, is_deleted=False)
    serializer = PettyCashReviewSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        entry = services.review_petty_cash(entry, serializer.validated_data['status'], user=request.user)
    except BusinessRuleError as exc:
        return business_error_response(exc)

    create_audit_log(
        request=request,
        action='update',
        model_name='PettyCash',
        object_id=entry.id,
        object_name=entry.paid_for,
        object_reference=entry.entry_number,
        changes={'status': {'old': 'PENDING', 'new': entry.status}},
    )
    return Response(PettyCashSerializer(entry).data)


# Bank account views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def bank_account_list_create(request):
    if request.method == 'GET':
        accounts = BankAccount.objects.filter(is_deleted=False)
        status_filter = request.query_params.get('status')
        if status_filter:
            accounts = accounts.filter(status=status_filter)
        return Response(BankAccountSerializer(accounts, many=True).data)
    else:
        serializer = BankAccountSerializer(data=request.data)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def bank_account_detail(request, pk):
    account = get_object_or_404(BankAccount, pk=pk, is_deleted=False)

    if request.method == 'GET':
        return Response(BankAccountSerializer(account).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = BankAccountSerializer(account, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        account.is_deleted = True
        account.save(update_fields=['is_deleted', 'updated_at'])
        return Response(status=status.HTTP_204_NO_CONTENT)


# Supplier invoice views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def supplier_invoice_list_create(request):
    """List supplier invoices (or their aging summary) or record a new invoice"""
    if request.method == 'GET':
        invoices = SupplierInvoice.objects.select_related('supplier').prefetch_related('payments')
        supplier_id = request.query_params.get('supplier')
        status_filter = request.query_params.get('status')
        if supplier_id:
            invoices = invoices.filter(supplier_id=supplier_id)
        if status_filter:
            invoices = invoices.filter(status=status_filter)

        if request.query_params.get('summary', '').lower() == 'true':
            return Response(services.aging_summary(invoices))

        return Response(paginate(request, invoices, SupplierInvoiceSerializer))
    else:
        serializer = SupplierInvoiceSerializer(data=request.data)
        if serializer.is_valid():
            invoice = serializer.save(created_by=request.user)
            create_audit_log(
                request=request,
                action='create',
                model_name='SupplierInvoice',
                object_id=invoice.id,
                object_name=invoice.supplier.name,
                object_reference=invoice.invoice_number,
                changes={'total_amount': str(invoice.total_amount)},
            )
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def supplier_invoice_detail(request, pk):
    invoice = get_object_or_404(SupplierInvoice.objects.select_related('supplier'), pk=pk)

    if request.method == 'GET':
        return Response(SupplierInvoiceSerializer(invoice).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = SupplierInvoiceSerializer(invoice, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            invoice = serializer.save()
            new_status = services.invoice_status(invoice.total_amount, invoice.paid_amount)
            if new_status != invoice.status:
                invoice.status = new_status
                invoice.save(update_fields=['status', 'updated_at'])
            return Response(SupplierInvoiceSerializer(invoice).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if invoice.payments.exists():
            return Response(
                {'error': 'Cannot delete an invoice that has payments'},
                status=status.HTTP_400_BAD_REQUEST
            )
        try:
            invoice.delete()
        except ProtectedError:
            return Response({'error': 'Invoice is referenced by other records'}, status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(
            request=request,
            action='delete',
            model_name='SupplierInvoice',
            object_id=pk,
            object_reference=invoice.invoice_number,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def supplier_invoice_payment_create(request, pk):
    """Pay part or all of a supplier invoice"""
    invoice = get_object_or_404(SupplierInvoice, pk=pk)
    serializer = SupplierInvoicePaymentSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    try:
        payment = services.record_invoice_payment(
            invoice, data['amount'], bank_account=data.get('bank_account'), notes=data.get('notes', ''), user=request.user
        )
    except BusinessRuleError as exc:
        return business_error_response(exc)

    create_audit_log(
        request=request,
        action='payment_add',
        model_name='SupplierInvoice',
        object_id=invoice.id,
        object_reference=invoice.invoice_number,
        changes={'amount': str(payment.amount), 'bank_account': payment.bank_account_id},
    )
    return Response(SupplierPaymentSerializer(payment).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def finance_dashboard(request):
    """Bank balances, this month's petty cash and supplier payables"""
    return Response(services.finance_dashboard())

"""Petty cash review, supplier invoice payments and aging"""
import logging
from datetime import datetime, time
from decimal import Decimal

from django.db import transaction
from django.db.models import Count, F, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from backoffice.core.cache_utils import invalidate_reports_cache
from backoffice.core.exceptions import BusinessRuleError, InvalidStatusTransition, PaymentError
from .models import BankAccount, PettyCash, SupplierInvoice, SupplierPayment

logger = logging.getLogger('backoffice.finance')

REVIEW_DECISIONS = ('APPROVED', 'REJECTED')
AGING_BUCKETS = ('current', '1-30', '31-60', '61-90', '90+')


def review_petty_cash(entry, decision, user=None):
    """Approve or reject a pending petty cash entry"""
    if decision not in REVIEW_DECISIONS:
        raise BusinessRuleError(f'Invalid review decision "{decision}"')

    with transaction.atomic():
        locked = PettyCash.objects.select_for_update().get(pk=entry.pk)
        if locked.status != 'PENDING':
            raise InvalidStatusTransition(
                f'Only pending entries can be reviewed; {locked.entry_number} is {locked.status}'
            )
        locked.status = decision
        locked.reviewed_by = user
        locked.reviewed_at = timezone.now()
        locked.save(update_fields=['status', 'reviewed_by', 'reviewed_at', 'updated_at'])
        transaction.on_commit(invalidate_reports_cache)

    logger.info(f"Petty cash {locked.entry_number} {decision.lower()} by {getattr(user, 'username', None)}")
    return locked


def invoice_status(total_amount, paid_amount):
    if paid_amount <= 0:
        return 'UNPAID'
    if paid_amount >= total_amount:
        return 'PAID'
    return 'PARTIAL'


def record_invoice_payment(invoice, amount, bank_account=None, notes='', user=None):
    """
    Pay ``amount`` against a supplier invoice.

    The amount must be positive and not exceed the outstanding balance. The
    payment, the invoice totals and the bank balance change together.
    """
    amount = Decimal(str(amount))
    if amount <= 0:
        raise PaymentError('Payment amount must be greater than zero')

    with transaction.atomic():
        locked = SupplierInvoice.objects.select_for_update().get(pk=invoice.pk)
        outstanding = locked.total_amount - locked.paid_amount
        if amount > outstanding:
            raise PaymentError(
                f'Payment of {amount} exceeds the outstanding balance of {outstanding} on invoice {locked.invoice_number}'
            )

        if bank_account is not None:
            account = BankAccount.objects.select_for_update().get(pk=bank_account.pk)
            if account.is_deleted or account.status != 'active':
                raise PaymentError(f'Bank account "{account}" is not active')
            BankAccount.objects.filter(pk=account.pk).update(current_balance=F('current_balance') - amount)

        payment = SupplierPayment.objects.create(
            invoice=locked,
            amount=amount,
            bank_account=bank_account,
            notes=notes or '',
            created_by=user,
        )

        locked.paid_amount += amount
        locked.status = invoice_status(locked.total_amount, locked.paid_amount)
        locked.save(update_fields=['paid_amount', 'status', 'updated_at'])
        transaction.on_commit(invalidate_reports_cache)

    logger.info(f"Paid {amount} on supplier invoice {locked.invoice_number}; status {locked.status}")
    return payment


def aging_bucket(due_date, today):
    if due_date is None or due_date >= today:
        return 'current'
    days = (today - due_date).days
    if days <= 30:
        return '1-30'
    if days <= 60:
        return '31-60'
    if days <= 90:
        return '61-90'
    return '90+'


def aging_summary(invoices, today=None):
    """Outstanding balances of ``invoices`` grouped by days past due"""
    today = today or timezone.localdate()
    buckets = {name: {'count': 0, 'amount': Decimal('0.00')} for name in AGING_BUCKETS}
    total = Decimal('0.00')

    for invoice in invoices.exclude(status='PAID').only('due_date', 'total_amount', 'paid_amount'):
        outstanding = invoice.total_amount - invoice.paid_amount
        if outstanding <= 0:
            continue
        bucket = buckets[aging_bucket(invoice.due_date, today)]
        bucket['count'] += 1
        bucket['amount'] += outstanding
        total += outstanding

    return {
        'buckets': {name: {'count': b['count'], 'amount': str(b['amount'])} for name, b in buckets.items()},
        'total_outstanding': str(total),
    }


def finance_dashboard(today=None):
    """
    Headline finance figures: bank balances, petty cash for the current month
    and what is owed to suppliers.
    """
    today = today or timezone.localdate()
    month_start = timezone.make_aware(datetime.combine(today.replace(day=1), time.min))
    month_end = timezone.make_aware(datetime.combine(today, time.max))

    accounts = BankAccount.objects.filter(is_deleted=False, status='active')
    bank_total = accounts.aggregate(total=Coalesce(Sum('current_balance'), Value(Decimal('0.00'))))['total']

    entries = PettyCash.objects.filter(is_deleted=False)
    month_entries = entries.filter(created_at__gte=month_start, created_at__lte=month_end, status='APPROVED')
    month_totals = dict(
        month_entries.values_list('type').annotate(total=Sum('amount')).order_by()
    )
    pending = entries.filter(status='PENDING').aggregate(
        count=Count('id'), amount=Coalesce(Sum('amount'), Value(Decimal('0.00')))
    )

    invoices = SupplierInvoice.objects.all()
    aging = aging_summary(invoices, today)
    overdue = [name for name in AGING_BUCKETS if name != 'current']
    paid_this_month = SupplierPayment.objects.filter(
        paid_at__gte=month_start, paid_at__lte=month_end
    ).aggregate(total=Coalesce(Sum('amount'), Value(Decimal('0.00'))))['total']

    expenses = month_totals.get('expense', Decimal('0.00'))
    income = month_totals.get('income', Decimal('0.00'))
    return {
        'as_of': today.isoformat(),
        'bank': {
            'accounts': accounts.count(),
            'total_balance': str(bank_total),
        },
        'petty_cash': {
            'month_expenses': str(expenses),
            'month_income': str(income),
            'month_net': str(income - expenses),
            'pending_count': pending['count'],
            'pending_amount': str(pending['amount']),
        },
        'payables': {
            'total_outstanding': aging['total_outstanding'],
            'overdue_count': sum(aging['buckets'][name]['count'] for name in overdue),
            'overdue_amount': str(sum((Decimal(aging['buckets'][name]['amount']) for name in overdue), Decimal('0.00'))),
            'paid_this_month': str(paid_this_month),
            'aging': aging['buckets'],
        },
    }

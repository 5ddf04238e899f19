"""
Test suite for Finance module
Tests: expense categories, petty cash entries and review, bank accounts,
supplier invoices, invoice payments and aging
"""
from datetime import date, timedelta
from decimal import Decimal
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from backoffice.core.exceptions import InvalidStatusTransition, PaymentError
from backoffice.core.models import AuditLog
from backoffice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backoffice.finance import services
from backoffice.finance.models import ExpenseCategory, PettyCash, BankAccount, SupplierInvoice


class ExpenseCategoryAPITests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_and_duplicate(self):
        response = self.client.post('/api/v2/expense-categories/', {'name': 'Rent', 'type': 'expense'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        response = self.client.post('/api/v2/expense-categories/', {'name': 'rent ', 'type': 'expense'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_dropdown_lists_active_only(self):
        TestDataFactory.create_expense_category(name='Utilities')
        inactive = TestDataFactory.create_expense_category(name='Old')
        inactive.status = 'inactive'
        inactive.save()
        response = self.client.get('/api/v2/expense-categories/dropdown/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([c['name'] for c in response.data], ['Utilities'])

    def test_soft_delete(self):
        category = TestDataFactory.create_expense_category()
        response = self.client.delete(f'/api/v2/expense-categories/{category.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertTrue(ExpenseCategory.objects.get(pk=category.pk).is_deleted)


class PettyCashTests(TestCase):
    """Test petty cash entries and their review"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.category = TestDataFactory.create_expense_category(name='Supplies')

    def _create(self, amount='25.00'):
        data = {'amount': amount, 'type': 'expense', 'category': self.category.id, 'paid_for': 'Printer paper'}
        return self.client.post('/api/v2/petty-cash/', data, format='json')

    def test_create_pending_entry(self):
        response = self._create()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['entry_number'].startswith('PC-'))
        self.assertEqual(response.data['status'], 'PENDING')
        self.assertEqual(response.data['created_by'], self.user.id)
        self.assertTrue(AuditLog.objects.filter(model_name='PettyCash', action='create').exists())

    def test_amount_must_be_positive(self):
        response = self._create(amount='0')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_deleted_category_rejected(self):
        self.category.is_deleted = True
        self.category.save()
        response = self._create()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_sequential_entry_numbers(self):
        first = self._create().data['entry_number']
        second = self._create().data['entry_number']
        self.assertEqual(int(second.rsplit('-', 1)[-1]), int(first.rsplit('-', 1)[-1]) + 1)

    def test_review_once(self):
        entry_id = self._create().data['id']
        response = self.client.post(f'/api/v2/petty-cash/{entry_id}/review/', {'status': 'APPROVED'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'APPROVED')
        self.assertEqual(response.data['reviewed_by'], self.user.id)

        response = self.client.post(f'/api/v2/petty-cash/{entry_id}/review/', {'status': 'REJECTED'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(PettyCash.objects.get(pk=entry_id).status, 'APPROVED')

    def test_review_rejects_unknown_decision(self):
        entry_id = self._create().data['id']
        response = self.client.post(f'/api/v2/petty-cash/{entry_id}/review/', {'status': 'PENDING'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_reviewed_entry_is_immutable(self):
        entry = TestDataFactory.create_petty_cash(category=self.category, status='APPROVED')
        response = self.client.patch(f'/api/v2/petty-cash/{entry.id}/', {'amount': '1.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_review_service_guards_status(self):
        entry = TestDataFactory.create_petty_cash(category=self.category, status='REJECTED')
        with self.assertRaises(InvalidStatusTransition):
            services.review_petty_cash(entry, 'APPROVED', self.user)

    def test_list_filters_and_soft_delete(self):
        TestDataFactory.create_petty_cash(category=self.category, status='APPROVED')
        pending = TestDataFactory.create_petty_cash(category=self.category)
        response = self.client.get('/api/v2/petty-cash/?status=PENDING')
        self.assertEqual(response.data['count'], 1)

        response = self.client.delete(f'/api/v2/petty-cash/{pending.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        response = self.client.get('/api/v2/petty-cash/')
        self.assertEqual(response.data['count'], 1)


class SupplierInvoiceTests(TestCase):
    """Test supplier invoices and payments"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.supplier = TestDataFactory.create_supplier()
        self.account = TestDataFactory.create_bank_account(balance=Decimal('1000.00'))

    def test_create_invoice(self):
        data = {
            'invoice_number': 'INV-001',
            'supplier': self.supplier.id,
            'invoice_date': '2026-01-10',
            'due_date': '2026-02-10',
            'total_amount': '300.00',
        }
        response = self.client.post('/api/v2/supplier-invoices/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'UNPAID')
        self.assertEqual(Decimal(response.data['outstanding_amount']), Decimal('300.00'))

        response = self.client.post('/api/v2/supplier-invoices/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_due_date_before_invoice_date(self):
        data = {
            'invoice_number': 'INV-002',
            'supplier': self.supplier.id,
            'invoice_date': '2026-02-10',
            'due_date': '2026-01-10',
            'total_amount': '300.00',
        }
        response = self.client.post('/api/v2/supplier-invoices/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('due_date', response.data)

    def test_purchase_order_of_other_supplier(self):
        po = TestDataFactory.create_purchase_order()
        data = {'invoice_number': 'INV-003', 'supplier': self.supplier.id, 'purchase_order': po.id,
                'total_amount': '10.00'}
        response = self.client.post('/api/v2/supplier-invoices/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_partial_then_full_payment(self):
        invoice = TestDataFactory.create_supplier_invoice(supplier=self.supplier, total_amount=Decimal('500.00'))
        url = f'/api/v2/supplier-invoices/{invoice.id}/payments/'
        response = self.client.post(url, {'amount': '200.00', 'bank_account': self.account.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, 'PARTIAL')
        self.assertEqual(BankAccount.objects.get(pk=self.account.pk).current_balance, Decimal('800.00'))

        response = self.client.post(url, {'amount': '300.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, 'PAID')
        self.assertEqual(invoice.outstanding_amount, Decimal('0.00'))
        self.assertEqual(BankAccount.objects.get(pk=self.account.pk).current_balance, Decimal('800.00'))

    def test_overpayment_rejected(self):
        invoice = TestDataFactory.create_supplier_invoice(supplier=self.supplier, total_amount=Decimal('100.00'))
        response = self.client.post(
            f'/api/v2/supplier-invoices/{invoice.id}/payments/',
            {'amount': '150.00', 'bank_account': self.account.id}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(BankAccount.objects.get(pk=self.account.pk).current_balance, Decimal('1000.00'))
        self.assertEqual(SupplierInvoice.objects.get(pk=invoice.pk).paid_amount, Decimal('0.00'))

    def test_inactive_bank_account_rejected(self):
        invoice = TestDataFactory.create_supplier_invoice(supplier=self.supplier)
        self.account.status = 'inactive'
        self.account.save()
        with self.assertRaises(PaymentError):
            services.record_invoice_payment(invoice, Decimal('10.00'), bank_account=self.account)

    def test_total_below_paid_rejected(self):
        invoice = TestDataFactory.create_supplier_invoice(supplier=self.supplier, total_amount=Decimal('100.00'))
        services.record_invoice_payment(invoice, Decimal('60.00'))
        response = self.client.patch(f'/api/v2/supplier-invoices/{invoice.id}/', {'total_amount': '50.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.patch(f'/api/v2/supplier-invoices/{invoice.id}/', {'total_amount': '60.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'PAID')

    def test_delete_with_payments_refused(self):
        invoice = TestDataFactory.create_supplier_invoice(supplier=self.supplier)
        services.record_invoice_payment(invoice, Decimal('10.00'))
        response = self.client.delete(f'/api/v2/supplier-invoices/{invoice.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        unpaid = TestDataFactory.create_supplier_invoice(supplier=self.supplier)
        response = self.client.delete(f'/api/v2/supplier-invoices/{unpaid.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)


class AgingTests(TestCase):

    def test_buckets(self):
        today = date(2026, 6, 30)
        self.assertEqual(services.aging_bucket(None, today), 'current')
        self.assertEqual(services.aging_bucket(today, today), 'current')
        self.assertEqual(services.aging_bucket(today - timedelta(days=30), today), '1-30')
        self.assertEqual(services.aging_bucket(today - timedelta(days=31), today), '31-60')
        self.assertEqual(services.aging_bucket(today - timedelta(days=90), today), '61-90')
        self.assertEqual(services.aging_bucket(today - timedelta(days=91), today), '90+')

    def test_summary(self):
        today = date(2026, 6, 30)
        supplier = TestDataFactory.create_supplier()
        TestDataFactory.create_supplier_invoice(supplier=supplier, total_amount=Decimal('100.00'),
                                                due_date=today + timedelta(days=5))
        TestDataFactory.create_supplier_invoice(supplier=supplier, total_amount=Decimal('200.00'),
                                                due_date=today - timedelta(days=45), paid_amount=Decimal('50.00'),
                                                status='PARTIAL')
        TestDataFactory.create_supplier_invoice(supplier=supplier, total_amount=Decimal('70.00'),
                                                due_date=today - timedelta(days=100), paid_amount=Decimal('70.00'),
                                                status='PAID')

        summary = services.aging_summary(SupplierInvoice.objects.all(), today=today)
        self.assertEqual(summary['buckets']['current'], {'count': 1, 'amount': '100.00'})
        self.assertEqual(summary['buckets']['31-60'], {'count': 1, 'amount': '150.00'})
        self.assertEqual(summary['buckets']['90+']['count'], 0)
        self.assertEqual(summary['total_outstanding'], '250.00')

    def test_summary_endpoint(self):
        user = TestDataFactory.create_user()
        client = AuthenticatedAPIClient()
        client.authenticate_user(user)
        TestDataFactory.create_supplier_invoice(total_amount=Decimal('40.00'))
        response = client.get('/api/v2/supplier-invoices/?summary=true')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_outstanding'], '40.00')


class FinanceDashboardTests(TestCase):
    """Test the finance dashboard figures"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.today = timezone.localdate()

        self.account = TestDataFactory.create_bank_account(balance=Decimal('1000.00'))
        TestDataFactory.create_bank_account(balance=Decimal('500.00'))
        closed = TestDataFactory.create_bank_account(balance=Decimal('999.00'))
        closed.is_deleted = True
        closed.save()

        TestDataFactory.create_petty_cash(amount=Decimal('40.00'), status='APPROVED')
        TestDataFactory.create_petty_cash(amount=Decimal('500.00'), status='APPROVED', type='income')
        TestDataFactory.create_petty_cash(amount=Decimal('100.00'), status='PENDING')
        TestDataFactory.create_petty_cash(amount=Decimal('70.00'), status='REJECTED')

        TestDataFactory.create_supplier_invoice(total_amount=Decimal('500.00'),
                                                due_date=self.today - timedelta(days=40))
        current = TestDataFactory.create_supplier_invoice(total_amount=Decimal('300.00'),
                                                          due_date=self.today + timedelta(days=10))
        services.record_invoice_payment(current, Decimal('100.00'), bank_account=self.account)

    def test_figures(self):
        report = services.finance_dashboard()
        self.assertEqual(report['as_of'], self.today.isoformat())
        self.assertEqual(report['bank']['accounts'], 2)
        self.assertEqual(Decimal(report['bank']['total_balance']), Decimal('1400.00'))

        petty_cash = report['petty_cash']
        self.assertEqual(Decimal(petty_cash['month_expenses']), Decimal('40.00'))
        self.assertEqual(Decimal(petty_cash['month_income']), Decimal('500.00'))
        self.assertEqual(Decimal(petty_cash['month_net']), Decimal('460.00'))
        self.assertEqual(petty_cash['pending_count'], 1)
        self.assertEqual(Decimal(petty_cash['pending_amount']), Decimal('100.00'))

        payables = report['payables']
        self.assertEqual(Decimal(payables['total_outstanding']), Decimal('700.00'))
        self.assertEqual(payables['overdue_count'], 1)
        self.assertEqual(Decimal(payables['overdue_amount']), Decimal('500.00'))
        self.assertEqual(Decimal(payables['paid_this_month']), Decimal('100.00'))
        self.assertEqual(payables['aging']['31-60']['count'], 1)
        self.assertEqual(payables['aging']['current']['count'], 1)

    def test_endpoint(self):
        response = self.client.get('/api/v2/finance/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['bank']['accounts'], 2)

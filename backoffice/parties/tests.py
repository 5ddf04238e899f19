"""
Test suite for Parties module
"""
from django.test import TestCase
from rest_framework import status
from backoffice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backoffice.core.models import AuditLog
from backoffice.parties.models import Supplier


class SupplierTests(TestCase):
    """Test supplier endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_supplier(self):
        data = {'name': 'Acme Textiles', 'phone': '0771234567', 'payment_terms': 'NET30'}
        response = self.client.post('/api/v2/suppliers/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Supplier.objects.get(name='Acme Textiles').payment_terms, 'NET30')

    def test_search_and_status_filter(self):
        TestDataFactory.create_supplier(name='Northwind')
        inactive = TestDataFactory.create_supplier(name='Northstar')
        inactive.status = 'inactive'
        inactive.save()
        response = self.client.get('/api/v2/suppliers/?search=north&status=active')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([s['name'] for s in response.data], ['Northwind'])

    def test_delete_supplier_with_purchase_orders_refused(self):
        supplier = TestDataFactory.create_supplier()
        TestDataFactory.create_purchase_order(user=self.user, supplier=supplier)
        response = self.client.delete(f'/api/v2/suppliers/{supplier.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Supplier.objects.filter(pk=supplier.id).exists())

    def test_delete_supplier(self):
        supplier = TestDataFactory.create_supplier()
        response = self.client.delete(f'/api/v2/suppliers/{supplier.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_delete_supplier_with_invoices_refused(self):
        supplier = TestDataFactory.create_supplier()
        TestDataFactory.create_supplier_invoice(supplier=supplier)
        response = self.client.delete(f'/api/v2/suppliers/{supplier.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('invoices', response.data['error'])
        self.assertTrue(Supplier.objects.filter(pk=supplier.id).exists())
        self.assertFalse(
            AuditLog.objects.filter(model_name='Supplier', action='delete', object_id=str(supplier.id)).exists()
        )

    def test_delete_supplier_writes_audit_log(self):
        supplier = TestDataFactory.create_supplier()
        response = self.client.delete(f'/api/v2/suppliers/{supplier.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertTrue(
            AuditLog.objects.filter(model_name='Supplier', action='delete', object_id=str(supplier.id)).exists()
        )

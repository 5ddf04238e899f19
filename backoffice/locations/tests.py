"""
Test suite for Locations module
"""
from django.test import TestCase
from rest_framework import status
from backoffice.core.models import AuditLog
from backoffice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backoffice.locations.models import StockLocation


class LocationTests(TestCase):
    """Test stock location endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_location(self):
        data = {'name': 'Main Store', 'code': 'MAIN', 'location_type': 'store'}
        response = self.client.post('/api/v2/locations/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(StockLocation.objects.filter(code='MAIN').exists())
        self.assertTrue(AuditLog.objects.filter(model_name='StockLocation', action='create').exists())

    def test_duplicate_code_rejected(self):
        TestDataFactory.create_location(code='DUP')
        response = self.client.post('/api/v2/locations/', {'name': 'Other', 'code': 'DUP'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_filter_by_type(self):
        TestDataFactory.create_location(location_type='store')
        TestDataFactory.create_location(location_type='warehouse')
        response = self.client.get('/api/v2/locations/?location_type=warehouse')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['location_type'], 'warehouse')

    def test_delete_empty_location(self):
        location = TestDataFactory.create_location()
        response = self.client.delete(f'/api/v2/locations/{location.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(StockLocation.objects.filter(pk=location.id).exists())

    def test_delete_location_with_stock_refused(self):
        location = TestDataFactory.create_location()
        TestDataFactory.create_inventory(TestDataFactory.create_product(), location, quantity=3)
        response = self.client.delete(f'/api/v2/locations/{location.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(StockLocation.objects.filter(pk=location.id).exists())

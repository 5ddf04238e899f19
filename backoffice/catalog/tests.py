"""
Test suite for Catalog module
Tests: categories, brands, sizes, products (filters, validation, stock view), variants
"""
from decimal import Decimal
from django.test import TestCase
from rest_framework import status
from backoffice.catalog.models import Product, Size
from backoffice.core.models import AuditLog
from backoffice.core.test_utils import TestDataFactory, AuthenticatedAPIClient


class CategoryBrandSizeTests(TestCase):
    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_category_with_parent(self):
        parent = TestDataFactory.create_category(name='Clothing')
        response = self.client.post('/api/v2/categories/', {'name': 'Shirts', 'parent': parent.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['parent'], parent.id)

    def test_create_brand(self):
        response = self.client.post('/api/v2/brands/', {'name': 'Basics'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_sizes_ordered_by_sort_order(self):
        Size.objects.create(name='L', sort_order=3)
        Size.objects.create(name='S', sort_order=1)
        Size.objects.create(name='M', sort_order=2)
        response = self.client.get('/api/v2/sizes/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([s['name'] for s in response.data], ['S', 'M', 'L'])


class ProductTests(TestCase):
    """Test product endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.category = TestDataFactory.create_category()
        self.brand = TestDataFactory.create_brand()

    def test_create_product(self):
        data = {
            'name': 'Linen Shirt',
            'sku': 'LS-001',
            'category': self.category.id,
            'brand': self.brand.id,
            'buying_price': '1200.00',
            'selling_price': '2500.00',
        }
        response = self.client.post('/api/v2/products/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        product = Product.objects.get(sku='LS-001')
        self.assertEqual(product.total_stock, 0)
        self.assertFalse(product.in_stock)
        self.assertTrue(AuditLog.objects.filter(model_name='Product', action='create', object_reference='LS-001').exists())

    def test_total_stock_is_read_only(self):
        data = {'name': 'Tee', 'sku': 'T-1', 'selling_price': '10.00', 'total_stock': 99, 'in_stock': True}
        response = self.client.post('/api/v2/products/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Product.objects.get(sku='T-1').total_stock, 0)

    def test_discount_cannot_exceed_selling_price(self):
        data = {'name': 'Tee', 'sku': 'T-2', 'selling_price': '10.00', 'discount': '15.00'}
        response = self.client.post('/api/v2/products/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('discount', response.data)

    def test_negative_price_rejected(self):
        data = {'name': 'Tee', 'sku': 'T-3', 'buying_price': '-1.00'}
        response = self.client.post('/api/v2/products/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_search_matches_every_word(self):
        TestDataFactory.create_product(name='Blue Linen Shirt', category=self.category, brand=self.brand)
        TestDataFactory.create_product(name='Blue Denim Jeans', category=self.category, brand=self.brand)
        response = self.client.get('/api/v2/products/?search=blue linen')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['name'], 'Blue Linen Shirt')

    def test_search_by_variant_sku(self):
        product = TestDataFactory.create_product(category=self.category, brand=self.brand)
        TestDataFactory.create_variant(product, name='Red', sku='RED-XYZ-1')
        response = self.client.get('/api/v2/products/?search=RED-XYZ')
        self.assertEqual(response.data['count'], 1)

    def test_low_stock_filter(self):
        location = TestDataFactory.create_location()
        low = TestDataFactory.create_product(name='Low', category=self.category, brand=self.brand)
        plenty = TestDataFactory.create_product(name='Plenty', category=self.category, brand=self.brand)
        TestDataFactory.create_inventory(low, location, quantity=2)
        TestDataFactory.create_inventory(plenty, location, quantity=50)
        response = self.client.get('/api/v2/products/?low_stock=true')
        names = [p['name'] for p in response.data['results']]
        self.assertIn('Low', names)
        self.assertNotIn('Plenty', names)

    def test_pagination(self):
        for _ in range(3):
            TestDataFactory.create_product(category=self.category, brand=self.brand)
        response = self.client.get('/api/v2/products/?page=2&size=2')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 3)
        self.assertEqual(response.data['page'], 2)
        self.assertEqual(len(response.data['results']), 1)
        self.assertIsNone(response.data['next'])

    def test_product_stock_grouped_by_location(self):
        product = TestDataFactory.create_product(category=self.category, brand=self.brand)
        store = TestDataFactory.create_location(name='Store')
        warehouse = TestDataFactory.create_location(name='Warehouse', location_type='warehouse')
        TestDataFactory.create_inventory(product, store, quantity=3, size='M')
        TestDataFactory.create_inventory(product, store, quantity=2, size='L')
        TestDataFactory.create_inventory(product, warehouse, quantity=10, size='M')
        response = self.client.get(f'/api/v2/products/{product.id}/stock/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_stock'], 15)
        by_location = {entry['location_name']: entry['quantity'] for entry in response.data['locations']}
        self.assertEqual(by_location, {'Store': 5, 'Warehouse': 10})

    def test_delete_sold_product_refused(self):
        product = TestDataFactory.create_product(category=self.category, brand=self.brand)
        TestDataFactory.create_order(items=[{'product': product, 'quantity': 1, 'price': Decimal('10.00')}])
        response = self.client.delete(f'/api/v2/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Product.objects.filter(pk=product.id).exists())


class ProductVariantTests(TestCase):
    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.product = TestDataFactory.create_product()

    def test_create_variant_with_sizes(self):
        small = Size.objects.create(name='S', sort_order=1)
        large = Size.objects.create(name='L', sort_order=3)
        data = {'product': self.product.id, 'name': 'Navy', 'sku': 'NAVY-1', 'sizes': [small.id, large.id]}
        response = self.client.post('/api/v2/variants/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        response = self.client.get(f'/api/v2/products/{self.product.id}/variants/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(sorted(response.data[0]['size_names']), ['L', 'S'])

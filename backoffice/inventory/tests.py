"""
Test suite for Inventory module
Tests: stock ledger services, add / bulk add / set quantity endpoints, adjustments
(add, remove, damage, return, transfer) and derived product stock
"""
import threading

from django.db import connection
from django.test import TestCase, TransactionTestCase, skipUnlessDBFeature
from django.test.utils import CaptureQueriesContext
from rest_framework import status
from backoffice.catalog.models import Product
from backoffice.core.exceptions import BusinessRuleError, InsufficientStockError
from backoffice.core.models import AuditLog
from backoffice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backoffice.inventory import services
from backoffice.inventory.models import InventoryItem, InventoryAdjustment


class StockServiceTests(TestCase):
    """Test increase / decrease primitives"""

    def setUp(self):
        self.product = TestDataFactory.create_product()
        self.location = TestDataFactory.create_location()

    def test_increase_creates_line_and_updates_product(self):
        item = services.increase_stock(self.product, None, 'M', self.location, 5)
        self.assertEqual(item.quantity, 5)
        self.product.refresh_from_db()
        self.assertEqual(self.product.total_stock, 5)
        self.assertTrue(self.product.in_stock)

    def test_increase_existing_line(self):
        TestDataFactory.create_inventory(self.product, self.location, quantity=3, size='M')
        services.increase_stock(self.product, None, 'M', self.location, 4)
        self.assertEqual(InventoryItem.objects.get(product=self.product, size='M').quantity, 7)
        self.assertEqual(InventoryItem.objects.filter(product=self.product).count(), 1)

    def test_decrease_strict_raises_when_short(self):
        TestDataFactory.create_inventory(self.product, self.location, quantity=2)
        with self.assertRaises(InsufficientStockError):
            services.decrease_stock(self.product, None, '', self.location, 3)
        self.assertEqual(InventoryItem.objects.get(product=self.product).quantity, 2)

    def test_decrease_partial_clamps_at_zero(self):
        TestDataFactory.create_inventory(self.product, self.location, quantity=2)
        removed = services.decrease_stock(self.product, None, '', self.location, 5, allow_partial=True)
        self.assertEqual(removed, 2)
        self.assertEqual(InventoryItem.objects.get(product=self.product).quantity, 0)
        self.product.refresh_from_db()
        self.assertFalse(self.product.in_stock)

    def test_decrease_missing_line_raises(self):
        with self.assertRaises(InsufficientStockError):
            services.decrease_stock(self.product, None, '', self.location, 1, allow_partial=True)

    def test_decrease_missing_line_allowed_removes_nothing(self):
        removed = services.decrease_stock(
            self.product, None, '', self.location, 1, allow_partial=True, allow_missing=True
        )
        self.assertEqual(removed, 0)
        self.assertFalse(InventoryItem.objects.filter(product=self.product).exists())

    def test_quantity_must_be_positive_integer(self):
        with self.assertRaises(BusinessRuleError):
            services.increase_stock(self.product, None, '', self.location, -1)
        with self.assertRaises(BusinessRuleError):
            services.decrease_stock(self.product, None, '', self.location, 0)

    def test_variant_lines_are_separate(self):
        red = TestDataFactory.create_variant(self.product, name='Red')
        blue = TestDataFactory.create_variant(self.product, name='Blue')
        services.increase_stock(self.product, red, 'M', self.location, 1)
        services.increase_stock(self.product, blue, 'M', self.location, 2)
        self.assertEqual(InventoryItem.objects.filter(product=self.product).count(), 2)
        self.product.refresh_from_db()
        self.assertEqual(self.product.total_stock, 3)


class InventoryAPITests(TestCase):
    """Test inventory endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.product = TestDataFactory.create_product()
        self.location = TestDataFactory.create_location()

    def test_add_single_line(self):
        data = {'product': self.product.id, 'location': self.location.id, 'size': 'M', 'quantity': 4}
        response = self.client.post('/api/v2/inventory/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['quantity'], 4)
        self.assertTrue(AuditLog.objects.filter(action='stock_adjust', model_name='InventoryItem').exists())

    def test_add_bulk_sizes(self):
        TestDataFactory.create_inventory(self.product, self.location, quantity=1, size='S')
        data = {
            'product': self.product.id,
            'location': self.location.id,
            'bulk': True,
            'size_quantities': [{'size': 'S', 'quantity': 2}, {'size': 'M', 'quantity': 5}],
        }
        response = self.client.post('/api/v2/inventory/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['created'], 1)
        self.assertEqual(response.data['updated'], 1)
        self.assertEqual(InventoryItem.objects.get(product=self.product, size='S').quantity, 3)
        self.product.refresh_from_db()
        self.assertEqual(self.product.total_stock, 8)

    def test_add_requires_quantity(self):
        data = {'product': self.product.id, 'location': self.location.id}
        response = self.client.post('/api/v2/inventory/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_variant_of_other_product_rejected(self):
        other = TestDataFactory.create_variant(TestDataFactory.create_product())
        data = {'product': self.product.id, 'variant': other.id, 'location': self.location.id, 'quantity': 1}
        response = self.client.post('/api/v2/inventory/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_set_quantity(self):
        item = TestDataFactory.create_inventory(self.product, self.location, quantity=5)
        response = self.client.put(f'/api/v2/inventory/{item.id}/', {'quantity': 12}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['quantity'], 12)
        self.product.refresh_from_db()
        self.assertEqual(self.product.total_stock, 12)
        log = AuditLog.objects.filter(model_name='InventoryItem').latest('created_at')
        self.assertEqual(log.changes['quantity'], {'old': 5, 'new': 12})

    def test_negative_quantity_rejected(self):
        item = TestDataFactory.create_inventory(self.product, self.location, quantity=5)
        response = self.client.put(f'/api/v2/inventory/{item.id}/', {'quantity': -1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_filters_and_default_page_size(self):
        other_location = TestDataFactory.create_location()
        TestDataFactory.create_inventory(self.product, self.location, quantity=1, size='S')
        TestDataFactory.create_inventory(self.product, other_location, quantity=1, size='S')
        TestDataFactory.create_inventory(self.product, self.location, quantity=1, size='M')
        response = self.client.get(f'/api/v2/inventory/?location={self.location.id}&item_size=S')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['size'], 10)

    def test_size_param_sets_page_size(self):
        TestDataFactory.create_inventory(self.product, self.location, quantity=1, size='S')
        TestDataFactory.create_inventory(self.product, self.location, quantity=1, size='M')
        response = self.client.get(f'/api/v2/inventory/?location={self.location.id}&size=1')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['size'], 1)
        self.assertEqual(len(response.data['results']), 1)


class AdjustmentTests(TestCase):
    """Test inventory adjustments"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.product = TestDataFactory.create_product()
        self.store = TestDataFactory.create_location(name='Store')
        self.warehouse = TestDataFactory.create_location(name='Warehouse', location_type='warehouse')

    def _post(self, adjustment_type, items, reason='Count'):
        data = {'adjustment_type': adjustment_type, 'reason': reason, 'items': items}
        return self.client.post('/api/v2/inventory/adjustments/', data, format='json')

    def _line(self, quantity, location, destination=None, size='M'):
        line = {'product': self.product.id, 'size': size, 'quantity': quantity, 'location': location.id}
        if destination is not None:
            line['destination_location'] = destination.id
        return line

    def _quantity(self, location, size='M'):
        item = InventoryItem.objects.filter(product=self.product, location=location, size=size).first()
        return item.quantity if item else None

    def test_add_adjustment(self):
        response = self._post('add', [self._line(6, self.store)])
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['adjustment_number'].startswith('ADJ-'))
        self.assertEqual(self._quantity(self.store), 6)
        self.assertEqual(response.data['items'][0]['applied_quantity'], 6)

    def test_damage_clamps_and_records_applied_quantity(self):
        TestDataFactory.create_inventory(self.product, self.store, quantity=2, size='M')
        response = self._post('damage', [self._line(5, self.store)])
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(self._quantity(self.store), 0)
        self.assertEqual(response.data['items'][0]['applied_quantity'], 2)

    def test_remove_missing_line_removes_nothing(self):
        response = self._post('remove', [self._line(3, self.store)])
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['items'][0]['applied_quantity'], 0)
        self.assertIsNone(self._quantity(self.store))
        self.assertEqual(InventoryAdjustment.objects.count(), 1)

    def test_transfer_from_missing_line_fails(self):
        response = self._post('transfer', [self._line(1, self.warehouse, destination=self.store)])
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertFalse(InventoryAdjustment.objects.exists())

    def test_transfer_moves_stock(self):
        TestDataFactory.create_inventory(self.product, self.warehouse, quantity=10, size='M')
        response = self._post('transfer', [self._line(4, self.warehouse, destination=self.store)])
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(self._quantity(self.warehouse), 6)
        self.assertEqual(self._quantity(self.store), 4)
        self.product.refresh_from_db()
        self.assertEqual(self.product.total_stock, 10)

    def test_transfer_short_source_rolls_back_everything(self):
        TestDataFactory.create_inventory(self.product, self.warehouse, quantity=10, size='M')
        TestDataFactory.create_inventory(self.product, self.warehouse, quantity=1, size='L')
        response = self._post('transfer', [
            self._line(4, self.warehouse, destination=self.store, size='M'),
            self._line(3, self.warehouse, destination=self.store, size='L'),
        ])
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(self._quantity(self.warehouse, 'M'), 10)
        self.assertEqual(self._quantity(self.warehouse, 'L'), 1)
        self.assertIsNone(self._quantity(self.store, 'M'))
        self.assertFalse(InventoryAdjustment.objects.exists())

    def test_transfer_requires_distinct_destination(self):
        response = self._post('transfer', [self._line(1, self.store, destination=self.store)])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self._post('transfer', [self._line(1, self.store)])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_zero_quantity_rejected(self):
        response = self._post('add', [self._line(0, self.store)])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_empty_items_rejected(self):
        response = self._post('add', [])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_filter_by_type(self):
        self._post('add', [self._line(1, self.store)])
        self._post('remove', [self._line(1, self.store)])
        response = self.client.get('/api/v2/inventory/adjustments/?type=remove')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['adjustment_type'], 'remove')

    def test_product_total_matches_ledger(self):
        self._post('add', [self._line(5, self.store), self._line(3, self.warehouse)])
        self._post('remove', [self._line(2, self.store)])
        total = sum(InventoryItem.objects.filter(product=self.product).values_list('quantity', flat=True))
        self.assertEqual(Product.objects.get(pk=self.product.pk).total_stock, total)
        self.assertEqual(total, 6)


@skipUnlessDBFeature('has_select_for_update')
class StockLockingTests(TestCase):
    """Stock moves lock the ledger line they change"""

    def test_decrease_selects_line_for_update(self):
        product = TestDataFactory.create_product()
        location = TestDataFactory.create_location()
        TestDataFactory.create_inventory(product, location, quantity=5)
        with CaptureQueriesContext(connection) as queries:
            services.decrease_stock(product, None, '', location, 2)
        table = InventoryItem._meta.db_table
        self.assertTrue(any(
            table in query['sql'] and 'FOR UPDATE' in query['sql'] for query in queries.captured_queries
        ))


@skipUnlessDBFeature('has_select_for_update')
class ConcurrentStockTests(TransactionTestCase):
    """Two writers on one line, each on its own connection"""

    def _run_in_threads(self, target, count=2):
        barrier = threading.Barrier(count)
        results, errors = [], []

        def worker():
            try:
                barrier.wait()
                results.append(target())
            except InsufficientStockError as exc:
                errors.append(exc)
            finally:
                connection.close()

        threads = [threading.Thread(target=worker) for _ in range(count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return results, errors

    def test_concurrent_decreases_never_oversell(self):
        product = TestDataFactory.create_product()
        location = TestDataFactory.create_location()
        TestDataFactory.create_inventory(product, location, quantity=5)

        results, errors = self._run_in_threads(
            lambda: services.decrease_stock(product, None, '', location, 3)
        )

        self.assertEqual(results, [3])
        self.assertEqual(len(errors), 1)
        self.assertEqual(InventoryItem.objects.get(product=product).quantity, 2)
        product.refresh_from_db()
        self.assertEqual(product.total_stock, 2)

    def test_concurrent_adjustments_get_distinct_numbers(self):
        product = TestDataFactory.create_product()
        location = TestDataFactory.create_location()

        results, errors = self._run_in_threads(
            lambda: services.create_adjustment(
                'add', [{'product': product, 'quantity': 1, 'location': location}]
            ).adjustment_number
        )

        self.assertEqual(errors, [])
        self.assertEqual(len(set(results)), 2)
        self.assertEqual(InventoryItem.objects.get(product=product).quantity, 2)

"""
Test suite for Orders module
Tests: placing store and website orders, stock effects, coupon redemption,
updates, split payments and restocking
"""
from decimal import Decimal
from django.test import TestCase
from rest_framework import status
from backoffice.catalog.models import Product
from backoffice.core.exceptions import BusinessRuleError, InsufficientStockError
from backoffice.core.models import AuditLog
from backoffice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backoffice.inventory.models import InventoryItem
from backoffice.orders import services
from backoffice.orders.models import Order, PaymentMethod
from backoffice.promotions.models import CouponUsage


class OnlineStockLocationTests(TestCase):

    def test_missing_setting(self):
        with self.assertRaises(BusinessRuleError):
            services.online_stock_location()

    def test_resolves_by_id_or_code(self):
        location = TestDataFactory.create_location(code='WEB')
        TestDataFactory.create_setting('online_stock_location', location.id)
        self.assertEqual(services.online_stock_location(), location)
        TestDataFactory.create_setting('online_stock_location', 'WEB')
        self.assertEqual(services.online_stock_location(), location)

    def test_unknown_location(self):
        TestDataFactory.create_setting('online_stock_location', 'NOPE')
        with self.assertRaises(BusinessRuleError):
            services.online_stock_location()


class PlaceOrderAPITests(TestCase):
    """Test placing orders through the API"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.store = TestDataFactory.create_location(name='Store')
        self.online = TestDataFactory.create_location(name='Online', code='ONLINE', location_type='warehouse')
        TestDataFactory.create_setting('online_stock_location', 'ONLINE')
        self.product = TestDataFactory.create_product(buying_price=Decimal('40.00'))

    def _stock(self, location):
        item = InventoryItem.objects.filter(product=self.product, location=location).first()
        return item.quantity if item else None

    def _order(self, source='store', quantity=2, **extra):
        data = {
            'source': source,
            'customer_name': 'Jane Doe',
            'customer_email': 'jane@example.com',
            'payment_status': 'Paid',
            'payment_method': 'cash',
            'items': [{'product': self.product.id, 'size': 'M', 'quantity': quantity, 'price': '100.00'}],
        }
        if source == 'store':
            data['location'] = self.store.id
        data.update(extra)
        return self.client.post('/api/v2/orders/', data, format='json')

    def test_store_order_takes_stock(self):
        TestDataFactory.create_inventory(self.product, self.store, quantity=5, size='M')
        response = self._order(shipping_fee='10.00', fee='5.00')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['order_number'].startswith('ORD-'))
        self.assertEqual(Decimal(response.data['total']), Decimal('215.00'))
        self.assertEqual(response.data['items'][0]['buying_price'], '40.00')
        self.assertEqual(self._stock(self.store), 3)
        self.assertEqual(Product.objects.get(pk=self.product.pk).total_stock, 3)
        self.assertTrue(AuditLog.objects.filter(action='order_create', object_id=response.data['id']).exists())

    def test_store_order_clamps_short_stock(self):
        TestDataFactory.create_inventory(self.product, self.store, quantity=1, size='M')
        response = self._order(quantity=3)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(self._stock(self.store), 0)
        self.assertEqual(response.data['items'][0]['quantity'], 3)

    def test_website_order_uses_online_location(self):
        TestDataFactory.create_inventory(self.product, self.store, quantity=5, size='M')
        TestDataFactory.create_inventory(self.product, self.online, quantity=5, size='M')
        response = self._order(source='website', location=self.store.id)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['location'], self.online.id)
        self.assertEqual(self._stock(self.online), 3)
        self.assertEqual(self._stock(self.store), 5)

    def test_website_order_short_stock_fails_whole_order(self):
        TestDataFactory.create_inventory(self.product, self.online, quantity=1, size='M')
        response = self._order(source='website', quantity=2)
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(self._stock(self.online), 1)
        self.assertFalse(Order.objects.exists())

    def test_website_order_without_setting(self):
        TestDataFactory.create_inventory(self.product, self.online, quantity=5, size='M')
        TestDataFactory.create_setting('online_stock_location', '')
        response = self._order(source='website')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Order.objects.exists())

    def test_store_order_requires_location(self):
        response = self._order(location=None)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_duplicate_order_number(self):
        TestDataFactory.create_inventory(self.product, self.store, quantity=5, size='M')
        self._order(order_number='WEB-1001')
        response = self._order(order_number='WEB-1001')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('order_number', response.data)

    def test_line_discount_and_payments(self):
        TestDataFactory.create_inventory(self.product, self.store, quantity=5, size='M')
        data = {
            'items': [{'product': self.product.id, 'size': 'M', 'quantity': 2, 'price': '100.00', 'discount': '10.00'}],
            'payments': [
                {'payment_method': 'cash', 'amount': '100.00'},
                {'payment_method': 'card', 'amount': '80.00'},
            ],
        }
        response = self._order(**data)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Decimal(response.data['discount']), Decimal('20.00'))
        self.assertEqual(Decimal(response.data['total']), Decimal('180.00'))
        self.assertEqual(len(response.data['payments']), 2)

    def test_coupon_redeemed_with_order(self):
        TestDataFactory.create_inventory(self.product, self.store, quantity=5, size='M')
        coupon = TestDataFactory.create_coupon(code='SAVE10')
        response = self._order(coupon_code='save10')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['coupon_code'], 'SAVE10')
        self.assertEqual(Decimal(response.data['discount']), Decimal('20.00'))
        self.assertEqual(Decimal(response.data['total']), Decimal('180.00'))
        coupon.refresh_from_db()
        self.assertEqual(coupon.usage_count, 1)
        usage = CouponUsage.objects.get(coupon=coupon)
        self.assertEqual(usage.customer, 'jane@example.com')

    def test_invalid_coupon_rolls_back_order(self):
        TestDataFactory.create_inventory(self.product, self.store, quantity=5, size='M')
        TestDataFactory.create_coupon(code='OLD', status='INACTIVE')
        response = self._order(coupon_code='OLD')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Order.objects.exists())
        self.assertEqual(self._stock(self.store), 5)

    def test_list_filters(self):
        TestDataFactory.create_order(payment_status='Paid', source='store')
        TestDataFactory.create_order(payment_status='Refunded', source='website')
        response = self.client.get('/api/v2/orders/?payment_status=Refunded')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['source'], 'website')


class OrderLifecycleTests(TestCase):
    """Test updates, payments and restocking"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.location = TestDataFactory.create_location()
        self.product = TestDataFactory.create_product()
        TestDataFactory.create_inventory(self.product, self.location, quantity=0, size='M')
        self.order = TestDataFactory.create_order(
            items=[{'product': self.product, 'quantity': 3, 'price': '50.00', 'size': 'M'}],
            location=self.location,
        )

    def test_update_status(self):
        response = self.client.patch(f'/api/v2/orders/{self.order.id}/', {'status': 'completed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'completed')
        log = AuditLog.objects.get(action='order_update')
        self.assertEqual(log.changes['status'], {'old': 'pending', 'new': 'completed'})

    def test_refunded_order_cannot_be_updated(self):
        self.order.payment_status = 'Refunded'
        self.order.save()
        response = self.client.patch(f'/api/v2/orders/{self.order.id}/', {'status': 'completed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_restock_requires_refund_or_return(self):
        response = self.client.post(f'/api/v2/orders/{self.order.id}/restock/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(InventoryItem.objects.get(product=self.product).quantity, 0)

    def test_restock_happens_once(self):
        self.order.payment_status = 'Returned'
        self.order.save()
        response = self.client.post(f'/api/v2/orders/{self.order.id}/restock/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['restocked'])
        self.assertEqual(InventoryItem.objects.get(product=self.product).quantity, 3)
        self.assertEqual(Product.objects.get(pk=self.product.pk).total_stock, 3)

        response = self.client.post(f'/api/v2/orders/{self.order.id}/restock/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(InventoryItem.objects.get(product=self.product).quantity, 3)

    def test_restock_without_location(self):
        order = TestDataFactory.create_order(
            items=[{'product': self.product, 'quantity': 1, 'price': '50.00'}],
            payment_status='Refunded',
        )
        with self.assertRaises(BusinessRuleError):
            services.restock_order(order)

    def test_add_payment_and_refund(self):
        response = self.client.post(
            f'/api/v2/orders/{self.order.id}/payments/', {'payment_method': 'card', 'amount': '150.00'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        response = self.client.post(
            f'/api/v2/orders/{self.order.id}/payments/', {'payment_method': 'card', 'amount': '-20.00'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(self.order.payments.count(), 2)
        self.assertTrue(AuditLog.objects.filter(action='payment_add').exists())

    def test_zero_payment_rejected(self):
        response = self.client.post(
            f'/api/v2/orders/{self.order.id}/payments/', {'payment_method': 'card', 'amount': '0'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class PlaceOrderServiceTests(TestCase):

    def setUp(self):
        self.location = TestDataFactory.create_location()
        self.product = TestDataFactory.create_product()

    def test_requires_items(self):
        with self.assertRaises(BusinessRuleError):
            services.place_order({'source': 'store', 'location': self.location, 'items': []})

    def test_missing_stock_line_fails_store_order(self):
        data = {
            'source': 'store',
            'location': self.location,
            'items': [{'product': self.product, 'quantity': 1, 'price': Decimal('10.00')}],
        }
        with self.assertRaises(InsufficientStockError):
            services.place_order(data)
        self.assertFalse(Order.objects.exists())


class PaymentMethodAPITests(TestCase):
    """Test payment method endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_and_list_by_source(self):
        response = self.client.post(
            '/api/v2/payment-methods/',
            {'name': 'Cash on delivery', 'fee': '250.00', 'available': ['website', 'website']},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['available'], ['website'])
        PaymentMethod.objects.create(name='Card', available=['store', 'website'])

        response = self.client.get('/api/v2/payment-methods/?source=store')
        self.assertEqual([m['name'] for m in response.data], ['Card'])
        response = self.client.get('/api/v2/payment-methods/?source=website')
        self.assertEqual(len(response.data), 2)

    def test_duplicate_name_case_insensitive(self):
        PaymentMethod.objects.create(name='Card')
        response = self.client.post('/api/v2/payment-methods/', {'name': ' card '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('name', response.data)

    def test_unknown_source_rejected(self):
        response = self.client.post('/api/v2/payment-methods/', {'name': 'Voucher', 'available': ['kiosk']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_negative_fee_rejected(self):
        response = self.client.post('/api/v2/payment-methods/', {'name': 'Voucher', 'fee': '-1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_fee_change_is_audited(self):
        method = PaymentMethod.objects.create(name='Card', fee=Decimal('0.00'))
        response = self.client.patch(f'/api/v2/payment-methods/{method.id}/', {'fee': '10.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        log = AuditLog.objects.get(model_name='PaymentMethod', action='update')
        self.assertEqual(log.changes['fee'], {'old': '0.00', 'new': '10.00'})

    def test_rename_keeps_own_name(self):
        method = PaymentMethod.objects.create(name='Card')
        response = self.client.put(f'/api/v2/payment-methods/{method.id}/', {'name': 'Card', 'status': 'Inactive'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'Inactive')

    def test_delete(self):
        method = PaymentMethod.objects.create(name='Card')
        response = self.client.delete(f'/api/v2/payment-methods/{method.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(PaymentMethod.objects.exists())
        self.assertTrue(AuditLog.objects.filter(model_name='PaymentMethod', action='delete').exists())

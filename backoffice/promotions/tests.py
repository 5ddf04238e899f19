"""
Test suite for Promotions module
Tests: coupon CRUD, validation rules, discount calculation, redemption, combos
"""
from datetime import timedelta
from decimal import Decimal
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from backoffice.core.exceptions import CouponError
from backoffice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backoffice.promotions import services
from backoffice.promotions.models import Combo, ComboItem, Coupon, CouponUsage


class CouponValidationTests(TestCase):
    """Test validate_coupon rules"""

    def setUp(self):
        self.product = TestDataFactory.create_product()
        self.cart = [{'product': self.product.id, 'quantity': 2, 'price': Decimal('50.00')}]

    def test_unknown_code(self):
        result = services.validate_coupon('NOPE', cart_total=100)
        self.assertFalse(result['valid'])
        self.assertEqual(result['message'], 'Invalid coupon code')

    def test_percentage_is_case_insensitive(self):
        TestDataFactory.create_coupon(code='SPRING', discount_value=Decimal('15'))
        result = services.validate_coupon('spring', cart_total=100, cart_items=self.cart)
        self.assertTrue(result['valid'])
        self.assertEqual(result['discount'], Decimal('15.00'))

    def test_percentage_capped_by_max_discount(self):
        TestDataFactory.create_coupon(code='BIG', discount_value=Decimal('50'), max_discount=Decimal('20.00'))
        result = services.validate_coupon('BIG', cart_total=100, cart_items=self.cart)
        self.assertEqual(result['discount'], Decimal('20.00'))

    def test_fixed_never_exceeds_subtotal(self):
        TestDataFactory.create_coupon(code='FIXED', discount_type='FIXED', discount_value=Decimal('500'))
        result = services.validate_coupon('FIXED', cart_total=100, cart_items=self.cart)
        self.assertEqual(result['discount'], Decimal('100.00'))

    def test_free_shipping(self):
        TestDataFactory.create_coupon(code='SHIP', discount_type='FREE_SHIPPING', discount_value=0)
        result = services.validate_coupon('SHIP', cart_total=100, cart_items=self.cart, shipping_fee=Decimal('7.50'))
        self.assertEqual(result['discount'], Decimal('7.50'))

    def test_inactive_and_dated(self):
        now = timezone.now()
        TestDataFactory.create_coupon(code='OFF', status='INACTIVE')
        TestDataFactory.create_coupon(code='SOON', start_date=now + timedelta(days=1))
        TestDataFactory.create_coupon(code='GONE', end_date=now - timedelta(days=1))
        self.assertEqual(services.validate_coupon('OFF', cart_total=100)['message'], 'This coupon is not active')
        self.assertEqual(services.validate_coupon('SOON', cart_total=100)['message'], 'This coupon is not valid yet')
        self.assertEqual(services.validate_coupon('GONE', cart_total=100)['message'], 'This coupon has expired')

    def test_usage_limits(self):
        TestDataFactory.create_coupon(code='ONCE', usage_limit=1, usage_count=1)
        self.assertFalse(services.validate_coupon('ONCE', cart_total=100)['valid'])

        coupon = TestDataFactory.create_coupon(code='PERUSER', per_user_limit=1)
        CouponUsage.objects.create(coupon=coupon, customer='a@example.com', discount_applied=Decimal('1.00'))
        self.assertFalse(services.validate_coupon('PERUSER', customer='A@example.com', cart_total=100)['valid'])
        self.assertTrue(services.validate_coupon('PERUSER', customer='b@example.com', cart_total=100)['valid'])

    def test_minimums(self):
        TestDataFactory.create_coupon(code='MIN', min_order_amount=Decimal('150.00'), min_quantity=3)
        result = services.validate_coupon('MIN', cart_total=100, cart_items=self.cart)
        self.assertFalse(result['valid'])
        self.assertIn('3', result['message'])
        cart = [{'product': self.product.id, 'quantity': 3, 'price': Decimal('50.00')}]
        self.assertTrue(services.validate_coupon('MIN', cart_total=150, cart_items=cart)['valid'])

    def test_first_order_only(self):
        TestDataFactory.create_coupon(code='FIRST', first_order_only=True)
        self.assertFalse(services.validate_coupon('FIRST', cart_total=100)['valid'])
        self.assertTrue(services.validate_coupon('FIRST', customer='new@example.com', cart_total=100)['valid'])
        TestDataFactory.create_order(customer_email='old@example.com')
        self.assertFalse(services.validate_coupon('FIRST', customer='old@example.com', cart_total=100)['valid'])

    def test_product_restrictions(self):
        other = TestDataFactory.create_product()
        coupon = TestDataFactory.create_coupon(code='ONLY', discount_value=Decimal('10'))
        coupon.applicable_products.add(other)
        result = services.validate_coupon('ONLY', cart_total=100, cart_items=self.cart)
        self.assertFalse(result['valid'])

        cart = self.cart + [{'product': other.id, 'quantity': 1, 'price': Decimal('30.00')}]
        result = services.validate_coupon('ONLY', cart_total=130, cart_items=cart)
        self.assertTrue(result['valid'])
        self.assertEqual(result['discount'], Decimal('3.00'))

    def test_excluded_products(self):
        coupon = TestDataFactory.create_coupon(code='EXCL', discount_type='FIXED', discount_value=Decimal('80'))
        other = TestDataFactory.create_product()
        coupon.excluded_products.add(self.product)
        cart = self.cart + [{'product': other.id, 'quantity': 1, 'price': Decimal('30.00')}]
        result = services.validate_coupon('EXCL', cart_total=130, cart_items=cart)
        self.assertEqual(result['discount'], Decimal('30.00'))

    def test_category_restriction(self):
        coupon = TestDataFactory.create_coupon(code='CAT')
        coupon.applicable_categories.add(self.product.category)
        self.assertTrue(services.validate_coupon('CAT', cart_total=100, cart_items=self.cart)['valid'])


class CouponRedeemTests(TestCase):

    def test_redeem_records_usage(self):
        coupon = TestDataFactory.create_coupon(code='REDEEM', discount_type='FIXED', discount_value=Decimal('5'))
        order = TestDataFactory.create_order(customer_email='c@example.com')
        discount = services.redeem_coupon('redeem', 'c@example.com', order, Decimal('40.00'), [])
        self.assertEqual(discount, Decimal('5.00'))
        coupon.refresh_from_db()
        self.assertEqual(coupon.usage_count, 1)
        self.assertEqual(CouponUsage.objects.get(coupon=coupon).order, order)

    def test_first_order_coupon_ignores_current_order(self):
        TestDataFactory.create_coupon(code='WELCOME', first_order_only=True)
        order = TestDataFactory.create_order(customer_email='new@example.com')
        discount = services.redeem_coupon('WELCOME', 'new@example.com', order, Decimal('100.00'), [])
        self.assertEqual(discount, Decimal('10.00'))

    def test_redeem_invalid_raises(self):
        TestDataFactory.create_coupon(code='MAXED', usage_limit=1, usage_count=1)
        order = TestDataFactory.create_order()
        with self.assertRaises(CouponError):
            services.redeem_coupon('MAXED', None, order, Decimal('100.00'), [])
        self.assertFalse(CouponUsage.objects.exists())


class CouponAPITests(TestCase):
    """Test coupon endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_normalizes_code(self):
        data = {'code': ' summer ', 'name': 'Summer', 'discount_type': 'PERCENTAGE', 'discount_value': '20'}
        response = self.client.post('/api/v2/coupons/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['code'], 'SUMMER')

    def test_duplicate_code_case_insensitive(self):
        TestDataFactory.create_coupon(code='SUMMER')
        data = {'code': 'Summer', 'name': 'Summer', 'discount_type': 'FIXED', 'discount_value': '5'}
        response = self.client.post('/api/v2/coupons/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('code', response.data)

    def test_percentage_over_100_rejected(self):
        data = {'code': 'TOO', 'name': 'Too much', 'discount_type': 'PERCENTAGE', 'discount_value': '150'}
        response = self.client.post('/api/v2/coupons/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_soft_delete(self):
        coupon = TestDataFactory.create_coupon()
        response = self.client.delete(f'/api/v2/coupons/{coupon.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertTrue(Coupon.objects.get(pk=coupon.pk).is_deleted)
        response = self.client.get('/api/v2/coupons/')
        self.assertEqual(len(response.data), 0)
        self.assertFalse(services.validate_coupon(coupon.code, cart_total=100)['valid'])

    def test_validate_endpoint(self):
        TestDataFactory.create_coupon(code='TEN')
        response = self.client.post('/api/v2/coupons/validate/', {'code': 'ten', 'cart_total': '80.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['valid'])
        self.assertEqual(response.data['discount'], 8.0)

        response = self.client.post('/api/v2/coupons/validate/', {'code': 'NOPE', 'cart_total': '80.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['valid'])

    def test_promotion_crud(self):
        data = {'name': 'Weekend', 'promotion_type': 'PERCENTAGE', 'discount_value': '5', 'priority': 3}
        response = self.client.post('/api/v2/promotions/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        promotion_id = response.data['id']
        response = self.client.patch(f'/api/v2/promotions/{promotion_id}/', {'status': 'INACTIVE'}, format='json')
        self.assertEqual(response.data['status'], 'INACTIVE')
        response = self.client.delete(f'/api/v2/promotions/{promotion_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)


class ComboAPITests(TestCase):
    """Test combo endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.shirt = TestDataFactory.create_product(selling_price=Decimal('100.00'))
        self.cap = TestDataFactory.create_product(selling_price=Decimal('40.00'))

    def _payload(self, **fields):
        data = {
            'name': 'Summer set',
            'combo_price': '150.00',
            'items': [
                {'product': self.shirt.id, 'quantity': 1},
                {'product': self.cap.id, 'quantity': 2},
            ],
        }
        data.update(fields)
        return data

    def test_create_computes_original_price_and_savings(self):
        response = self.client.post('/api/v2/combos/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Decimal(response.data['original_price']), Decimal('180.00'))
        self.assertEqual(Decimal(response.data['savings']), Decimal('30.00'))
        self.assertEqual(len(response.data['items']), 2)

    def test_original_price_from_request_is_ignored(self):
        response = self.client.post('/api/v2/combos/', self._payload(original_price='999.00'), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Decimal(response.data['original_price']), Decimal('180.00'))

    def test_empty_items_rejected(self):
        response = self.client.post('/api/v2/combos/', self._payload(items=[]), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('items', response.data)

    def test_bogo_needs_quantities(self):
        response = self.client.post('/api/v2/combos/', self._payload(combo_type='BOGO'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(
            '/api/v2/combos/', self._payload(combo_type='BOGO', buy_quantity=1, get_quantity=1, get_discount='100'),
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_variant_of_other_product_rejected(self):
        variant = TestDataFactory.create_variant(self.cap)
        items = [{'product': self.shirt.id, 'variant': variant.id, 'quantity': 1}]
        response = self.client.post('/api/v2/combos/', self._payload(items=items), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_replaces_items(self):
        combo_id = self.client.post('/api/v2/combos/', self._payload(), format='json').data['id']
        response = self.client.patch(
            f'/api/v2/combos/{combo_id}/', {'items': [{'product': self.shirt.id, 'quantity': 2}]}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(ComboItem.objects.filter(combo_id=combo_id).count(), 1)
        self.assertEqual(Decimal(response.data['original_price']), Decimal('200.00'))

    def test_patch_without_items_keeps_them(self):
        combo_id = self.client.post('/api/v2/combos/', self._payload(), format='json').data['id']
        response = self.client.patch(f'/api/v2/combos/{combo_id}/', {'status': 'INACTIVE'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(ComboItem.objects.filter(combo_id=combo_id).count(), 2)

    def test_list_filters_by_status_and_delete(self):
        active_id = self.client.post('/api/v2/combos/', self._payload(), format='json').data['id']
        self.client.post('/api/v2/combos/', self._payload(status='INACTIVE'), format='json')

        response = self.client.get('/api/v2/combos/?status=ACTIVE')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['id'], active_id)

        response = self.client.delete(f'/api/v2/combos/{active_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Combo.objects.filter(pk=active_id).exists())
        self.assertFalse(ComboItem.objects.filter(combo_id=active_id).exists())

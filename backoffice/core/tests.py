"""
Test suite for Core module
Tests: JWT auth, user management, settings, audit log, shared helpers (document numbers, date ranges, report cache)
"""
from datetime import date
from django.core.cache import cache
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import ValidationError
from backoffice.core.cache_utils import cached_query, invalidate_reports_cache
from backoffice.core.models import AuditLog, DocumentSequence, Setting, User
from backoffice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backoffice.core.utils import generate_document_number, get_setting, parse_date_range
from backoffice.orders.models import Order
from backoffice.purchasing.models import PurchaseOrder


class AuthTests(TestCase):
    """Test login, refresh and current user endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user(username='cashier', password='secret123')
        self.client = AuthenticatedAPIClient()

    def test_login_returns_token_pair(self):
        response = self.client.post('/api/v2/auth/login/', {'username': 'cashier', 'password': 'secret123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)

    def test_login_wrong_password(self):
        response = self.client.post('/api/v2/auth/login/', {'username': 'cashier', 'password': 'nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_inactive_user_cannot_login(self):
        self.user.is_active = False
        self.user.save()
        response = self.client.post('/api/v2/auth/login/', {'username': 'cashier', 'password': 'secret123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_token(self):
        login = self.client.post('/api/v2/auth/login/', {'username': 'cashier', 'password': 'secret123'}, format='json')
        response = self.client.post('/api/v2/auth/refresh/', {'refresh': login.data['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_me_requires_authentication(self):
        response = self.client.get('/api/v2/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v2/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['username'], 'cashier')


class UserManagementTests(TestCase):
    """Test user list/create/update/delete for staff users"""

    def setUp(self):
        self.admin = TestDataFactory.create_user(username='manager', is_staff=True)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_non_staff_forbidden(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v2/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_user_hashes_password(self):
        data = {'username': 'cashier2', 'email': 'c2@test.com', 'password': 'Str0ng-pass-42',
                'password_confirm': 'Str0ng-pass-42'}
        response = self.client.post('/api/v2/users/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertNotIn('password', response.data)
        user = User.objects.get(username='cashier2')
        self.assertTrue(user.is_active)
        self.assertTrue(user.check_password('Str0ng-pass-42'))
        self.assertTrue(AuditLog.objects.filter(model_name='User', action='create').exists())

    def test_password_mismatch(self):
        data = {'username': 'cashier2', 'password': 'Str0ng-pass-42', 'password_confirm': 'other-pass-42'}
        response = self.client.post('/api/v2/users/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data)

    def test_list_search_and_status(self):
        TestDataFactory.create_user(username='alice')
        bob = TestDataFactory.create_user(username='bob')
        bob.is_active = False
        bob.save()

        response = self.client.get('/api/v2/users/?search=ali')
        self.assertEqual([u['username'] for u in response.data['results']], ['alice'])
        response = self.client.get('/api/v2/users/?status=inactive')
        self.assertEqual([u['username'] for u in response.data['results']], ['bob'])

    def test_deactivate_user_is_audited(self):
        user = TestDataFactory.create_user(username='alice')
        response = self.client.patch(f'/api/v2/users/{user.id}/', {'is_active': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_active'])
        log = AuditLog.objects.get(model_name='User', action='update')
        self.assertEqual(log.changes['is_active'], {'old': True, 'new': False})

    def test_cannot_deactivate_or_delete_self(self):
        response = self.client.patch(f'/api/v2/users/{self.admin.id}/', {'is_active': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.delete(f'/api/v2/users/{self.admin.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(User.objects.filter(pk=self.admin.pk, is_active=True).exists())

    def test_delete_user(self):
        user = TestDataFactory.create_user(username='alice')
        response = self.client.delete(f'/api/v2/users/{user.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(User.objects.filter(pk=user.pk).exists())
        log = AuditLog.objects.get(model_name='User', action='delete')
        self.assertEqual(log.object_name, 'alice')


class SettingTests(TestCase):
    """Test runtime settings CRUD and audit trail"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_setting_writes_audit_log(self):
        response = self.client.post('/api/v2/settings/', {'key': 'online_stock_location', 'value': 'WEB'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(AuditLog.objects.filter(model_name='Setting', action='create', user=self.user).exists())

    def test_update_setting_records_old_and_new(self):
        setting = TestDataFactory.create_setting('low_stock_threshold', '10')
        response = self.client.patch(f'/api/v2/settings/{setting.id}/', {'value': '5'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        log = AuditLog.objects.get(model_name='Setting', action='update')
        self.assertEqual(log.changes['value'], {'old': '10', 'new': '5'})

    def test_get_setting_default(self):
        self.assertEqual(get_setting('missing', 'fallback'), 'fallback')
        Setting.objects.create(key='present', value='42')
        self.assertEqual(get_setting('present'), '42')

    def test_audit_log_list_filters(self):
        TestDataFactory.create_setting('a', '1')
        self.client.post('/api/v2/settings/', {'key': 'b', 'value': '2'}, format='json')
        response = self.client.get('/api/v2/audit-logs/?model_name=Setting&action=create')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['username'], self.user.username)


class UtilsTests(TestCase):
    """Test shared helpers"""

    def test_document_number_sequence(self):
        prefix = f"ORD-{timezone.localdate().strftime('%Y%m')}-"
        self.assertEqual(generate_document_number(Order, 'order_number', 'ORD'), f'{prefix}0001')
        TestDataFactory.create_order()
        Order.objects.update(order_number=f'{prefix}0007')
        self.assertEqual(generate_document_number(Order, 'order_number', 'ORD'), f'{prefix}0008')

    def test_document_numbers_never_repeat(self):
        prefix = f"PO-{timezone.localdate().strftime('%Y%m')}-"
        first = generate_document_number(PurchaseOrder, 'po_number', 'PO')
        second = generate_document_number(PurchaseOrder, 'po_number', 'PO')
        self.assertEqual((first, second), (f'{prefix}0001', f'{prefix}0002'))
        self.assertEqual(DocumentSequence.objects.get(prefix=prefix).last_number, 2)

    def test_document_sequences_are_per_prefix(self):
        month = timezone.localdate().strftime('%Y%m')
        generate_document_number(PurchaseOrder, 'po_number', 'PO')
        self.assertEqual(generate_document_number(Order, 'order_number', 'ORD'), f'ORD-{month}-0001')

    def test_parse_date_range_is_inclusive(self):
        date_from, date_to, start, end = parse_date_range({'from': '2025-01-01', 'to': '2025-01-31'})
        self.assertEqual(date_from, date(2025, 1, 1))
        self.assertEqual(date_to, date(2025, 1, 31))
        self.assertEqual(timezone.localtime(end).hour, 23)
        self.assertEqual(timezone.localtime(end).microsecond, 999999)
        self.assertLess(start, end)

    def test_parse_date_range_errors(self):
        with self.assertRaises(ValidationError):
            parse_date_range({}, required=True)
        with self.assertRaises(ValidationError):
            parse_date_range({'from': '2025-02-01', 'to': '2025-01-01'})
        with self.assertRaises(ValidationError):
            parse_date_range({'from': 'yesterday', 'to': '2025-01-01'})


@override_settings(REPORTS_CACHE_ENABLED=True)
class ReportsCacheTests(TestCase):
    """Test the versioned report cache"""

    def setUp(self):
        cache.clear()
        self.calls = 0

    def test_cached_until_invalidated(self):
        @cached_query(cache_ttl=60, key_prefix='test')
        def build(x):
            self.calls += 1
            return {'x': x}

        build(1)
        build(1)
        self.assertEqual(self.calls, 1)
        invalidate_reports_cache()
        build(1)
        self.assertEqual(self.calls, 2)

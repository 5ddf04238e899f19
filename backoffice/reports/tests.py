"""
Comprehensive test suite for Reports module
Tests: Profit & Loss, sales summaries, top products, category / brand / payment method
breakdowns, refunds, stock reports, expenses, customers, monthly revenue, dashboard widgets,
report cache invalidation
"""
from datetime import date, datetime, time
from decimal import Decimal
from unittest.mock import patch
from django.core.cache import cache
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from backoffice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backoffice.finance.services import review_petty_cash
from backoffice.orders.models import Order
from backoffice.orders.services import add_payment, update_order
from backoffice.reports import services


def _at(year, month, day, hour=12):
    return timezone.make_aware(datetime(year, month, day, hour, 0))


class ReportFixtureMixin:
    """
    Two paid orders in March 2026 plus noise that every sales report must ignore.

    Order A (10 Mar): 2 x shirt @100, buying 60, shipping 10, discount 20, fee 5,
    transaction fee 3, total 195, paid 100 cash + 95 card.
    Order B (11 Mar): 1 x shoe @50, buying 30, total 50, payment method "CASH".
    """

    def build_fixture(self):
        self.shirts = TestDataFactory.create_category(name='Shirts')
        self.shoes = TestDataFactory.create_category(name='Shoes')
        self.brand = TestDataFactory.create_brand(name='Acme')
        self.shirt = TestDataFactory.create_product(name='Shirt', category=self.shirts, brand=self.brand)
        self.shoe = TestDataFactory.create_product(name='Shoe', category=self.shoes, brand=self.brand,
                                                   buying_price=Decimal('30.00'), selling_price=Decimal('50.00'))

        self.order_a = TestDataFactory.create_order(
            items=[{'product': self.shirt, 'quantity': 2, 'price': '100.00', 'buying_price': '60.00'}],
            created_at=_at(2026, 3, 10),
            shipping_fee=Decimal('10.00'), discount=Decimal('20.00'), fee=Decimal('5.00'),
            transaction_fee_charge=Decimal('3.00'),
            payments=[('Cash ', '100.00'), ('card', '95.00')],
        )
        self.order_b = TestDataFactory.create_order(
            items=[{'product': self.shoe, 'quantity': 1, 'price': '50.00', 'buying_price': '30.00'}],
            created_at=_at(2026, 3, 11),
            payment_method='CASH',
        )
        # Ignored by sales reports
        TestDataFactory.create_order(
            items=[{'product': self.shirt, 'quantity': 1, 'price': '80.00'}],
            created_at=_at(2026, 3, 11), payment_status='Refunded',
        )
        TestDataFactory.create_order(
            items=[{'product': self.shirt, 'quantity': 5, 'price': '100.00'}],
            created_at=_at(2026, 4, 1),
        )

        rent = TestDataFactory.create_expense_category(name='Rent')
        TestDataFactory.create_petty_cash(category=rent, amount=Decimal('40.00'), status='APPROVED',
                                          created_at=_at(2026, 3, 12))
        TestDataFactory.create_petty_cash(category=rent, amount=Decimal('100.00'), status='PENDING',
                                          created_at=_at(2026, 3, 12))
        TestDataFactory.create_petty_cash(amount=Decimal('500.00'), status='APPROVED', type='income',
                                          created_at=_at(2026, 3, 12))
        deleted = TestDataFactory.create_petty_cash(category=rent, amount=Decimal('9.00'), status='APPROVED',
                                                    created_at=_at(2026, 3, 12))
        deleted.is_deleted = True
        deleted.save()

        self.march = (_at(2026, 3, 1, 0), timezone.make_aware(datetime(2026, 3, 31, 23, 59, 59)))


class ProfitAndLossTests(ReportFixtureMixin, TestCase):

    def setUp(self):
        self.build_fixture()

    def test_statement(self):
        report = services.profit_and_loss(*self.march)
        self.assertEqual(report['period'], {'from': '2026-03-01', 'to': '2026-03-31'})
        self.assertEqual(report['order_count'], 2)
        self.assertEqual(report['revenue']['gross_sales'], 250.0)
        self.assertEqual(report['revenue']['discounts'], 20.0)
        self.assertEqual(report['revenue']['net_sales'], 230.0)
        self.assertEqual(report['revenue']['shipping_income'], 10.0)
        self.assertEqual(report['revenue']['other_income'], 5.0)
        self.assertEqual(report['revenue']['total_revenue'], 230.0)
        self.assertEqual(report['cost_of_goods_sold']['total_cogs'], 150.0)
        self.assertEqual(report['gross_profit'], 80.0)
        self.assertEqual(report['gross_profit_margin'], 34.78)
        self.assertEqual(report['operating_expenses']['total_expenses'], 40.0)
        self.assertEqual(report['operating_expenses']['by_category'], [{'category': 'Rent', 'amount': 40.0}])
        self.assertEqual(report['operating_income'], 40.0)
        self.assertEqual(report['other_expenses']['transaction_fees'], 3.0)
        self.assertEqual(report['net_profit'], 42.0)
        self.assertEqual(report['net_profit_margin'], 18.26)

    def test_empty_period(self):
        report = services.profit_and_loss(_at(2025, 1, 1, 0), _at(2025, 1, 31, 23))
        self.assertEqual(report['order_count'], 0)
        self.assertEqual(report['gross_profit_margin'], 0.0)
        self.assertEqual(report['net_profit'], 0.0)

    def test_endpoint_requires_dates(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_user())
        response = client.get('/api/v2/reports/pnl/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Missing required parameters: from, to')

        response = client.get('/api/v2/reports/pnl/?from=2026-03-01&to=2026-03-31')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['net_profit'], 42.0)

    def test_endpoint_rejects_bad_dates(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_user())
        response = client.get('/api/v2/reports/pnl/?from=2026-03-31&to=2026-03-01')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = client.get('/api/v2/reports/pnl/?from=March&to=2026-03-01')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class SalesReportTests(ReportFixtureMixin, TestCase):
    """Test sales summaries and breakdowns"""

    def setUp(self):
        self.build_fixture()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_daily_summary(self):
        report = services.daily_summary(*self.march)
        self.assertEqual(report['total_orders'], 2)
        self.assertEqual(report['total_sales'], 250.0)
        self.assertEqual(report['total_shipping'], 10.0)
        self.assertEqual(report['total_items_sold'], 3)
        self.assertEqual([p['period'] for p in report['periods']], ['2026-03-10', '2026-03-11'])
        self.assertEqual(report['periods'][0]['sales'], 200.0)
        self.assertEqual(report['periods'][0]['transaction_fee'], 3.0)

    def test_summaries_without_range_are_unbounded(self):
        response = self.client.get('/api/v2/reports/sales/monthly-summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([p['period'] for p in response.data['periods']], ['2026-03', '2026-04'])
        self.assertEqual(response.data['total_orders'], 3)

    def test_yearly_summary_nests_months(self):
        report = services.yearly_summary()
        self.assertEqual(len(report['periods']), 1)
        year = report['periods'][0]
        self.assertEqual(year['period'], '2026')
        self.assertEqual([m['period'] for m in year['monthly']], ['2026-03', '2026-04'])
        self.assertEqual(year['monthly'][0]['orders'], 2)

    def test_top_products_allocates_shipping(self):
        rows = services.top_products(*self.march)
        self.assertEqual([r['name'] for r in rows], ['Shirt', 'Shoe'])
        self.assertEqual(rows[0]['total_quantity'], 2)
        self.assertEqual(rows[0]['total_sales'], 190.0)
        self.assertEqual(rows[1]['total_sales'], 50.0)

    def test_top_products_endpoint_paginates(self):
        response = self.client.get('/api/v2/reports/sales/top-products/?from=2026-03-01&to=2026-03-31&size=1')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['total_pages'], 2)
        self.assertEqual(response.data['results'][0]['name'], 'Shirt')

    def test_sales_by_category_and_brand(self):
        response = self.client.get('/api/v2/reports/sales/by-category/?from=2026-03-01&to=2026-03-31')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        categories = {row['category']: row for row in response.data['categories']}
        self.assertEqual(categories['Shirts']['total_sales'], 190.0)
        self.assertEqual(categories['Shoes']['total_orders'], 1)

        response = self.client.get('/api/v2/reports/sales/by-brand/?from=2026-03-01&to=2026-03-31')
        brands = response.data['brands']
        self.assertEqual(len(brands), 1)
        self.assertEqual(brands[0]['brand'], 'Acme')
        self.assertEqual(brands[0]['total_orders'], 2)
        self.assertEqual(brands[0]['total_quantity'], 3)

    def test_sales_vs_discount(self):
        report = services.sales_vs_discount(*self.march, group_by='month')
        self.assertEqual(report, [{'period': '2026-03', 'total_sales': 235.0, 'total_discount': 20.0, 'total_orders': 2}])

        response = self.client.get('/api/v2/reports/sales/sales-vs-discount/?group_by=week')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_sales_by_payment_method_normalizes_names(self):
        rows = {r['payment_method']: r for r in services.sales_by_payment_method(*self.march)}
        self.assertEqual(set(rows), {'Cash', 'Card'})
        self.assertEqual(rows['Cash']['total_amount'], 150.0)
        self.assertEqual(rows['Cash']['total_orders'], 2)
        self.assertEqual(rows['Cash']['transactions'], 2)
        self.assertEqual(rows['Card']['total_amount'], 95.0)

    def test_normalize_payment_method(self):
        self.assertEqual(services.normalize_payment_method('  Bank   Transfer '), 'bank transfer')
        self.assertEqual(services.normalize_payment_method(None), 'unknown')
        self.assertEqual(services.normalize_payment_method('   '), 'unknown')

    def test_refunds_and_returns(self):
        TestDataFactory.create_order(
            items=[
                {'product': self.shirt, 'quantity': 1, 'price': '30.00'},
                {'product': self.shoe, 'quantity': 1, 'price': '30.00'},
            ],
            created_at=_at(2026, 3, 20), payment_status='Returned', restocked=True,
            payments=[('card', '60.00'), ('card', '-60.00')],
        )
        report = services.refunds_and_returns()
        self.assertEqual(report['total_orders'], 2)
        self.assertEqual(report['total_refund_amount'], 140.0)
        self.assertEqual(report['total_restocked_items'], 2)

    def test_unexpected_error_returns_500(self):
        with patch('backoffice.reports.services.daily_summary', side_effect=RuntimeError('boom')):
            response = self.client.get('/api/v2/reports/sales/daily-summary/')
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data['error'], 'An error occurred while generating daily sales summary')

    def test_requires_authentication(self):
        self.client.logout()
        response = self.client.get('/api/v2/reports/sales/daily-summary/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class StockReportTests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.store = TestDataFactory.create_location(name='A Store')
        self.warehouse = TestDataFactory.create_location(name='B Warehouse', location_type='warehouse')
        self.shirt = TestDataFactory.create_product()
        self.shoe = TestDataFactory.create_product(buying_price=Decimal('30.00'), selling_price=Decimal('50.00'))
        TestDataFactory.create_inventory(self.shirt, self.store, quantity=5)
        TestDataFactory.create_inventory(self.shoe, self.warehouse, quantity=2)

    def test_stock_valuation(self):
        report = services.stock_valuation()
        self.assertEqual([l['location_name'] for l in report['locations']], ['A Store', 'B Warehouse'])
        self.assertEqual(report['locations'][0]['cost_value'], 300.0)
        self.assertEqual(report['total'], {'units': 7, 'cost_value': 360.0, 'retail_value': 600.0})

        response = self.client.get(f'/api/v2/reports/stocks/valuation/?location={self.warehouse.id}')
        self.assertEqual(response.data['total']['retail_value'], 100.0)

    def test_low_stock(self):
        response = self.client.get('/api/v2/reports/stocks/low-stock/?threshold=3')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['threshold'], 3)
        self.assertEqual([i['product_id'] for i in response.data['items']], [self.shoe.id])

        response = self.client.get('/api/v2/reports/stocks/low-stock/?threshold=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_live_stock(self):
        response = self.client.get(f'/api/v2/reports/stocks/live-stock/?location={self.store.id}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['quantity'], 5)


class ExpenseAndDashboardTests(ReportFixtureMixin, TestCase):

    def setUp(self):
        self.build_fixture()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_expense_report(self):
        response = self.client.get('/api/v2/reports/expenses/?from=2026-03-01&to=2026-03-31')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_expenses'], 40.0)
        self.assertEqual(len(response.data['entries']), 1)
        self.assertEqual(response.data['by_category'][0]['category'], 'Rent')

    def test_expense_report_requires_dates(self):
        response = self.client.get('/api/v2/reports/expenses/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_dashboard_overview(self):
        report = services.dashboard_overview(*self.march)
        # Refunded order excluded; order A and B counted
        self.assertEqual(report['total_orders'], 2)
        self.assertEqual(report['net_sales'], 230.0)
        self.assertEqual(report['gross_sales'], 250.0)
        self.assertEqual(report['cogs'], 150.0)
        self.assertEqual(report['profit'], 82.0)

    def test_dashboard_defaults_to_today(self):
        TestDataFactory.create_order(
            items=[{'product': self.shirt, 'quantity': 1, 'price': '100.00'}],
            payment_status='Pending',
        )
        response = self.client.get('/api/v2/reports/dashboard/overview/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_orders'], 1)
        self.assertEqual(response.data['net_sales'], 100.0)


class CustomerAnalyticsTests(TestCase):
    """
    Alice bought in February and twice in March, Bob once in March; one March
    order has no customer details.
    """

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        TestDataFactory.create_order(total=Decimal('100.00'), created_at=_at(2026, 2, 20),
                                     customer_name='Alice', customer_email='alice@test.com')
        TestDataFactory.create_order(total=Decimal('100.00'), created_at=_at(2026, 3, 2),
                                     customer_name='Alice', customer_email='Alice@Test.com')
        TestDataFactory.create_order(total=Decimal('50.00'), created_at=_at(2026, 3, 9),
                                     customer_email='alice@test.com')
        TestDataFactory.create_order(total=Decimal('200.00'), created_at=_at(2026, 3, 5),
                                     customer_name='Bob', customer_phone='0771234567')
        TestDataFactory.create_order(total=Decimal('30.00'), created_at=_at(2026, 3, 6))
        TestDataFactory.create_order(total=Decimal('999.00'), created_at=_at(2026, 3, 7),
                                     customer_name='Carol', payment_status='Pending')
        self.march = (_at(2026, 3, 1, 0), timezone.make_aware(datetime(2026, 3, 31, 23, 59, 59)))

    def test_counts(self):
        report = services.customer_analytics(*self.march)
        self.assertEqual(report['total_customers'], 2)
        self.assertEqual(report['returning_customers'], 1)
        self.assertEqual(report['new_customers'], 1)
        self.assertEqual(report['repeat_customers'], 1)
        self.assertEqual(report['repeat_rate'], 50.0)
        self.assertEqual(report['customer_orders'], 3)
        self.assertEqual(report['guest_orders'], 1)
        self.assertEqual(report['guest_sales'], 30.0)
        self.assertEqual(report['average_order_value'], 116.67)

    def test_top_customers_ranked_by_spend(self):
        top = services.customer_analytics(*self.march)['top_customers']
        self.assertEqual([row['name'] for row in top], ['Bob', 'Alice'])
        self.assertEqual(top[0]['customer'], '0771234567')
        self.assertFalse(top[0]['returning'])
        self.assertEqual(top[1]['orders'], 2)
        self.assertEqual(top[1]['total_spent'], 150.0)
        self.assertTrue(top[1]['returning'])

    def test_endpoint(self):
        response = self.client.get('/api/v2/reports/customers/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.get('/api/v2/reports/customers/?from=2026-03-01&to=2026-03-31&top=1')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['top_customers']), 1)


class RevenueAndDashboardWidgetTests(ReportFixtureMixin, TestCase):

    def setUp(self):
        self.build_fixture()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.april_order = Order.objects.get(created_at=_at(2026, 4, 1))

    def test_monthly_revenue(self):
        response = self.client.get('/api/v2/reports/revenues/monthly-revenue/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        march, april = response.data['months']
        self.assertEqual(march['month'], '2026-03')
        self.assertEqual(march['orders'], 2)
        self.assertEqual(march['gross_sales'], 250.0)
        self.assertEqual(march['net_sales'], 230.0)
        self.assertEqual(march['cogs'], 150.0)
        self.assertEqual(march['gross_profit'], 80.0)
        self.assertEqual(march['margin'], 34.78)
        self.assertEqual(april['net_sales'], 500.0)
        self.assertEqual(april['margin'], 40.0)
        self.assertEqual(response.data['total_net_sales'], 730.0)
        self.assertEqual(response.data['total_gross_profit'], 280.0)

    def test_monthly_revenue_range(self):
        report = services.monthly_revenue(*self.march)
        self.assertEqual([m['month'] for m in report['months']], ['2026-03'])

    def test_yearly_sales_performance(self):
        response = self.client.get('/api/v2/reports/dashboard/sales/?year=2026')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['store'][2], 2)
        self.assertEqual(response.data['store'][3], 1)
        self.assertEqual(sum(response.data['website']), 0)

    def test_recent_orders(self):
        response = self.client.get('/api/v2/reports/dashboard/recent-orders/?limit=2')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        rows = response.data['orders']
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[0]['order_number'], self.april_order.order_number)
        self.assertEqual(rows[0]['customer_name'], 'Guest Customer')
        self.assertEqual(rows[0]['gross_amount'], 500.0)
        self.assertEqual(rows[0]['net_amount'], 500.0)

    def test_popular_items(self):
        response = self.client.get('/api/v2/reports/dashboard/popular-items/?year=2026&month=3')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        items = response.data['items']
        self.assertEqual([(i['name'], i['sold_count']) for i in items], [('Shirt', 2), ('Shoe', 1)])

        response = self.client.get('/api/v2/reports/dashboard/popular-items/?year=2026&month=13')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_order_status_distribution(self):
        report = services.order_status_distribution(*self.march)
        self.assertEqual(report['total_orders'], 3)
        self.assertEqual(report['pending_orders'], 3)
        by_payment = {row['payment_status']: row for row in report['by_payment_status']}
        self.assertEqual(by_payment['Paid']['count'], 2)
        self.assertEqual(by_payment['Paid']['percentage'], 66.67)
        self.assertEqual(by_payment['Refunded']['count'], 1)
        self.assertEqual(by_payment['Failed']['count'], 0)

    def test_monthly_comparison(self):
        report = services.monthly_comparison(today=date(2026, 4, 15))
        self.assertEqual(report['current_month'], {'orders': 1, 'revenue': 500.0, 'profit': 200.0})
        self.assertEqual(report['last_month'], {'orders': 2, 'revenue': 230.0, 'profit': 82.0})
        self.assertEqual(report['percentage_change'], {'orders': -50.0, 'revenue': 117.39, 'profit': 143.9})

    def test_monthly_comparison_endpoint(self):
        response = self.client.get('/api/v2/reports/dashboard/monthly-comparison/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('percentage_change', response.data)


@override_settings(REPORTS_CACHE_ENABLED=True)
class ReportCacheRefreshTests(TestCase):
    """Cached reports reflect order, payment and petty cash changes once they commit"""

    def setUp(self):
        cache.clear()
        self.product = TestDataFactory.create_product()
        today = timezone.localdate()
        self.start = timezone.make_aware(datetime.combine(today, time.min))
        self.end = timezone.make_aware(datetime.combine(today, time.max))

    def test_order_marked_paid_shows_in_profit_and_loss(self):
        order = TestDataFactory.create_order(
            items=[{'product': self.product, 'quantity': 1, 'price': '100.00'}], payment_status='Pending'
        )
        self.assertEqual(services.profit_and_loss(self.start, self.end)['order_count'], 0)

        with self.captureOnCommitCallbacks(execute=True):
            update_order(order, {'payment_status': 'Paid'})

        report = services.profit_and_loss(self.start, self.end)
        self.assertEqual(report['order_count'], 1)
        self.assertEqual(report['revenue']['gross_sales'], 100.0)

    def test_new_payment_shows_in_payment_method_report(self):
        order = TestDataFactory.create_order(
            items=[{'product': self.product, 'quantity': 1, 'price': '100.00'}], payment_method='cash'
        )
        self.assertEqual([r['payment_method'] for r in services.sales_by_payment_method()], ['Cash'])

        with self.captureOnCommitCallbacks(execute=True):
            add_payment(order, 'card', Decimal('100.00'))

        self.assertEqual([r['payment_method'] for r in services.sales_by_payment_method()], ['Card'])

    def test_approved_petty_cash_shows_in_expense_report(self):
        entry = TestDataFactory.create_petty_cash(amount=Decimal('40.00'))
        self.assertEqual(services.expense_report(self.start, self.end)['total_expenses'], 0.0)

        with self.captureOnCommitCallbacks(execute=True):
            review_petty_cash(entry, 'APPROVED')

        self.assertEqual(services.expense_report(self.start, self.end)['total_expenses'], 40.0)

    def test_unchanged_order_keeps_cache(self):
        order = TestDataFactory.create_order(payment_status='Pending')
        services.profit_and_loss(self.start, self.end)
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            update_order(order, {'payment_status': 'Pending'})
        self.assertEqual(callbacks, [])

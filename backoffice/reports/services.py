"""
Report builders.

Each builder takes aware ``start``/``end`` datetimes (or ``None`` for no date
bound) and returns a JSON-ready dict. Money is summed as Decimal and rendered
as floats rounded to 2 places. Sales reports only count orders whose
payment_status is ``Paid``.
"""
import logging
import re
from collections import defaultdict
from datetime import datetime, time, timedelta
from decimal import Decimal

from django.core.paginator import Paginator
from django.db.models import DecimalField, ExpressionWrapper, F, Sum, Count, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from backoffice.core.cache_utils import cached_query, REPORTS_CACHE_TTL
from backoffice.finance.models import PettyCash
from backoffice.inventory.models import InventoryItem
from backoffice.orders.models import Order, OrderItem

logger = logging.getLogger('backoffice.reports')

ZERO = Decimal('0')
MONEY = DecimalField(max_digits=18, decimal_places=2)
REFUND_STATUSES = ('Refunded', 'Returned')
EXCLUDED_FROM_DASHBOARD = ('Failed', 'Refunded')


def _r(value):
    return round(float(value or 0), 2)


def _pct(part, whole):
    return round(float(part) / float(whole) * 100, 2) if whole else 0.0


def _in_range(queryset, start, end, field='created_at'):
    if start is not None:
        queryset = queryset.filter(**{f'{field}__gte': start})
    if end is not None:
        queryset = queryset.filter(**{f'{field}__lte': end})
    return queryset


def paid_orders(start=None, end=None):
    return _in_range(Order.objects.filter(payment_status='Paid'), start, end)


def gross_sale(order):
    return order.total - order.shipping_fee - order.fee + order.discount


def _line_cost():
    return ExpressionWrapper(F('buying_price') * F('quantity'), output_field=MONEY)


def _order_cost():
    return ExpressionWrapper(F('items__buying_price') * F('items__quantity'), output_field=MONEY)


def _cogs(orders):
    return OrderItem.objects.filter(order__in=orders).aggregate(
        total=Coalesce(Sum(_line_cost()), Value(ZERO), output_field=MONEY)
    )['total']


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix='reports:pnl')
def profit_and_loss(start, end):
    orders = paid_orders(start, end)
    totals = orders.aggregate(
        total=Coalesce(Sum('total'), Value(ZERO), output_field=MONEY),
        shipping=Coalesce(Sum('shipping_fee'), Value(ZERO), output_field=MONEY),
        fees=Coalesce(Sum('fee'), Value(ZERO), output_field=MONEY),
        discounts=Coalesce(Sum('discount'), Value(ZERO), output_field=MONEY),
        transaction_fees=Coalesce(Sum('transaction_fee_charge'), Value(ZERO), output_field=MONEY),
        orders=Count('id'),
    )

    gross_sales = totals['total'] - totals['shipping'] - totals['fees'] + totals['discounts']
    net_sales = gross_sales - totals['discounts']
    total_revenue = net_sales
    product_cost = _cogs(orders)
    gross_profit = total_revenue - product_cost

    expenses = _in_range(
        PettyCash.objects.filter(status='APPROVED', type='expense', is_deleted=False), start, end
    ).values('category__name').annotate(amount=Sum('amount')).order_by('-amount', 'category__name')
    by_category = [{'category': row['category__name'], 'amount': _r(row['amount'])} for row in expenses]
    total_expenses = sum((row['amount'] for row in expenses), ZERO)

    operating_income = gross_profit - total_expenses
    transaction_fees = totals['transaction_fees']
    net_profit = operating_income - transaction_fees + totals['fees']

    return {
        'period': {'from': timezone.localtime(start).date().isoformat(), 'to': timezone.localtime(end).date().isoformat()},
        'order_count': totals['orders'],
        'revenue': {
            'gross_sales': _r(gross_sales),
            'discounts': _r(totals['discounts']),
            'net_sales': _r(net_sales),
            'shipping_income': _r(totals['shipping']),
            'other_income': _r(totals['fees']),
            'total_revenue': _r(total_revenue),
        },
        'cost_of_goods_sold': {
            'product_cost': _r(product_cost),
            'total_cogs': _r(product_cost),
        },
        'gross_profit': _r(gross_profit),
        'gross_profit_margin': _pct(gross_profit, total_revenue),
        'operating_expenses': {
            'by_category': by_category,
            'total_expenses': _r(total_expenses),
        },
        'operating_income': _r(operating_income),
        'other_expenses': {
            'transaction_fees': _r(transaction_fees),
            'total_other': _r(transaction_fees),
        },
        'net_profit': _r(net_profit),
        'net_profit_margin': _pct(net_profit, total_revenue),
    }


def _empty_bucket(**keys):
    return dict(keys, orders=0, sales=ZERO, shipping=ZERO, discount=ZERO, transaction_fee=ZERO, items_sold=0)


def _add_order(bucket, order):
    bucket['orders'] += 1
    bucket['sales'] += gross_sale(order)
    bucket['shipping'] += order.shipping_fee
    bucket['discount'] += order.discount
    bucket['transaction_fee'] += order.transaction_fee_charge
    bucket['items_sold'] += order.items_sold


def _render(bucket):
    rendered = dict(bucket)
    for key in ('sales', 'shipping', 'discount', 'transaction_fee'):
        rendered[key] = _r(bucket[key])
    return rendered


def _orders_with_items_sold(start, end):
    return paid_orders(start, end).annotate(
        items_sold=Coalesce(Sum('items__quantity'), 0)
    ).order_by('created_at')


def _summary(period_key, start, end, nest_months=False):
    totals = _empty_bucket()
    buckets = {}

    for order in _orders_with_items_sold(start, end):
        local = timezone.localtime(order.created_at)
        key = period_key(local)
        if key not in buckets:
            buckets[key] = _empty_bucket(period=key)
            if nest_months:
                buckets[key]['monthly'] = {}
        _add_order(totals, order)
        _add_order(buckets[key], order)
        if nest_months:
            month = local.strftime('%Y-%m')
            months = buckets[key]['monthly']
            months.setdefault(month, _empty_bucket(period=month))
            _add_order(months[month], order)

    rendered = []
    for key in sorted(buckets):
        bucket = _render(buckets[key])
        if nest_months:
            bucket['monthly'] = [_render(m) for _, m in sorted(buckets[key]['monthly'].items())]
        rendered.append(bucket)

    summary = _render(totals)
    return {
        'total_orders': summary['orders'],
        'total_sales': summary['sales'],
        'total_shipping': summary['shipping'],
        'total_discount': summary['discount'],
        'total_transaction_fee': summary['transaction_fee'],
        'total_items_sold': summary['items_sold'],
        'periods': rendered,
    }


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix='reports:daily')
def daily_summary(start=None, end=None):
    return _summary(lambda d: d.strftime('%Y-%m-%d'), start, end)


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix='reports:monthly')
def monthly_summary(start=None, end=None):
    return _summary(lambda d: d.strftime('%Y-%m'), start, end)


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix='reports:yearly')
def yearly_summary(start=None, end=None):
    return _summary(lambda d: d.strftime('%Y'), start, end, nest_months=True)


def _allocated_lines(start, end):
    """
    Yield ``(order, item, sales)`` for paid order lines, where ``sales`` is the
    line value with the order's shipping fee removed in proportion to it.
    """
    orders = paid_orders(start, end).prefetch_related('items__product__category', 'items__product__brand')
    for order in orders:
        items = list(order.items.all())
        raw_total = sum((item.price * item.quantity for item in items), ZERO)
        ratio = order.shipping_fee / raw_total if raw_total > 0 else ZERO
        for item in items:
            raw = item.price * item.quantity
            yield order, item, raw - raw * ratio


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix='reports:top-products')
def top_products(start=None, end=None):
    products = {}
    for _, item, sales in _allocated_lines(start, end):
        key = (item.product_id, item.variant_id)
        row = products.get(key)
        if row is None:
            row = products[key] = {
                'product_id': item.product_id,
                'variant_id': item.variant_id,
                'name': item.name or item.product.name,
                'variant_name': item.variant_name,
                'total_quantity': 0,
                'total_sales': ZERO,
                'total_discount': ZERO,
            }
        row['total_quantity'] += item.quantity
        row['total_sales'] += sales
        row['total_discount'] += item.discount * item.quantity

    rows = sorted(products.values(), key=lambda r: (-r['total_quantity'], r['product_id']))
    for row in rows:
        row['total_sales'] = _r(row['total_sales'])
        row['total_discount'] = _r(row['total_discount'])
    return rows


def _sales_by(group_label, label_key, start, end):
    groups = {}
    for order, item, sales in _allocated_lines(start, end):
        label = group_label(item.product)
        row = groups.get(label)
        if row is None:
            row = groups[label] = {
                label_key: label,
                'total_quantity': 0,
                'total_sales': ZERO,
                'total_discount': ZERO,
                'orders': set(),
            }
        row['total_quantity'] += item.quantity
        row['total_sales'] += sales
        row['total_discount'] += item.discount * item.quantity
        row['orders'].add(order.pk)

    rows = sorted(groups.values(), key=lambda r: (-r['total_sales'], r[label_key]))
    return [
        {
            label_key: row[label_key],
            'total_quantity': row['total_quantity'],
            'total_sales': _r(row['total_sales']),
            'total_discount': _r(row['total_discount']),
            'total_orders': len(row['orders']),
        }
        for row in rows
    ]


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix='reports:by-category')
def sales_by_category(start=None, end=None):
    return _sales_by(lambda p: p.category.name if p.category_id else 'Uncategorized', 'category', start, end)


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix='reports:by-brand')
def sales_by_brand(start=None, end=None):
    return _sales_by(lambda p: p.brand.name if p.brand_id else 'Unknown', 'brand', start, end)


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix='reports:sales-vs-discount')
def sales_vs_discount(start=None, end=None, group_by='day'):
    fmt = '%Y-%m' if group_by == 'month' else '%Y-%m-%d'
    periods = defaultdict(lambda: {'total_sales': ZERO, 'total_discount': ZERO, 'total_orders': 0})
    for order in paid_orders(start, end).only('created_at', 'total', 'shipping_fee', 'discount'):
        row = periods[timezone.localtime(order.created_at).strftime(fmt)]
        row['total_sales'] += order.total - order.shipping_fee
        row['total_discount'] += order.discount
        row['total_orders'] += 1

    return [
        {
            'period': key,
            'total_sales': _r(row['total_sales']),
            'total_discount': _r(row['total_discount']),
            'total_orders': row['total_orders'],
        }
        for key, row in sorted(periods.items())
    ]


def normalize_payment_method(name):
    return re.sub(r'\s+', ' ', (name or 'unknown').strip().lower()) or 'unknown'


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix='reports:by-payment-method')
def sales_by_payment_method(start=None, end=None):
    methods = {}

    def row_for(raw_name):
        key = normalize_payment_method(raw_name)
        if key not in methods:
            methods[key] = {'payment_method': key.title(), 'total_amount': ZERO, 'orders': set(), 'transactions': 0}
        return methods[key]

    for order in paid_orders(start, end).prefetch_related('payments'):
        payments = list(order.payments.all())
        if payments:
            for payment in payments:
                row = row_for(payment.payment_method)
                row['total_amount'] += payment.amount
                row['transactions'] += 1
                row['orders'].add(order.pk)
        else:
            row = row_for(order.payment_method)
            row['total_amount'] += order.total
            row['transactions'] += 1
            row['orders'].add(order.pk)

    rows = sorted(methods.values(), key=lambda r: (-r['total_amount'], r['payment_method']))
    return [
        {
            'payment_method': row['payment_method'],
            'total_amount': _r(row['total_amount']),
            'total_orders': len(row['orders']),
            'transactions': row['transactions'],
        }
        for row in rows
    ]


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix='reports:refunds')
def refunds_and_returns(start=None, end=None):
    orders = _in_range(Order.objects.filter(payment_status__in=REFUND_STATUSES), start, end)
    total_refund = ZERO
    restocked_items = 0
    entries = []

    for order in orders.prefetch_related('payments', 'items').order_by('-created_at'):
        payments = list(order.payments.all())
        if payments:
            refund = sum((-p.amount for p in payments if p.amount < 0), ZERO)
        elif order.payment_status == 'Refunded':
            refund = order.total
        else:
            refund = ZERO

        total_refund += refund
        if order.restocked:
            restocked_items += len(order.items.all())

        entries.append({
            'order_id': order.pk,
            'order_number': order.order_number,
            'status': order.status,
            'payment_status': order.payment_status,
            'refund_amount': _r(refund),
            'restocked': order.restocked,
            'restocked_at': order.restocked_at.isoformat() if order.restocked_at else None,
            'created_at': order.created_at.isoformat(),
        })

    return {
        'total_orders': len(entries),
        'total_refund_amount': _r(total_refund),
        'total_restocked_items': restocked_items,
        'items': entries,
    }


def paginate_rows(rows, page=1, size=20):
    """Slice an already built report list the way API list endpoints paginate"""
    paginator = Paginator(rows, size)
    page_obj = paginator.get_page(page)
    return {
        'results': list(page_obj.object_list),
        'count': paginator.count,
        'page': page_obj.number,
        'size': size,
        'total_pages': paginator.num_pages,
    }


def low_stock(threshold=10, location_id=None):
    lines = InventoryItem.objects.filter(quantity__lte=threshold).select_related('product', 'variant', 'location')
    if location_id:
        lines = lines.filter(location_id=location_id)
    return [
        {
            'id': line.id,
            'product_id': line.product_id,
            'product_name': line.product.name,
            'sku': line.product.sku,
            'variant_id': line.variant_id,
            'variant_name': line.variant.name if line.variant_id else '',
            'size': line.size,
            'location_id': line.location_id,
            'location_name': line.location.name,
            'quantity': line.quantity,
        }
        for line in lines.order_by('quantity', 'product__name')
    ]


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix='reports:valuation')
def stock_valuation(location_id=None):
    lines = InventoryItem.objects.all()
    if location_id:
        lines = lines.filter(location_id=location_id)

    rows = lines.values('location_id', 'location__name').annotate(
        units=Coalesce(Sum('quantity'), 0),
        cost_value=Coalesce(
            Sum(ExpressionWrapper(F('quantity') * F('product__buying_price'), output_field=MONEY)),
            Value(ZERO), output_field=MONEY
        ),
        retail_value=Coalesce(
            Sum(ExpressionWrapper(F('quantity') * F('product__selling_price'), output_field=MONEY)),
            Value(ZERO), output_field=MONEY
        ),
    ).order_by('location__name')

    locations = []
    units = 0
    cost = retail = ZERO
    for row in rows:
        units += row['units']
        cost += row['cost_value']
        retail += row['retail_value']
        locations.append({
            'location_id': row['location_id'],
            'location_name': row['location__name'],
            'units': row['units'],
            'cost_value': _r(row['cost_value']),
            'retail_value': _r(row['retail_value']),
        })

    return {
        'locations': locations,
        'total': {'units': units, 'cost_value': _r(cost), 'retail_value': _r(retail)},
    }


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix='reports:expenses')
def expense_report(start, end, category_id=None):
    entries = _in_range(
        PettyCash.objects.filter(status='APPROVED', type='expense', is_deleted=False), start, end
    ).select_related('category')
    if category_id:
        entries = entries.filter(category_id=category_id)

    by_category = entries.values('category_id', 'category__name').annotate(
        amount=Sum('amount'), count=Count('id')
    ).order_by('-amount')
    total = entries.aggregate(total=Coalesce(Sum('amount'), Value(ZERO), output_field=MONEY))['total']

    return {
        'total_expenses': _r(total),
        'by_category': [
            {'category_id': row['category_id'], 'category': row['category__name'],
             'amount': _r(row['amount']), 'count': row['count']}
            for row in by_category
        ],
        'entries': [
            {
                'id': entry.id,
                'entry_number': entry.entry_number,
                'amount': _r(entry.amount),
                'category': entry.category.name,
                'paid_for': entry.paid_for,
                'payment_method': entry.payment_method,
                'created_at': entry.created_at.isoformat(),
            }
            for entry in entries.order_by('-created_at')
        ],
    }


@cached_query(cache_ttl=60, key_prefix='reports:dashboard')
def dashboard_overview(start, end):
    orders = _in_range(Order.objects.exclude(payment_status__in=EXCLUDED_FROM_DASHBOARD), start, end)
    totals = orders.aggregate(
        total=Coalesce(Sum('total'), Value(ZERO), output_field=MONEY),
        shipping=Coalesce(Sum('shipping_fee'), Value(ZERO), output_field=MONEY),
        fees=Coalesce(Sum('fee'), Value(ZERO), output_field=MONEY),
        discounts=Coalesce(Sum('discount'), Value(ZERO), output_field=MONEY),
        transaction_fees=Coalesce(Sum('transaction_fee_charge'), Value(ZERO), output_field=MONEY),
        orders=Count('id'),
    )
    net_sales = totals['total'] - totals['shipping'] - totals['fees']
    gross_sales = net_sales + totals['discounts']
    cogs = _cogs(orders)
    profit = net_sales - cogs + totals['fees'] - totals['transaction_fees']

    return {
        'total_orders': totals['orders'],
        'gross_sales': _r(gross_sales),
        'net_sales': _r(net_sales),
        'total_discount': _r(totals['discounts']),
        'cogs': _r(cogs),
        'fees': _r(totals['fees']),
        'transaction_fees': _r(totals['transaction_fees']),
        'profit': _r(profit),
    }


def _customer_key(order):
    for value in (order.customer_email, order.customer_phone, order.customer_name):
        if value and value.strip():
            return value.strip().lower()
    return None


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix='reports:customers')
def customer_analytics(start, end, top=10):
    """
    Paid orders grouped by customer (email, then phone, then name).

    A customer is returning when they also have a paid order before
    ``start``. Orders without any customer detail count as guest orders.
    """
    customers = {}
    guest_orders = 0
    guest_sales = ZERO

    for order in paid_orders(start, end).only(
        'customer_name', 'customer_email', 'customer_phone', 'total', 'created_at'
    ).order_by('created_at'):
        key = _customer_key(order)
        if key is None:
            guest_orders += 1
            guest_sales += order.total
            continue
        row = customers.get(key)
        if row is None:
            row = customers[key] = {
                'customer': key,
                'name': order.customer_name,
                'orders': 0,
                'total_spent': ZERO,
                'first_order': order.created_at,
                'last_order': order.created_at,
            }
        row['orders'] += 1
        row['total_spent'] += order.total
        row['last_order'] = order.created_at
        row['name'] = row['name'] or order.customer_name

    earlier = set()
    if customers and start is not None:
        for order in paid_orders().filter(created_at__lt=start).only(
            'customer_name', 'customer_email', 'customer_phone'
        ):
            key = _customer_key(order)
            if key in customers:
                earlier.add(key)

    repeat = sum(1 for row in customers.values() if row['orders'] > 1)
    customer_orders = sum(row['orders'] for row in customers.values())
    customer_sales = sum((row['total_spent'] for row in customers.values()), ZERO)

    ranked = sorted(customers.values(), key=lambda r: (-r['total_spent'], r['customer']))
    return {
        'total_customers': len(customers),
        'new_customers': len(customers) - len(earlier),
        'returning_customers': len(earlier),
        'repeat_customers': repeat,
        'repeat_rate': _pct(repeat, len(customers)),
        'customer_orders': customer_orders,
        'guest_orders': guest_orders,
        'guest_sales': _r(guest_sales),
        'average_order_value': _r(customer_sales / customer_orders) if customer_orders else 0.0,
        'top_customers': [
            {
                'customer': row['customer'],
                'name': row['name'],
                'orders': row['orders'],
                'total_spent': _r(row['total_spent']),
                'average_order_value': _r(row['total_spent'] / row['orders']),
                'first_order': row['first_order'].isoformat(),
                'last_order': row['last_order'].isoformat(),
                'returning': row['customer'] in earlier,
            }
            for row in ranked[:top]
        ],
    }


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix='reports:monthly-revenue')
def monthly_revenue(start=None, end=None):
    """Net sales, cost and profit of paid orders per calendar month"""
    months = {}
    for order in paid_orders(start, end).annotate(
        cost=Coalesce(Sum(_order_cost()), Value(ZERO), output_field=MONEY)
    ).order_by('created_at'):
        key = timezone.localtime(order.created_at).strftime('%Y-%m')
        row = months.setdefault(key, {
            'orders': 0, 'gross_sales': ZERO, 'discount': ZERO, 'net_sales': ZERO,
            'shipping': ZERO, 'cogs': ZERO,
        })
        net = order.total - order.shipping_fee - order.fee
        row['orders'] += 1
        row['gross_sales'] += net + order.discount
        row['discount'] += order.discount
        row['net_sales'] += net
        row['shipping'] += order.shipping_fee
        row['cogs'] += order.cost

    rendered = []
    for key in sorted(months):
        row = months[key]
        profit = row['net_sales'] - row['cogs']
        rendered.append({
            'month': key,
            'orders': row['orders'],
            'gross_sales': _r(row['gross_sales']),
            'discount': _r(row['discount']),
            'net_sales': _r(row['net_sales']),
            'shipping': _r(row['shipping']),
            'cogs': _r(row['cogs']),
            'gross_profit': _r(profit),
            'margin': _pct(profit, row['net_sales']),
        })
    return {
        'months': rendered,
        'total_net_sales': _r(sum((m['net_sales'] for m in months.values()), ZERO)),
        'total_gross_profit': _r(sum((m['net_sales'] - m['cogs'] for m in months.values()), ZERO)),
    }


def _month_bounds(year, month):
    start = timezone.make_aware(datetime(year, month, 1))
    if month == 12:
        end = timezone.make_aware(datetime(year + 1, 1, 1))
    else:
        end = timezone.make_aware(datetime(year, month + 1, 1))
    return start, end - timedelta(microseconds=1)


def yearly_sales_performance(year):
    """Paid and pending orders per month of ``year``, split by store / website"""
    website = [0] * 12
    store = [0] * 12
    start, _ = _month_bounds(year, 1)
    _, end = _month_bounds(year, 12)
    orders = _in_range(Order.objects.filter(payment_status__in=('Paid', 'Pending')), start, end)
    for created_at, source in orders.values_list('created_at', 'source'):
        index = timezone.localtime(created_at).month - 1
        if source == 'website':
            website[index] += 1
        else:
            store[index] += 1
    return {'year': year, 'website': website, 'store': store}


def recent_orders(limit=6):
    orders = Order.objects.prefetch_related('items').order_by('-created_at', '-id')[:limit]
    rows = []
    for order in orders:
        gross = sum((item.price * item.quantity for item in order.items.all()), ZERO)
        rows.append({
            'id': order.pk,
            'order_number': order.order_number,
            'payment_status': order.payment_status,
            'customer_name': order.customer_name or 'Guest Customer',
            'gross_amount': _r(gross),
            'discount_amount': _r(order.discount),
            'net_amount': _r(gross - order.discount),
            'created_at': order.created_at.isoformat(),
        })
    return rows


def popular_items(year, month, limit=10):
    """Products with the most units sold on paid orders in one calendar month"""
    start, end = _month_bounds(year, month)
    rows = (
        OrderItem.objects.filter(order__in=paid_orders(start, end))
        .values('product_id', 'product__name', 'product__sku', 'product__selling_price')
        .annotate(sold_count=Sum('quantity'))
        .order_by('-sold_count', 'product__name')[:limit]
    )
    return [
        {
            'product_id': row['product_id'],
            'name': row['product__name'],
            'sku': row['product__sku'],
            'selling_price': _r(row['product__selling_price']),
            'sold_count': row['sold_count'],
        }
        for row in rows
    ]


def order_status_distribution(start=None, end=None):
    """Order counts per fulfilment status and per payment status"""
    orders = _in_range(Order.objects.all(), start, end)
    total = orders.count()

    def breakdown(field, choices):
        counts = dict(orders.values_list(field).annotate(count=Count('id')).order_by())
        return [
            {field: value, 'label': label, 'count': counts.get(value, 0), 'percentage': _pct(counts.get(value, 0), total)}
            for value, label in choices
        ]

    return {
        'total_orders': total,
        'pending_orders': orders.filter(status='pending').count(),
        'by_status': breakdown('status', Order.STATUS_CHOICES),
        'by_payment_status': breakdown('payment_status', Order.PAYMENT_STATUS_CHOICES),
    }


def _change(current, previous):
    if not previous:
        return 100.0 if current else 0.0
    return round((current - previous) / abs(previous) * 100, 2)


def monthly_comparison(today=None):
    """This month so far against the whole of last month, using the dashboard figures"""
    today = today or timezone.localdate()
    current_start, _ = _month_bounds(today.year, today.month)
    current_end = timezone.make_aware(datetime.combine(today, time.max))
    if today.month == 1:
        previous_start, previous_end = _month_bounds(today.year - 1, 12)
    else:
        previous_start, previous_end = _month_bounds(today.year, today.month - 1)

    def figures(start, end):
        overview = dashboard_overview(start, end)
        return {'orders': overview['total_orders'], 'revenue': overview['net_sales'], 'profit': overview['profit']}

    current = figures(current_start, current_end)
    previous = figures(previous_start, previous_end)
    return {
        'current_month': current,
        'last_month': previous,
        'percentage_change': {key: _change(current[key], previous[key]) for key in current},
    }

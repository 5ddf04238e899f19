"""Order placement, updates and restocking"""
import logging
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from backoffice.core.cache_utils import invalidate_reports_cache
from backoffice.core.exceptions import BusinessRuleError
from backoffice.core.utils import generate_document_number, get_setting
from backoffice.inventory.services import decrease_stock, increase_stock, recompute_product_stock
from backoffice.locations.models import StockLocation
from backoffice.promotions.services import redeem_coupon
from .models import Order, OrderItem, OrderPayment

logger = logging.getLogger('backoffice.orders')

ONLINE_STOCK_SETTING = 'online_stock_location'
RESTOCKABLE_PAYMENT_STATUSES = ('Refunded', 'Returned')
UPDATABLE_FIELDS = ('status', 'payment_status', 'payment_method', 'customer_name', 'customer_email',
                    'customer_phone', 'shipping_address')


def online_stock_location():
    """Location website orders ship from, configured by the ``online_stock_location`` setting (id or code)"""
    value = get_setting(ONLINE_STOCK_SETTING)
    if not value:
        raise BusinessRuleError(f'Setting "{ONLINE_STOCK_SETTING}" is not configured')
    value = str(value).strip()
    lookup = {'pk': int(value)} if value.isdigit() else {'code': value}
    location = StockLocation.objects.filter(**lookup).first()
    if location is None:
        raise BusinessRuleError(f'Online stock location "{value}" does not exist')
    return location


def place_order(data, user=None):
    """
    Create an order and take its stock.

    Store orders ship from ``data['location']`` and clamp short lines at zero;
    website orders ship from the online stock location and fail as a whole
    with InsufficientStockError when any line is short. A coupon code is
    redeemed in the same transaction.
    """
    items = data.get('items') or []
    if not items:
        raise BusinessRuleError('Order items are required')
    if any(item['quantity'] <= 0 for item in items):
        raise BusinessRuleError('Item quantities must be greater than zero')

    source = (data.get('source') or '').lower()
    if source not in ('store', 'website'):
        raise BusinessRuleError(f'Invalid order source: {data.get("source")}')

    with transaction.atomic():
        if source == 'website':
            location = online_stock_location()
        else:
            location = data.get('location')
            if location is None:
                raise BusinessRuleError('A location is required for store orders')

        order = Order.objects.create(
            order_number=data.get('order_number') or generate_document_number(Order, 'order_number', 'ORD'),
            source=source,
            location=location,
            customer_name=data.get('customer_name', ''),
            customer_email=data.get('customer_email', ''),
            customer_phone=data.get('customer_phone', ''),
            shipping_address=data.get('shipping_address', ''),
            status=data.get('status') or 'pending',
            payment_status=data.get('payment_status') or 'Pending',
            payment_method=data.get('payment_method', ''),
            shipping_fee=data.get('shipping_fee') or Decimal('0'),
            fee=data.get('fee') or Decimal('0'),
            transaction_fee_charge=data.get('transaction_fee_charge') or Decimal('0'),
            discount=data.get('discount') or Decimal('0'),
            coupon_code=(data.get('coupon_code') or '').strip().upper(),
            created_by=user,
        )

        subtotal = Decimal('0')
        item_discount = Decimal('0')
        cart_items = []
        for item in items:
            product = item['product']
            variant = item.get('variant')
            buying_price = item.get('buying_price')
            if buying_price is None:
                buying_price = product.buying_price
            OrderItem.objects.create(
                order=order,
                product=product,
                variant=variant,
                size=item.get('size') or '',
                name=item.get('name') or product.name,
                variant_name=item.get('variant_name') or (variant.name if variant else ''),
                quantity=item['quantity'],
                price=item['price'],
                discount=item.get('discount') or Decimal('0'),
                buying_price=buying_price,
            )
            subtotal += item['price'] * item['quantity']
            item_discount += (item.get('discount') or Decimal('0')) * item['quantity']
            cart_items.append({'product': product.pk, 'quantity': item['quantity'],
                               'price': item['price'] - (item.get('discount') or Decimal('0'))})

            decrease_stock(
                product, variant, item.get('size'), location, item['quantity'],
                allow_partial=(source == 'store'), recompute=False
            )

        order.discount += item_discount
        if order.coupon_code:
            customer = order.customer_email or order.customer_phone or None
            order.discount += redeem_coupon(
                order.coupon_code, customer, order,
                cart_total=subtotal - item_discount,
                cart_items=cart_items,
                shipping_fee=order.shipping_fee,
            )

        order.total = max(subtotal - order.discount, Decimal('0')) + order.shipping_fee + order.fee
        order.save(update_fields=['discount', 'total', 'updated_at'])

        for payment in data.get('payments') or []:
            OrderPayment.objects.create(order=order, **payment)

        recompute_product_stock(item['product'].pk for item in items)
        transaction.on_commit(invalidate_reports_cache)

    logger.info(f"Order {order.order_number} ({source}) placed at {location.name}: total {order.total}")
    return order


def update_order(order, data):
    """Update status, payment status and customer details. Returns ``{field: (old, new)}``."""
    with transaction.atomic():
        locked = Order.objects.select_for_update().get(pk=order.pk)
        if locked.payment_status == 'Refunded':
            raise BusinessRuleError(f'Order {locked.order_number} is already refunded and cannot be updated')

        changes = {}
        for field in UPDATABLE_FIELDS:
            if field in data and data[field] != getattr(locked, field):
                changes[field] = (getattr(locked, field), data[field])
                setattr(locked, field, data[field])
        if changes:
            locked.save()
            transaction.on_commit(invalidate_reports_cache)
    return locked, changes


def add_payment(order, payment_method, amount, reference=''):
    """Record a split payment (negative amount for a refund)"""
    if not amount:
        raise BusinessRuleError('Payment amount must not be zero')
    with transaction.atomic():
        payment = OrderPayment.objects.create(
            order=order, payment_method=payment_method, amount=amount, reference=reference
        )
        transaction.on_commit(invalidate_reports_cache)
    return payment


def restock_order(order):
    """Return the stock of a refunded or returned order to its location, once"""
    with transaction.atomic():
        locked = Order.objects.select_for_update().get(pk=order.pk)
        if locked.payment_status not in RESTOCKABLE_PAYMENT_STATUSES:
            raise BusinessRuleError(
                f'Only refunded or returned orders can be restocked; {locked.order_number} is "{locked.payment_status}"'
            )
        if locked.restocked:
            raise BusinessRuleError(f'Order {locked.order_number} has already been restocked')
        if locked.location_id is None:
            raise BusinessRuleError(f'Order {locked.order_number} has no stock location')

        product_ids = set()
        units = 0
        for item in locked.items.select_related('product', 'variant'):
            increase_stock(item.product, item.variant, item.size, locked.location, item.quantity, recompute=False)
            product_ids.add(item.product_id)
            units += item.quantity

        locked.restocked = True
        locked.restocked_at = timezone.now()
        locked.save(update_fields=['restocked', 'restocked_at', 'updated_at'])
        recompute_product_stock(product_ids)
        transaction.on_commit(invalidate_reports_cache)

    logger.info(f"Order {locked.order_number} restocked: {units} unit(s) returned to {locked.location.name}")
    return locked

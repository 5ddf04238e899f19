"""Coupon validation and redemption"""
import logging
from decimal import Decimal, ROUND_HALF_UP

from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from backoffice.catalog.models import Product
from backoffice.core.exceptions import CouponError
from backoffice.orders.models import Order
from .models import Coupon, CouponUsage

logger = logging.getLogger('backoffice.promotions')

CENT = Decimal('0.01')


def _money(value):
    return Decimal(str(value or 0)).quantize(CENT, rounding=ROUND_HALF_UP)


def _result(valid, message, discount=Decimal('0.00'), coupon=None):
    return {'valid': valid, 'discount': _money(discount), 'message': message, 'coupon': coupon}


def _line_product_id(line):
    product = line.get('product') if isinstance(line, dict) else None
    if isinstance(product, Product):
        return product.pk
    return product if product is not None else line.get('product_id')


def eligible_lines(coupon, cart_items):
    """Cart lines the coupon applies to: not excluded, and inside its product/category restrictions if any"""
    product_ids = {_line_product_id(line) for line in cart_items}
    categories = dict(Product.objects.filter(pk__in=product_ids).values_list('pk', 'category_id'))

    excluded = set(coupon.excluded_products.values_list('pk', flat=True))
    applicable_products = set(coupon.applicable_products.values_list('pk', flat=True))
    applicable_categories = set(coupon.applicable_categories.values_list('pk', flat=True))
    restricted = bool(applicable_products or applicable_categories)

    lines = []
    for line in cart_items:
        product_id = _line_product_id(line)
        if product_id in excluded:
            continue
        if restricted and product_id not in applicable_products and categories.get(product_id) not in applicable_categories:
            continue
        lines.append(line)
    return lines


def calculate_discount(coupon, eligible_subtotal, shipping_fee=0):
    """Discount granted by ``coupon`` on an eligible subtotal, rounded to cents"""
    eligible_subtotal = Decimal(str(eligible_subtotal))
    if coupon.discount_type == 'FREE_SHIPPING':
        return _money(shipping_fee)

    if coupon.discount_type == 'PERCENTAGE':
        discount = eligible_subtotal * coupon.discount_value / Decimal('100')
        if coupon.max_discount is not None:
            discount = min(discount, coupon.max_discount)
    else:
        discount = coupon.discount_value

    return _money(max(min(discount, eligible_subtotal), Decimal('0')))


def _previous_orders(customer, exclude_order_id=None):
    orders = Order.objects.filter(Q(customer_email__iexact=customer) | Q(customer_phone=customer))
    if exclude_order_id is not None:
        orders = orders.exclude(pk=exclude_order_id)
    return orders


def validate_coupon(code, customer=None, cart_total=0, cart_items=None, shipping_fee=0, now=None,
                    exclude_order_id=None):
    """
    Check ``code`` against a cart.

    ``cart_items`` is a list of ``{'product': id, 'quantity': n, 'price': unit_price}``.
    Returns ``{'valid', 'discount', 'message', 'coupon'}``.
    """
    cart_items = cart_items or []
    now = now or timezone.now()
    code = (code or '').strip()

    coupon = Coupon.objects.filter(code__iexact=code, is_deleted=False).first() if code else None
    if coupon is None:
        return _result(False, 'Invalid coupon code')

    if coupon.status != 'ACTIVE':
        return _result(False, 'This coupon is not active', coupon=coupon)

    if coupon.start_date and now < coupon.start_date:
        return _result(False, 'This coupon is not valid yet', coupon=coupon)
    if coupon.end_date and now > coupon.end_date:
        return _result(False, 'This coupon has expired', coupon=coupon)

    if coupon.usage_limit is not None and coupon.usage_count >= coupon.usage_limit:
        return _result(False, 'This coupon has reached its usage limit', coupon=coupon)

    if customer and coupon.per_user_limit is not None:
        used = CouponUsage.objects.filter(coupon=coupon, customer__iexact=customer).count()
        if used >= coupon.per_user_limit:
            return _result(False, 'You have already used this coupon the maximum number of times', coupon=coupon)

    if coupon.first_order_only:
        if not customer:
            return _result(False, 'This coupon is valid for first orders only', coupon=coupon)
        if _previous_orders(customer, exclude_order_id).exists():
            return _result(False, 'This coupon is valid for first orders only', coupon=coupon)

    lines = eligible_lines(coupon, cart_items)
    if cart_items and not lines:
        return _result(False, 'This coupon does not apply to any item in your cart', coupon=coupon)

    eligible_quantity = sum(int(line.get('quantity', 0)) for line in lines)
    if coupon.min_quantity and eligible_quantity < coupon.min_quantity:
        return _result(False, f'At least {coupon.min_quantity} eligible item(s) are required', coupon=coupon)

    cart_total = Decimal(str(cart_total or 0))
    if coupon.min_order_amount is not None and cart_total < coupon.min_order_amount:
        return _result(False, f'Minimum order amount is {_money(coupon.min_order_amount)}', coupon=coupon)

    if cart_items:
        eligible_subtotal = sum(
            (Decimal(str(line.get('price', 0))) * int(line.get('quantity', 0)) for line in lines),
            Decimal('0')
        )
    else:
        eligible_subtotal = cart_total

    discount = calculate_discount(coupon, eligible_subtotal, shipping_fee)
    return _result(True, 'Coupon applied', discount=discount, coupon=coupon)


def redeem_coupon(code, customer, order, cart_total, cart_items, shipping_fee=0):
    """
    Validate and redeem a coupon for ``order`` inside the caller's transaction.

    Raises CouponError when the coupon is not valid. Returns the discount.
    """
    with transaction.atomic():
        locked = Coupon.objects.select_for_update().filter(code__iexact=(code or '').strip(), is_deleted=False).first()
        result = validate_coupon(code, customer, cart_total, cart_items, shipping_fee, exclude_order_id=order.pk)
        if not result['valid'] or locked is None:
            raise CouponError(result['message'])

        CouponUsage.objects.create(
            coupon=locked,
            customer=customer or '',
            order=order,
            discount_applied=result['discount'],
        )
        Coupon.objects.filter(pk=locked.pk).update(usage_count=F('usage_count') + 1)

    logger.info(f"Coupon {locked.code} redeemed on order {order.order_number} for {result['discount']}")
    return result['discount']

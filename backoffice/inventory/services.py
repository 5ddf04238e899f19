"""
Stock ledger operations.

Every function here expects to run inside ``transaction.atomic`` (the public
entry points open one themselves) and locks the ledger lines it touches with
``select_for_update`` so concurrent moves on the same line serialize.
"""
import logging

from django.db import IntegrityError, transaction
from django.db.models import F, Sum
from django.db.models.functions import Coalesce

from backoffice.catalog.models import Product
from backoffice.core.cache_utils import invalidate_reports_cache
from backoffice.core.exceptions import BusinessRuleError, InsufficientStockError
from backoffice.core.utils import generate_document_number
from .models import InventoryItem, InventoryAdjustment, AdjustmentItem

logger = logging.getLogger('backoffice.inventory')

INCREASE_TYPES = ('add', 'return')
CLAMPED_DECREASE_TYPES = ('remove', 'damage')


def _check_quantity(quantity, allow_zero=False):
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise BusinessRuleError(f'Quantity must be an integer, got {quantity!r}')
    if quantity < 0 or (quantity == 0 and not allow_zero):
        raise BusinessRuleError('Quantity must be greater than zero' if not allow_zero else 'Quantity must not be negative')


def _describe(product, variant, size, location):
    label = product.name
    if variant is not None:
        label += f' / {variant.name}'
    if size:
        label += f' / {size}'
    return f'{label} at {location.name}'


def lock_line(product, variant, size, location, create=False):
    """
    Return the locked ledger line for (product, variant, size, location).

    When ``create`` is true a missing line is created with quantity 0;
    otherwise ``None`` is returned for a missing line.
    """
    lookup = dict(product=product, variant=variant, size=size or '', location=location)
    item = InventoryItem.objects.select_for_update().filter(**lookup).first()
    if item is None and create:
        try:
            with transaction.atomic():
                item = InventoryItem.objects.create(quantity=0, **lookup)
        except IntegrityError:
            # Created concurrently by another transaction
            item = InventoryItem.objects.select_for_update().get(**lookup)
    return item


def recompute_product_stock(product_ids):
    """Refresh the derived ``total_stock`` / ``in_stock`` of the given products"""
    for product_id in sorted(set(product_ids)):
        Product.objects.select_for_update().filter(pk=product_id).first()
        total = InventoryItem.objects.filter(product_id=product_id).aggregate(
            total=Coalesce(Sum('quantity'), 0)
        )['total']
        Product.objects.filter(pk=product_id).update(total_stock=total, in_stock=total > 0)


def _after_commit():
    transaction.on_commit(invalidate_reports_cache)


def increase_stock(product, variant, size, location, quantity, recompute=True):
    """Add ``quantity`` units to a line, creating it when needed. Returns the line."""
    _check_quantity(quantity, allow_zero=True)
    with transaction.atomic():
        item = lock_line(product, variant, size, location, create=True)
        if quantity:
            InventoryItem.objects.filter(pk=item.pk).update(quantity=F('quantity') + quantity)
            item.refresh_from_db(fields=['quantity', 'updated_at'])
        if recompute:
            recompute_product_stock([product.pk])
        _after_commit()
    logger.debug(f"Stock +{quantity}: {_describe(product, variant, size, location)} -> {item.quantity}")
    return item


def decrease_stock(product, variant, size, location, quantity, allow_partial=False, recompute=True,
                   allow_missing=False):
    """
    Remove ``quantity`` units from a line and return the number actually removed.

    A short line raises InsufficientStockError unless ``allow_partial`` is
    set, in which case the line is clamped at zero. A missing line raises
    too unless ``allow_missing`` is also set; it then counts as an empty
    line and nothing is removed.
    """
    _check_quantity(quantity)
    with transaction.atomic():
        item = lock_line(product, variant, size, location)
        if item is None and allow_partial and allow_missing:
            logger.warning(f"No stock recorded for {_describe(product, variant, size, location)}, nothing removed")
            return 0
        if item is None:
            raise InsufficientStockError(f'No stock recorded for {_describe(product, variant, size, location)}')
        if item.quantity < quantity and not allow_partial:
            raise InsufficientStockError(
                f'Insufficient stock for {_describe(product, variant, size, location)}: '
                f'available {item.quantity}, requested {quantity}'
            )
        removed = min(item.quantity, quantity)
        if removed:
            InventoryItem.objects.filter(pk=item.pk).update(quantity=F('quantity') - removed)
            item.refresh_from_db(fields=['quantity', 'updated_at'])
        if recompute:
            recompute_product_stock([product.pk])
        _after_commit()
    if removed < quantity:
        logger.warning(
            f"Stock clamped at zero for {_describe(product, variant, size, location)}: "
            f"requested {quantity}, removed {removed}"
        )
    return removed


def add_inventory(product, variant, size, location, quantity):
    """Create a ledger line or increase an existing one. Returns ``(item, created)``."""
    _check_quantity(quantity, allow_zero=True)
    with transaction.atomic():
        existed = lock_line(product, variant, size, location) is not None
        item = increase_stock(product, variant, size, location, quantity)
    return item, not existed


def add_bulk_inventory(product, variant, location, size_quantities):
    """
    Add stock for several sizes of one product/variant at one location.

    ``size_quantities`` is a list of ``{'size': ..., 'quantity': ...}``.
    Returns ``{'created': n, 'updated': n, 'items': [...]}``.
    """
    created = updated = 0
    items = []
    with transaction.atomic():
        for entry in size_quantities:
            size = entry.get('size') or ''
            quantity = entry.get('quantity', 0)
            _check_quantity(quantity, allow_zero=True)
            existed = lock_line(product, variant, size, location) is not None
            item = increase_stock(product, variant, size, location, quantity, recompute=False)
            items.append(item)
            if existed:
                updated += 1
            else:
                created += 1
        recompute_product_stock([product.pk])
    logger.info(f"Bulk inventory for {product.name} at {location.name}: {created} created, {updated} updated")
    return {'created': created, 'updated': updated, 'items': items}


def set_inventory_quantity(item, quantity):
    """Overwrite the quantity of an existing ledger line. Returns ``(item, old_quantity)``."""
    _check_quantity(quantity, allow_zero=True)
    with transaction.atomic():
        locked = InventoryItem.objects.select_for_update().get(pk=item.pk)
        old_quantity = locked.quantity
        locked.quantity = quantity
        locked.save(update_fields=['quantity', 'updated_at'])
        recompute_product_stock([locked.product_id])
        _after_commit()
    return locked, old_quantity


def apply_adjustment(adjustment):
    """
    Apply the stock effect of every line of ``adjustment``.

    add / return increase stock at the line's location; remove / damage
    decrease it, clamped at zero; transfer strictly decreases the source and
    increases the destination by the same amount. Any failure rolls back the
    whole adjustment.
    """
    adjustment_type = adjustment.adjustment_type
    product_ids = set()

    with transaction.atomic():
        for line in adjustment.items.select_related('product', 'variant', 'location', 'destination_location'):
            if line.quantity <= 0:
                raise BusinessRuleError('Adjustment quantities must be greater than zero')

            if adjustment_type in INCREASE_TYPES:
                increase_stock(line.product, line.variant, line.size, line.location, line.quantity, recompute=False)
                applied = line.quantity
            elif adjustment_type in CLAMPED_DECREASE_TYPES:
                applied = decrease_stock(
                    line.product, line.variant, line.size, line.location, line.quantity,
                    allow_partial=True, allow_missing=True, recompute=False
                )
            elif adjustment_type == 'transfer':
                if line.destination_location_id is None:
                    raise BusinessRuleError('Transfers require a destination location')
                if line.destination_location_id == line.location_id:
                    raise BusinessRuleError('Transfer destination must differ from the source location')
                applied = decrease_stock(line.product, line.variant, line.size, line.location, line.quantity, recompute=False)
                increase_stock(line.product, line.variant, line.size, line.destination_location, applied, recompute=False)
            else:
                raise BusinessRuleError(f'Unknown adjustment type "{adjustment_type}"')

            if applied != line.applied_quantity:
                line.applied_quantity = applied
                line.save(update_fields=['applied_quantity'])
            product_ids.add(line.product_id)

        recompute_product_stock(product_ids)

    logger.info(f"Adjustment {adjustment.adjustment_number} ({adjustment_type}) applied to {len(product_ids)} product(s)")
    return adjustment


def create_adjustment(adjustment_type, items, user=None, reason='', notes=''):
    """
    Create an adjustment document with its lines and apply it atomically.

    ``items`` is a list of dicts with product, variant, size, quantity,
    location and (for transfers) destination_location.
    """
    if not items:
        raise BusinessRuleError('An adjustment needs at least one item')

    with transaction.atomic():
        adjustment = InventoryAdjustment.objects.create(
            adjustment_number=generate_document_number(InventoryAdjustment, 'adjustment_number', 'ADJ'),
            adjustment_type=adjustment_type,
            reason=reason or '',
            notes=notes or '',
            adjusted_by=user,
        )
        AdjustmentItem.objects.bulk_create([
            AdjustmentItem(
                adjustment=adjustment,
                product=item['product'],
                variant=item.get('variant'),
                size=item.get('size') or '',
                quantity=item['quantity'],
                location=item['location'],
                destination_location=item.get('destination_location'),
            )
            for item in items
        ])
        apply_adjustment(adjustment)
    return adjustment

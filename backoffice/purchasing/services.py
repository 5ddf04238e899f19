"""Purchase order lifecycle and goods receipt"""
import logging
from collections import defaultdict
from decimal import Decimal

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from backoffice.catalog.models import Product
from backoffice.core.exceptions import InvalidStatusTransition, ReceiptError
from backoffice.core.utils import generate_document_number
from backoffice.inventory.services import increase_stock, recompute_product_stock
from .models import PurchaseOrder, PurchaseOrderItem, GoodsReceivedNote, GRNItem

logger = logging.getLogger('backoffice.purchasing')

# 'partial' and 'received' are reached only by receiving goods
ALLOWED_TRANSITIONS = {
    'draft': {'sent', 'cancelled'},
    'sent': {'cancelled'},
}

RECEIVABLE_STATUSES = ('sent', 'partial')


def change_status(purchase_order, new_status):
    """Move a purchase order to ``new_status``. Returns the previous status."""
    with transaction.atomic():
        po = PurchaseOrder.objects.select_for_update().get(pk=purchase_order.pk)
        old_status = po.status
        if new_status not in ALLOWED_TRANSITIONS.get(old_status, set()):
            raise InvalidStatusTransition(
                f'Cannot change purchase order {po.po_number} from "{old_status}" to "{new_status}"'
            )
        po.status = new_status
        po.save(update_fields=['status', 'updated_at'])
    purchase_order.status = new_status
    logger.info(f"Purchase order {po.po_number}: {old_status} -> {new_status}")
    return old_status


def receive_goods(purchase_order, items, user=None, received_date=None, notes=''):
    """
    Record a goods received note against ``purchase_order`` and put the stock away.

    ``items`` is a list of dicts with ``po_item`` (id), ``received_quantity``,
    and optional ``unit_cost`` and ``location``. Runs in one transaction:
    any invalid line rejects the whole receipt.
    """
    if not items:
        raise ReceiptError('At least one item is required')

    with transaction.atomic():
        po = PurchaseOrder.objects.select_for_update().get(pk=purchase_order.pk)

        if po.status not in RECEIVABLE_STATUSES:
            raise ReceiptError(
                f'Goods can only be received for sent or partially received orders; {po.po_number} is "{po.status}"'
            )

        po_items = {item.id: item for item in PurchaseOrderItem.objects.select_for_update().filter(purchase_order=po)}
        receiving = defaultdict(int)
        lines = []

        for index, line in enumerate(items, start=1):
            po_item = po_items.get(line['po_item'])
            if po_item is None:
                raise ReceiptError(f'Line {index}: item {line["po_item"]} does not belong to {po.po_number}')

            quantity = line['received_quantity']
            if quantity <= 0:
                raise ReceiptError(f'Line {index}: received quantity must be greater than zero')

            remaining = po_item.quantity - po_item.received_quantity - receiving[po_item.id]
            if quantity > remaining:
                raise ReceiptError(
                    f'Line {index}: received quantity {quantity} exceeds the remaining {max(remaining, 0)}'
                )

            location = line.get('location') or po.location
            if location is None:
                raise ReceiptError(f'Line {index}: a receiving location is required')

            unit_cost = line.get('unit_cost')
            if unit_cost is None:
                unit_cost = po_item.unit_cost

            receiving[po_item.id] += quantity
            lines.append((po_item, quantity, Decimal(unit_cost), location))

        grn = GoodsReceivedNote.objects.create(
            grn_number=generate_document_number(GoodsReceivedNote, 'grn_number', 'GRN'),
            purchase_order=po,
            supplier_id=po.supplier_id,
            received_date=received_date or timezone.localdate(),
            notes=notes or '',
            received_by=user,
        )

        total = Decimal('0.00')
        for po_item, quantity, unit_cost, location in lines:
            line_total = unit_cost * quantity
            GRNItem.objects.create(
                grn=grn,
                po_item=po_item,
                product_id=po_item.product_id,
                variant_id=po_item.variant_id,
                size=po_item.size,
                ordered_quantity=po_item.quantity,
                received_quantity=quantity,
                unit_cost=unit_cost,
                total_cost=line_total,
                location=location,
            )
            increase_stock(po_item.product, po_item.variant, po_item.size, location, quantity, recompute=False)
            PurchaseOrderItem.objects.filter(pk=po_item.pk).update(received_quantity=F('received_quantity') + quantity)
            # Latest received cost becomes the product's buying price
            Product.objects.filter(pk=po_item.product_id).update(buying_price=unit_cost)
            total += line_total

        grn.total_amount = total
        grn.save(update_fields=['total_amount'])

        recompute_product_stock(po_item.product_id for po_item, _, _, _ in lines)

        po.status = 'received' if po.is_fully_received() else 'partial'
        po.save(update_fields=['status', 'updated_at'])

    purchase_order.status = po.status
    logger.info(f"GRN {grn.grn_number} received {sum(q for _, q, _, _ in lines)} unit(s) for {po.po_number}; PO now {po.status}")
    return grn

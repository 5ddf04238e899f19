"""
Comprehensive test suite for Purchasing module
Tests: purchase order creation, draft-only edits, status transitions,
goods received notes (partial / full receipt, validation, stock and cost effects)
"""
from decimal import Decimal
from django.test import TestCase
from rest_framework import status
from backoffice.catalog.models import Product
from backoffice.core.exceptions import InvalidStatusTransition, ReceiptError
from backoffice.core.models import AuditLog
from backoffice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backoffice.inventory.models import InventoryItem
from backoffice.purchasing import services
from backoffice.purchasing.models import PurchaseOrder, PurchaseOrderItem, GoodsReceivedNote
from backoffice.purchasing.serializers import PurchaseOrderSerializer


class PurchaseOrderModelTests(TestCase):
    """Test PurchaseOrder and PurchaseOrderItem model methods"""

    def setUp(self):
        self.product = TestDataFactory.create_product()

    def test_item_total_cost(self):
        po = TestDataFactory.create_purchase_order(items=[(self.product, 3, Decimal('12.50'))])
        item = po.items.get()
        self.assertEqual(item.total_cost, Decimal('37.50'))
        self.assertEqual(item.remaining_quantity, 3)

    def test_fully_received(self):
        po = TestDataFactory.create_purchase_order(items=[(self.product, 2, Decimal('1.00'))])
        self.assertFalse(po.is_fully_received())
        po.items.update(received_quantity=2)
        self.assertTrue(po.is_fully_received())


class PurchaseOrderAPITests(TestCase):
    """Test purchase order endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.supplier = TestDataFactory.create_supplier()
        self.location = TestDataFactory.create_location()
        self.product = TestDataFactory.create_product()

    def _create(self, items=None):
        data = {
            'supplier': self.supplier.id,
            'location': self.location.id,
            'items': items if items is not None else [
                {'product': self.product.id, 'size': 'M', 'quantity': 10, 'unit_cost': '25.00'},
                {'product': self.product.id, 'size': 'L', 'quantity': 5, 'unit_cost': '30.00'},
            ],
        }
        return self.client.post('/api/v2/purchase-orders/', data, format='json')

    def test_create_purchase_order(self):
        response = self._create()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['po_number'].startswith('PO-'))
        self.assertEqual(response.data['status'], 'draft')
        self.assertEqual(Decimal(response.data['total_amount']), Decimal('400.00'))
        self.assertEqual(len(response.data['items']), 2)
        self.assertTrue(AuditLog.objects.filter(model_name='PurchaseOrder', action='create').exists())

    def test_create_requires_items(self):
        response = self._create(items=[])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('items', response.data)

    def test_create_rejects_zero_quantity(self):
        response = self._create(items=[{'product': self.product.id, 'quantity': 0, 'unit_cost': '1.00'}])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_draft_replaces_items(self):
        po_id = self._create().data['id']
        data = {'items': [{'product': self.product.id, 'quantity': 2, 'unit_cost': '10.00'}]}
        response = self.client.patch(f'/api/v2/purchase-orders/{po_id}/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(PurchaseOrderItem.objects.filter(purchase_order_id=po_id).count(), 1)
        self.assertEqual(PurchaseOrder.objects.get(pk=po_id).total_amount, Decimal('20.00'))

    def test_update_refused_when_sent_after_load(self):
        po_id = self._create().data['id']
        loaded = PurchaseOrder.objects.get(pk=po_id)
        PurchaseOrder.objects.filter(pk=po_id).update(status='sent')

        serializer = PurchaseOrderSerializer(loaded, data={'notes': 'late edit'}, partial=True,
                                             context={'items_data': None})
        self.assertTrue(serializer.is_valid(), serializer.errors)
        with self.assertRaises(InvalidStatusTransition):
            serializer.save()

        purchase_order = PurchaseOrder.objects.get(pk=po_id)
        self.assertEqual(purchase_order.status, 'sent')
        self.assertEqual(purchase_order.notes, '')
        self.assertEqual(purchase_order.items.count(), 2)

    def test_update_writes_only_edited_fields(self):
        po_id = self._create().data['id']
        loaded = PurchaseOrder.objects.get(pk=po_id)
        PurchaseOrder.objects.filter(pk=po_id).update(total_amount=Decimal('1.00'))

        serializer = PurchaseOrderSerializer(loaded, data={'notes': 'call first'}, partial=True,
                                             context={'items_data': None})
        self.assertTrue(serializer.is_valid(), serializer.errors)
        serializer.save()

        purchase_order = PurchaseOrder.objects.get(pk=po_id)
        self.assertEqual(purchase_order.notes, 'call first')
        self.assertEqual(purchase_order.total_amount, Decimal('1.00'))

    def test_status_transitions(self):
        po_id = self._create().data['id']
        response = self.client.patch(f'/api/v2/purchase-orders/{po_id}/', {'status': 'sent'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'sent')

        response = self.client.patch(f'/api/v2/purchase-orders/{po_id}/', {'status': 'draft'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.patch(f'/api/v2/purchase-orders/{po_id}/', {'status': 'received'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_sent_order_cannot_be_edited_or_deleted(self):
        po_id = self._create().data['id']
        self.client.patch(f'/api/v2/purchase-orders/{po_id}/', {'status': 'sent'}, format='json')
        response = self.client.patch(f'/api/v2/purchase-orders/{po_id}/', {'notes': 'changed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.delete(f'/api/v2/purchase-orders/{po_id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_draft(self):
        po_id = self._create().data['id']
        response = self.client.delete(f'/api/v2/purchase-orders/{po_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(PurchaseOrder.objects.filter(pk=po_id).exists())

    def test_pending_filter(self):
        TestDataFactory.create_purchase_order(supplier=self.supplier, status='draft')
        TestDataFactory.create_purchase_order(supplier=self.supplier, status='sent')
        TestDataFactory.create_purchase_order(supplier=self.supplier, status='partial')
        TestDataFactory.create_purchase_order(supplier=self.supplier, status='received')
        response = self.client.get('/api/v2/purchase-orders/?pending=true')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['size'], 15)


class GoodsReceiptTests(TestCase):
    """Test receiving goods against purchase orders"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.location = TestDataFactory.create_location()
        self.product = TestDataFactory.create_product(buying_price=Decimal('20.00'))
        self.po = TestDataFactory.create_purchase_order(
            user=self.user, location=self.location, status='sent',
            items=[(self.product, 10, Decimal('25.00'))]
        )
        self.po_item = self.po.items.get()

    def _receive(self, quantity, **extra):
        line = {'po_item': self.po_item.id, 'received_quantity': quantity}
        line.update(extra)
        return self.client.post('/api/v2/grns/', {'purchase_order': self.po.id, 'items': [line]}, format='json')

    def test_partial_then_full_receipt(self):
        response = self._receive(4)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['grn_number'].startswith('GRN-'))
        self.po.refresh_from_db()
        self.assertEqual(self.po.status, 'partial')
        self.assertEqual(InventoryItem.objects.get(product=self.product, location=self.location).quantity, 4)

        response = self._receive(6)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.po.refresh_from_db()
        self.assertEqual(self.po.status, 'received')
        self.po_item.refresh_from_db()
        self.assertEqual(self.po_item.received_quantity, 10)
        self.assertEqual(Product.objects.get(pk=self.product.pk).total_stock, 10)

    def test_over_receipt_rejected(self):
        self._receive(8)
        response = self._receive(3)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(GoodsReceivedNote.objects.count(), 1)
        self.assertEqual(InventoryItem.objects.get(product=self.product).quantity, 8)

    def test_draft_order_cannot_be_received(self):
        self.po.status = 'draft'
        self.po.save()
        response = self._receive(1)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_foreign_po_item_rejected(self):
        other = TestDataFactory.create_purchase_order(status='sent', items=[(self.product, 1, Decimal('1.00'))])
        data = {'purchase_order': self.po.id, 'items': [{'po_item': other.items.get().id, 'received_quantity': 1}]}
        response = self.client.post('/api/v2/grns/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_receipt_updates_buying_price_and_line_location(self):
        warehouse = TestDataFactory.create_location(location_type='warehouse')
        response = self._receive(2, unit_cost='27.00', location=warehouse.id)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Decimal(response.data['total_amount']), Decimal('54.00'))
        self.assertEqual(Product.objects.get(pk=self.product.pk).buying_price, Decimal('27.00'))
        self.assertEqual(InventoryItem.objects.get(product=self.product, location=warehouse).quantity, 2)
        self.assertTrue(AuditLog.objects.filter(action='stock_receive').exists())

    def test_service_requires_location(self):
        po = TestDataFactory.create_purchase_order(status='sent', items=[(self.product, 1, Decimal('1.00'))])
        with self.assertRaises(ReceiptError):
            services.receive_goods(po, [{'po_item': po.items.get().id, 'received_quantity': 1}])

    def test_received_order_cannot_change_status(self):
        self._receive(10)
        self.po.refresh_from_db()
        with self.assertRaises(InvalidStatusTransition):
            services.change_status(self.po, 'cancelled')

import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.shortcuts import get_object_or_404
from backoffice.core.exceptions import BusinessRuleError
from backoffice.core.utils import business_error_response, create_audit_log, paginate
from .models import PurchaseOrder, GoodsReceivedNote
from .serializers import PurchaseOrderSerializer, GoodsReceivedNoteSerializer, GRNCreateSerializer
from . import services

logger = logging.getLogger('backoffice.purchasing')


def _purchase_order_queryset():
    return PurchaseOrder.objects.select_related('supplier', 'location', 'created_by').prefetch_related(
        'items', 'items__product', 'items__variant'
    )


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def purchase_order_list_create(request):
    """List purchase orders or create a new draft purchase order"""
    if request.method == 'GET':
        queryset = _purchase_order_queryset()

        supplier = request.query_params.get('supplier')
        status_filter = request.query_params.get('status')
        pending = request.query_params.get('pending')

        if supplier:
            queryset = queryset.filter(supplier_id=supplier)
        if pending and pending.lower() == 'true':
            queryset = queryset.filter(status__in=services.RECEIVABLE_STATUSES)
        elif status_filter:
            queryset = queryset.filter(status=status_filter)

        queryset = queryset.order_by('-created_at', '-id')
        return Response(paginate(request, queryset, PurchaseOrderSerializer, default_size=15))

    data = request.data.copy()
    items_data = data.pop('items', [])

    serializer = PurchaseOrderSerializer(data=data, context={'items_data': items_data, 'request': request})
    if serializer.is_valid():
        purchase_order = serializer.save(created_by=request.user)
        create_audit_log(
            request=request,
            action='create',
            model_name='PurchaseOrder',
            object_id=purchase_order.id,
            object_name=purchase_order.supplier.name,
            object_reference=purchase_order.po_number,
            changes={'total_amount': str(purchase_order.total_amount), 'items': purchase_order.items.count()},
        )
        return Response(PurchaseOrderSerializer(purchase_order).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def purchase_order_detail(request, pk):
    """
    Retrieve, update or delete a purchase order.

    A PUT/PATCH body holding only ``status`` is a status change; any other
    update (and delete) is allowed only while the order is a draft.
    """
    purchase_order = get_object_or_404(_purchase_order_queryset(), pk=pk)

    if request.method == 'GET':
        return Response(PurchaseOrderSerializer(purchase_order).data)

    if request.method in ('PUT', 'PATCH') and set(request.data.keys()) == {'status'}:
        new_status = request.data.get('status')
        try:
            old_status = services.change_status(purchase_order, new_status)
        except BusinessRuleError as exc:
            return business_error_response(exc)
        create_audit_log(
            request=request,
            action='status_change',
            model_name='PurchaseOrder',
            object_id=purchase_order.id,
            object_name=purchase_order.supplier.name,
            object_reference=purchase_order.po_number,
            changes={'status': {'old': old_status, 'new': new_status}},
        )
        return Response(PurchaseOrderSerializer(purchase_order).data)

    if purchase_order.status != 'draft':
        return Response(
            {'error': f'Purchase order {purchase_order.po_number} is "{purchase_order.status}"; only draft orders can be modified.'},
            status=status.HTTP_400_BAD_REQUEST
        )

    if request.method in ('PUT', 'PATCH'):
        data = request.data.copy()
        items_data = data.pop('items', None)
        data.pop('status', None)
        serializer = PurchaseOrderSerializer(
            purchase_order,
            data=data,
            partial=request.method == 'PATCH',
            context={'items_data': items_data, 'request': request}
        )
        if serializer.is_valid():
            try:
                purchase_order = serializer.save()
            except BusinessRuleError as exc:
                return business_error_response(exc)
            create_audit_log(
                request=request,
                action='update',
                model_name='PurchaseOrder',
                object_id=purchase_order.id,
                object_name=purchase_order.supplier.name,
                object_reference=purchase_order.po_number,
                changes={'total_amount': str(purchase_order.total_amount), 'items_replaced': items_data is not None},
            )
            return Response(PurchaseOrderSerializer(_purchase_order_queryset().get(pk=pk)).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    # DELETE
    po_number = purchase_order.po_number
    with transaction.atomic():
        locked = PurchaseOrder.objects.select_for_update().get(pk=pk)
        if locked.status != 'draft':
            return Response(
                {'error': f'Purchase order {po_number} is "{locked.status}"; only draft orders can be modified.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        locked.delete()
    create_audit_log(
        request=request,
        action='delete',
        model_name='PurchaseOrder',
        object_id=pk,
        object_reference=po_number,
    )
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def grn_list_create(request):
    """List goods received notes or receive goods against a purchase order"""
    if request.method == 'GET':
        queryset = GoodsReceivedNote.objects.select_related('purchase_order', 'supplier', 'received_by').prefetch_related(
            'items', 'items__product', 'items__variant', 'items__location'
        )
        purchase_order = request.query_params.get('purchase_order')
        if purchase_order:
            queryset = queryset.filter(purchase_order_id=purchase_order)
        return Response(paginate(request, queryset, GoodsReceivedNoteSerializer))

    serializer = GRNCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    try:
        grn = services.receive_goods(
            data['purchase_order'],
            data['items'],
            user=request.user,
            received_date=data.get('received_date'),
            notes=data.get('notes', ''),
        )
    except BusinessRuleError as exc:
        logger.warning(f"GRN rejected for {data['purchase_order'].po_number}: {exc}")
        return business_error_response(exc)

    create_audit_log(
        request=request,
        action='stock_receive',
        model_name='GoodsReceivedNote',
        object_id=grn.id,
        object_name=grn.purchase_order.po_number,
        object_reference=grn.grn_number,
        changes={
            'total_amount': str(grn.total_amount),
            'po_status': grn.purchase_order.status,
            'items': [
                {'po_item': line.po_item_id, 'received_quantity': line.received_quantity, 'location': line.location_id}
                for line in grn.items.all()
            ],
        },
    )
    return Response(GoodsReceivedNoteSerializer(grn).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def grn_detail(request, pk):
    """Retrieve a goods received note"""
    grn = get_object_or_404(GoodsReceivedNote.objects.select_related('purchase_order', 'supplier'), pk=pk)
    return Response(GoodsReceivedNoteSerializer(grn).data)

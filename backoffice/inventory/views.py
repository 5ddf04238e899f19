import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from backoffice.core.exceptions import BusinessRuleError
from backoffice.core.utils import business_error_response, create_audit_log, paginate
from .models import InventoryItem, InventoryAdjustment
from .serializers import (
    InventoryItemSerializer, InventoryCreateSerializer, InventoryQuantitySerializer,
    InventoryAdjustmentSerializer
)
from . import services

logger = logging.getLogger('backoffice.inventory')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def inventory_list_create(request):
    """List stock ledger lines or add stock (single line or bulk by size)"""
    if request.method == 'GET':
        queryset = InventoryItem.objects.select_related('product', 'variant', 'location')

        product_id = request.query_params.get('product')
        variant_id = request.query_params.get('variant')
        # 'size' is the page size, the stock size label is filtered as item_size
        size = request.query_params.get('item_size')
        location_id = request.query_params.get('location')

        if product_id:
            queryset = queryset.filter(product_id=product_id)
        if variant_id:
            queryset = queryset.filter(variant_id=variant_id)
        if size:
            queryset = queryset.filter(size=size)
        if location_id:
            queryset = queryset.filter(location_id=location_id)

        queryset = queryset.order_by('product__name', 'variant__name', 'size', 'location__name', 'id')
        return Response(paginate(request, queryset, InventoryItemSerializer, default_size=10))

    serializer = InventoryCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    product, variant, location = data['product'], data.get('variant'), data['location']

    try:
        if data['bulk']:
            result = services.add_bulk_inventory(product, variant, location, data['size_quantities'])
            changes = {
                'location': location.name,
                'size_quantities': [dict(entry) for entry in data['size_quantities']],
                'created': result['created'],
                'updated': result['updated'],
            }
            payload = {
                'created': result['created'],
                'updated': result['updated'],
                'items': InventoryItemSerializer(result['items'], many=True).data,
            }
        else:
            item, created = services.add_inventory(product, variant, data['size'], location, data['quantity'])
            changes = {
                'location': location.name,
                'size': data['size'],
                'quantity_added': data['quantity'],
                'new_quantity': item.quantity,
            }
            payload = InventoryItemSerializer(item).data
    except BusinessRuleError as exc:
        return business_error_response(exc)

    create_audit_log(
        request=request,
        action='stock_adjust',
        model_name='InventoryItem',
        object_id=product.id,
        object_name=product.name,
        object_reference=product.sku,
        changes=changes,
    )
    return Response(payload, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated])
def inventory_detail(request, pk):
    """Retrieve a ledger line or set its absolute quantity"""
    item = get_object_or_404(InventoryItem.objects.select_related('product', 'variant', 'location'), pk=pk)

    if request.method == 'GET':
        return Response(InventoryItemSerializer(item).data)

    serializer = InventoryQuantitySerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    item, old_quantity = services.set_inventory_quantity(item, serializer.validated_data['quantity'])
    create_audit_log(
        request=request,
        action='stock_adjust',
        model_name='InventoryItem',
        object_id=item.id,
        object_name=item.product.name,
        object_reference=item.product.sku,
        changes={'quantity': {'old': old_quantity, 'new': item.quantity}, 'location': item.location.name},
    )
    return Response(InventoryItemSerializer(item).data)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def adjustment_list_create(request):
    """List inventory adjustments or create and apply a new one"""
    if request.method == 'GET':
        queryset = InventoryAdjustment.objects.select_related('adjusted_by').prefetch_related(
            'items__product', 'items__variant', 'items__location', 'items__destination_location'
        )
        adjustment_type = request.query_params.get('type')
        if adjustment_type:
            queryset = queryset.filter(adjustment_type=adjustment_type)
        return Response(paginate(request, queryset, InventoryAdjustmentSerializer))

    serializer = InventoryAdjustmentSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    try:
        adjustment = services.create_adjustment(
            adjustment_type=data['adjustment_type'],
            items=data['items'],
            user=request.user,
            reason=data.get('reason', ''),
            notes=data.get('notes', ''),
        )
    except BusinessRuleError as exc:
        logger.warning(f"Adjustment rejected for {request.user.username}: {exc}")
        return business_error_response(exc)

    create_audit_log(
        request=request,
        action='stock_adjust',
        model_name='InventoryAdjustment',
        object_id=adjustment.id,
        object_name=adjustment.get_adjustment_type_display(),
        object_reference=adjustment.adjustment_number,
        changes={
            'type': adjustment.adjustment_type,
            'reason': adjustment.reason,
            'items': [
                {
                    'product': line.product_id,
                    'variant': line.variant_id,
                    'size': line.size,
                    'quantity': line.quantity,
                    'applied_quantity': line.applied_quantity,
                    'location': line.location_id,
                    'destination_location': line.destination_location_id,
                }
                for line in adjustment.items.all()
            ],
        },
    )
    return Response(InventoryAdjustmentSerializer(adjustment).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def adjustment_detail(request, pk):
    """Retrieve an inventory adjustment"""
    adjustment = get_object_or_404(InventoryAdjustment, pk=pk)
    return Response(InventoryAdjustmentSerializer(adjustment).data)

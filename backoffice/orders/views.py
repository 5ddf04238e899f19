import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from backoffice.core.exceptions import BusinessRuleError
from backoffice.core.utils import business_error_response, create_audit_log, paginate, parse_date_range
from .models import Order, PaymentMethod
from .serializers import (
    OrderSerializer, OrderListSerializer, OrderCreateSerializer, OrderUpdateSerializer,
    PaymentInputSerializer, OrderPaymentSerializer, PaymentMethodSerializer
)
from . import services

logger = logging.getLogger('backoffice.orders')


def _order_queryset():
    return Order.objects.select_related('location').prefetch_related('items', 'payments')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def order_list_create(request):
    """List orders or place a new order"""
    if request.method == 'GET':
        queryset = Order.objects.all()

        params = request.query_params
        if params.get('from') or params.get('to'):
            _, _, start, end = parse_date_range(params)
            queryset = queryset.filter(created_at__gte=start, created_at__lte=end)
        for field in ('status', 'payment_status', 'source'):
            value = params.get(field)
            if value:
                queryset = queryset.filter(**{field: value})

        queryset = queryset.order_by('-created_at', '-id')
        return Response(paginate(request, queryset, OrderListSerializer))

    serializer = OrderCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        order = services.place_order(serializer.validated_data, user=request.user)
    except BusinessRuleError as exc:
        logger.warning(f"Order rejected for {request.user.username}: {exc}")
        return business_error_response(exc)

    create_audit_log(
        request=request,
        action='order_create',
        model_name='Order',
        object_id=order.id,
        object_name=order.customer_name or order.order_number,
        object_reference=order.order_number,
        changes={
            'source': order.source,
            'location': order.location_id,
            'total': str(order.total),
            'coupon_code': order.coupon_code,
            'items': [{'product': i.product_id, 'size': i.size, 'quantity': i.quantity} for i in order.items.all()],
        },
    )
    return Response(OrderSerializer(_order_queryset().get(pk=order.pk)).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def order_detail(request, pk):
    """Retrieve an order or update its status, payment status and customer details"""
    order = get_object_or_404(_order_queryset(), pk=pk)

    if request.method == 'GET':
        return Response(OrderSerializer(order).data)

    serializer = OrderUpdateSerializer(data=request.data, partial=True)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        order, changes = services.update_order(order, serializer.validated_data)
    except BusinessRuleError as exc:
        return business_error_response(exc)

    if changes:
        create_audit_log(
            request=request,
            action='order_update',
            model_name='Order',
            object_id=order.id,
            object_name=order.customer_name or order.order_number,
            object_reference=order.order_number,
            changes={field: {'old': old, 'new': new} for field, (old, new) in changes.items()},
        )
    return Response(OrderSerializer(_order_queryset().get(pk=pk)).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def order_restock(request, pk):
    """Return the items of a refunded or returned order to stock"""
    order = get_object_or_404(Order, pk=pk)
    try:
        order = services.restock_order(order)
    except BusinessRuleError as exc:
        return business_error_response(exc)

    create_audit_log(
        request=request,
        action='stock_restock',
        model_name='Order',
        object_id=order.id,
        object_name=order.customer_name or order.order_number,
        object_reference=order.order_number,
        changes={'location': order.location_id, 'restocked_at': order.restocked_at.isoformat()},
    )
    return Response(OrderSerializer(_order_queryset().get(pk=pk)).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def order_payment_create(request, pk):
    """Add a split payment or a refund (negative amount) to an order"""
    order = get_object_or_404(Order, pk=pk)
    serializer = PaymentInputSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        payment = services.add_payment(order, **serializer.validated_data)
    except BusinessRuleError as exc:
        return business_error_response(exc)

    create_audit_log(
        request=request,
        action='payment_add',
        model_name='Order',
        object_id=order.id,
        object_reference=order.order_number,
        changes={'payment_method': payment.payment_method, 'amount': str(payment.amount)},
    )
    return Response(OrderPaymentSerializer(payment).data, status=status.HTTP_201_CREATED)


# Payment method views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def payment_method_list_create(request):
    """List payment methods (optionally those offered on one source) or add one"""
    if request.method == 'GET':
        methods = PaymentMethod.objects.all()
        status_filter = request.query_params.get('status')
        source = request.query_params.get('source')
        if status_filter:
            methods = methods.filter(status=status_filter)
        if source:
            # JSON containment is not available on every backend
            methods = [m for m in methods if source in (m.available or [])]
        return Response(PaymentMethodSerializer(methods, many=True).data)
    else:
        serializer = PaymentMethodSerializer(data=request.data)
        if serializer.is_valid():
            method = serializer.save()
            create_audit_log(
                request=request,
                action='create',
                model_name='PaymentMethod',
                object_id=method.id,
                object_name=method.name,
                changes={'fee': str(method.fee), 'available': method.available},
            )
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def payment_method_detail(request, pk):
    method = get_object_or_404(PaymentMethod, pk=pk)

    if request.method == 'GET':
        return Response(PaymentMethodSerializer(method).data)
    elif request.method in ('PUT', 'PATCH'):
        old_fee = str(method.fee)
        serializer = PaymentMethodSerializer(method, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            method = serializer.save()
            if str(method.fee) != old_fee:
                create_audit_log(
                    request=request,
                    action='update',
                    model_name='PaymentMethod',
                    object_id=method.id,
                    object_name=method.name,
                    changes={'fee': {'old': old_fee, 'new': str(method.fee)}},
                )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        name = method.name
        method.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='PaymentMethod',
            object_id=pk,
            object_name=name,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)

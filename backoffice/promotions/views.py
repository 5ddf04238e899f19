import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from backoffice.core.utils import create_audit_log, paginate
from .models import Combo, Coupon, Promotion
from .serializers import (
    ComboSerializer, CouponSerializer, CouponUsageSerializer, CouponValidateSerializer, PromotionSerializer
)
from .services import validate_coupon

logger = logging.getLogger('backoffice.promotions')


# Coupon views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def coupon_list_create(request):
    """List coupons or create a new coupon"""
    if request.method == 'GET':
        coupons = Coupon.objects.filter(is_deleted=False)
        status_filter = request.query_params.get('status')
        if status_filter:
            coupons = coupons.filter(status=status_filter)
        serializer = CouponSerializer(coupons, many=True)
        return Response(serializer.data)
    else:
        serializer = CouponSerializer(data=request.data)
        if serializer.is_valid():
            coupon = serializer.save()
            create_audit_log(
                request=request,
                action='create',
                model_name='Coupon',
                object_id=coupon.id,
                object_name=coupon.name,
                object_reference=coupon.code,
            )
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def coupon_detail(request, pk):
    """Retrieve, update or soft-delete a coupon"""
    coupon = get_object_or_404(Coupon, pk=pk, is_deleted=False)

    if request.method == 'GET':
        data = CouponSerializer(coupon).data
        data['usages'] = CouponUsageSerializer(coupon.usages.select_related('order')[:50], many=True).data
        return Response(data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = CouponSerializer(coupon, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        coupon.is_deleted = True
        coupon.save(update_fields=['is_deleted', 'updated_at'])
        create_audit_log(
            request=request,
            action='delete',
            model_name='Coupon',
            object_id=coupon.id,
            object_name=coupon.name,
            object_reference=coupon.code,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def coupon_validate(request):
    """Check a coupon code against a cart without redeeming it"""
    serializer = CouponValidateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    result = validate_coupon(
        data['code'],
        customer=data.get('customer') or None,
        cart_total=data['cart_total'],
        cart_items=data.get('cart_items', []),
        shipping_fee=data.get('shipping_fee', 0),
    )
    payload = {
        'valid': result['valid'],
        'discount': float(result['discount']),
        'message': result['message'],
        'coupon': CouponSerializer(result['coupon']).data if result['valid'] else None,
    }
    if not result['valid']:
        logger.info(f"Coupon '{data['code']}' rejected: {result['message']}")
        return Response(payload, status=status.HTTP_400_BAD_REQUEST)
    return Response(payload)


# Promotion views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def promotion_list_create(request):
    """List promotions by priority or create a new promotion"""
    if request.method == 'GET':
        promotions = Promotion.objects.all().order_by('-priority', '-created_at')
        status_filter = request.query_params.get('status')
        if status_filter:
            promotions = promotions.filter(status=status_filter)
        serializer = PromotionSerializer(promotions, many=True)
        return Response(serializer.data)
    else:
        serializer = PromotionSerializer(data=request.data)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def promotion_detail(request, pk):
    """Retrieve, update or delete a promotion"""
    promotion = get_object_or_404(Promotion, pk=pk)

    if request.method == 'GET':
        return Response(PromotionSerializer(promotion).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = PromotionSerializer(promotion, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        promotion.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# Combo views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def combo_list_create(request):
    """List combos (newest first, paginated) or create a new one"""
    if request.method == 'GET':
        combos = Combo.objects.prefetch_related('items__product', 'items__variant')
        status_filter = request.query_params.get('status')
        if status_filter:
            combos = combos.filter(status=status_filter)
        return Response(paginate(request, combos.order_by('-created_at', '-id'), ComboSerializer))
    else:
        serializer = ComboSerializer(data=request.data)
        if serializer.is_valid():
            combo = serializer.save()
            create_audit_log(
                request=request,
                action='create',
                model_name='Combo',
                object_id=combo.id,
                object_name=combo.name,
                changes={'combo_price': str(combo.combo_price), 'original_price': str(combo.original_price)},
            )
            return Response(ComboSerializer(combo).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def combo_detail(request, pk):
    combo = get_object_or_404(Combo, pk=pk)

    if request.method == 'GET':
        return Response(ComboSerializer(combo).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = ComboSerializer(combo, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            combo = serializer.save()
            return Response(ComboSerializer(combo).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        combo.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='Combo',
            object_id=pk,
            object_name=combo.name,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)

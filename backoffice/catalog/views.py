import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from django.db.models import ProtectedError
from backoffice.core.utils import create_audit_log, paginate
from backoffice.inventory.models import InventoryItem
from .models import Category, Brand, Size, Product, ProductVariant
from .serializers import (
    CategorySerializer, BrandSerializer, SizeSerializer,
    ProductSerializer, ProductListSerializer, ProductVariantSerializer
)
from .filters import ProductFilter

logger = logging.getLogger('backoffice.catalog')

PRODUCT_AUDIT_FIELDS = ['name', 'sku', 'buying_price', 'selling_price', 'discount', 'is_active']


def _product_snapshot(product):
    return {field: str(getattr(product, field)) for field in PRODUCT_AUDIT_FIELDS}


# Category views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def category_list_create(request):
    """List all categories or create a new category"""
    if request.method == 'GET':
        categories = Category.objects.all()
        is_active = request.query_params.get('is_active')
        if is_active is not None:
            categories = categories.filter(is_active=is_active.lower() == 'true')
        serializer = CategorySerializer(categories, many=True)
        return Response(serializer.data)
    else:
        serializer = CategorySerializer(data=request.data)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def category_detail(request, pk):
    """Retrieve, update or delete a category"""
    category = get_object_or_404(Category, pk=pk)

    if request.method == 'GET':
        serializer = CategorySerializer(category)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = CategorySerializer(category, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            if serializer.validated_data.get('parent') == category:
                return Response({'parent': ['A category cannot be its own parent']}, status=status.HTTP_400_BAD_REQUEST)
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        category.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# Brand views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def brand_list_create(request):
    """List all brands or create a new brand"""
    if request.method == 'GET':
        brands = Brand.objects.all()
        serializer = BrandSerializer(brands, many=True)
        return Response(serializer.data)
    else:
        serializer = BrandSerializer(data=request.data)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def brand_detail(request, pk):
    """Retrieve, update or delete a brand"""
    brand = get_object_or_404(Brand, pk=pk)

    if request.method == 'GET':
        serializer = BrandSerializer(brand)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = BrandSerializer(brand, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        brand.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# Size views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def size_list_create(request):
    """List all sizes or create a new size"""
    if request.method == 'GET':
        serializer = SizeSerializer(Size.objects.all(), many=True)
        return Response(serializer.data)
    else:
        serializer = SizeSerializer(data=request.data)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def size_detail(request, pk):
    """Retrieve, update or delete a size"""
    size = get_object_or_404(Size, pk=pk)

    if request.method == 'GET':
        return Response(SizeSerializer(size).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = SizeSerializer(size, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        size.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# Product views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def product_list_create(request):
    """
    List products or create a new product.

    GET supports django-filter parameters (search, category, brand,
    is_active, in_stock, low_stock) and page/size pagination.
    """
    if request.method == 'GET':
        queryset = Product.objects.select_related('category', 'brand').order_by('name', 'id')
        product_filter = ProductFilter(request.query_params, queryset=queryset)
        if not product_filter.is_valid():
            return Response(product_filter.errors, status=status.HTTP_400_BAD_REQUEST)
        return Response(paginate(request, product_filter.qs, ProductListSerializer))
    else:
        serializer = ProductSerializer(data=request.data)
        if serializer.is_valid():
            product = serializer.save()
            logger.info(f"Product '{product.name}' created by {request.user.username}")
            create_audit_log(
                request=request,
                action='create',
                model_name='Product',
                object_id=product.id,
                object_name=product.name,
                object_reference=product.sku,
                changes=_product_snapshot(product),
            )
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def product_detail(request, pk):
    """Retrieve, update or delete a product"""
    product = get_object_or_404(Product.objects.select_related('category', 'brand'), pk=pk)

    if request.method == 'GET':
        serializer = ProductSerializer(product)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = ProductSerializer(product, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            old_data = _product_snapshot(product)
            serializer.save()
            new_data = _product_snapshot(product)
            changes = {k: {'old': old_data[k], 'new': new_data[k]} for k in old_data if old_data[k] != new_data[k]}
            if changes:
                create_audit_log(
                    request=request,
                    action='update',
                    model_name='Product',
                    object_id=product.id,
                    object_name=product.name,
                    object_reference=product.sku,
                    changes=changes
                )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        product_name = product.name
        product_sku = product.sku
        try:
            product.delete()
        except ProtectedError:
            return Response(
                {'error': 'Product is referenced by orders or purchase orders; deactivate it instead.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        create_audit_log(
            request=request,
            action='delete',
            model_name='Product',
            object_id=pk,
            object_name=product_name,
            object_reference=product_sku,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def product_variants(request, pk):
    """Get or create variants for a product"""
    product = get_object_or_404(Product, pk=pk)

    if request.method == 'GET':
        variants = product.variants.prefetch_related('sizes')
        serializer = ProductVariantSerializer(variants, many=True)
        return Response(serializer.data)
    else:  # POST
        data = request.data.copy()
        data['product'] = product.id
        serializer = ProductVariantSerializer(data=data)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def product_stock(request, pk):
    """Stock lines of a product grouped by location"""
    product = get_object_or_404(Product, pk=pk)
    items = (
        InventoryItem.objects.filter(product=product)
        .select_related('location', 'variant')
        .order_by('location__name', 'variant__name', 'size')
    )

    locations = {}
    for item in items:
        entry = locations.setdefault(item.location_id, {
            'location_id': item.location_id,
            'location_name': item.location.name,
            'quantity': 0,
            'lines': [],
        })
        entry['quantity'] += item.quantity
        entry['lines'].append({
            'id': item.id,
            'variant_id': item.variant_id,
            'variant_name': item.variant.name if item.variant else None,
            'size': item.size,
            'quantity': item.quantity,
        })

    return Response({
        'product_id': product.id,
        'product_name': product.name,
        'total_stock': product.total_stock,
        'in_stock': product.in_stock,
        'locations': list(locations.values()),
    })


# ProductVariant views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def product_variant_list_create(request):
    """List all product variants or create a new one"""
    if request.method == 'GET':
        variants = ProductVariant.objects.select_related('product').prefetch_related('sizes')
        product_id = request.query_params.get('product')
        if product_id:
            variants = variants.filter(product_id=product_id)
        serializer = ProductVariantSerializer(variants, many=True)
        return Response(serializer.data)
    else:
        serializer = ProductVariantSerializer(data=request.data)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def product_variant_detail(request, pk):
    """Retrieve, update or delete a product variant"""
    variant = get_object_or_404(ProductVariant, pk=pk)

    if request.method == 'GET':
        serializer = ProductVariantSerializer(variant)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = ProductVariantSerializer(variant, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        try:
            variant.delete()
        except ProtectedError:
            return Response(
                {'error': 'Variant is referenced by orders or purchase orders; deactivate it instead.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        return Response(status=status.HTTP_204_NO_CONTENT)

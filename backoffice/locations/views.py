import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from django.db.models import ProtectedError
from backoffice.core.utils import create_audit_log
from .models import StockLocation
from .serializers import StockLocationSerializer

logger = logging.getLogger('backoffice.locations')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def location_list_create(request):
    """List stock locations or create a new one"""
    if request.method == 'GET':
        locations = StockLocation.objects.all()

        is_active = request.query_params.get('is_active')
        if is_active is not None:
            locations = locations.filter(is_active=is_active.lower() == 'true')

        location_type = request.query_params.get('location_type')
        if location_type:
            locations = locations.filter(location_type=location_type)

        serializer = StockLocationSerializer(locations, many=True)
        return Response(serializer.data)
    else:
        serializer = StockLocationSerializer(data=request.data)
        if serializer.is_valid():
            location = serializer.save()
            logger.info(f"Location '{location.name}' ({location.code}) created by {request.user.username}")
            create_audit_log(
                request=request,
                action='create',
                model_name='StockLocation',
                object_id=location.id,
                object_name=location.name,
                object_reference=location.code,
            )
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def location_detail(request, pk):
    """Retrieve, update or delete a stock location"""
    location = get_object_or_404(StockLocation, pk=pk)

    if request.method == 'GET':
        serializer = StockLocationSerializer(location)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = StockLocationSerializer(location, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if location.inventory_items.filter(quantity__gt=0).exists():
            logger.warning(f"Refused to delete location {pk} ({location.name}): it still holds stock")
            return Response(
                {'error': 'Cannot delete a location that still holds stock. Transfer or remove the stock first.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        try:
            location.delete()
        except ProtectedError:
            return Response(
                {'error': 'Cannot delete a location referenced by purchase orders, orders or adjustments.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        logger.info(f"Location {pk} ({location.name}) deleted by {request.user.username}")
        create_audit_log(
            request=request,
            action='delete',
            model_name='StockLocation',
            object_id=pk,
            object_name=location.name,
            object_reference=location.code,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)

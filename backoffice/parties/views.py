import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from django.db.models import ProtectedError, Q
from backoffice.core.utils import create_audit_log
from .models import Supplier
from .serializers import SupplierSerializer

logger = logging.getLogger('backoffice.parties')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def supplier_list_create(request):
    """List all suppliers or create a new supplier"""
    if request.method == 'GET':
        queryset = Supplier.objects.all().order_by('name')
        status_filter = request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        search = request.query_params.get('search')
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) |
                Q(contact_person__icontains=search) |
                Q(phone__icontains=search) |
                Q(email__icontains=search)
            )
        serializer = SupplierSerializer(queryset, many=True)
        return Response(serializer.data)
    else:
        serializer = SupplierSerializer(data=request.data)
        if serializer.is_valid():
            supplier = serializer.save()
            create_audit_log(
                request=request,
                action='create',
                model_name='Supplier',
                object_id=supplier.id,
                object_name=supplier.name,
            )
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def supplier_detail(request, pk):
    """Retrieve, update or delete a supplier"""
    supplier = get_object_or_404(Supplier, pk=pk)

    if request.method == 'GET':
        serializer = SupplierSerializer(supplier)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = SupplierSerializer(supplier, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if supplier.purchase_orders.exists():
            logger.warning(f"Refused to delete supplier {pk} ({supplier.name}): referenced by purchase orders")
            return Response(
                {'error': 'Cannot delete a supplier with purchase orders. Mark it inactive instead.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        try:
            supplier.delete()
        except ProtectedError:
            logger.warning(f"Refused to delete supplier {pk} ({supplier.name}): referenced by invoices")
            return Response(
                {'error': 'Cannot delete a supplier with invoices. Mark it inactive instead.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        create_audit_log(
            request=request,
            action='delete',
            model_name='Supplier',
            object_id=pk,
            object_name=supplier.name,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)

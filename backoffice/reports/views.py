import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework.exceptions import ValidationError
from django.utils import timezone
from backoffice.core.utils import parse_date_range, paginate
from backoffice.inventory.models import InventoryItem
from backoffice.inventory.serializers import InventoryItemSerializer
from . import services

logger = logging.getLogger('backoffice.reports')


def _optional_range(params):
    """``(start, end)`` when both ``from`` and ``to`` are given, otherwise no date bound"""
    if (params.get('from') or params.get('date_from')) and (params.get('to') or params.get('date_to')):
        _, _, start, end = parse_date_range(params)
        return start, end
    return None, None


def _int_param(params, name, default):
    try:
        return int(params.get(name, default))
    except (TypeError, ValueError):
        raise ValidationError({'error': f'{name} must be an integer'})


def _report(name, build):
    """Run a report builder, mapping unexpected failures to a 500 response"""
    try:
        return Response(build())
    except ValidationError:
        raise
    except Exception as e:
        logger.error(f"Error in {name} report: {str(e)}", exc_info=True)
        return Response(
            {'error': f'An error occurred while generating {name}'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def profit_and_loss(request):
    """Profit & loss statement for paid orders between ``from`` and ``to`` (both required)"""
    _, _, start, end = parse_date_range(request.query_params, required=True)
    logger.info(f"User {request.user.username} requested P&L {start.date()} - {end.date()}")
    return _report('profit and loss statement', lambda: services.profit_and_loss(start, end))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def daily_summary(request):
    start, end = _optional_range(request.query_params)
    return _report('daily sales summary', lambda: services.daily_summary(start, end))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def monthly_summary(request):
    start, end = _optional_range(request.query_params)
    return _report('monthly sales summary', lambda: services.monthly_summary(start, end))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def yearly_summary(request):
    """Sales per year, each year broken down by month"""
    start, end = _optional_range(request.query_params)
    return _report('yearly sales summary', lambda: services.yearly_summary(start, end))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def top_products(request):
    """Best sellers by quantity, paginated with ``page``/``size``"""
    start, end = _optional_range(request.query_params)
    page = _int_param(request.query_params, 'page', 1)
    size = max(_int_param(request.query_params, 'size', 20), 1)
    return _report(
        'top products',
        lambda: services.paginate_rows(services.top_products(start, end), page, size)
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def sales_by_category(request):
    start, end = _optional_range(request.query_params)
    return _report('sales by category', lambda: {'categories': services.sales_by_category(start, end)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def sales_by_brand(request):
    start, end = _optional_range(request.query_params)
    return _report('sales by brand', lambda: {'brands': services.sales_by_brand(start, end)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def sales_vs_discount(request):
    start, end = _optional_range(request.query_params)
    group_by = request.query_params.get('group_by', 'day')
    if group_by not in ('day', 'month'):
        return Response({'error': 'group_by must be "day" or "month"'}, status=status.HTTP_400_BAD_REQUEST)
    return _report('sales vs discount', lambda: {'report': services.sales_vs_discount(start, end, group_by)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def sales_by_payment_method(request):
    start, end = _optional_range(request.query_params)
    return _report(
        'sales by payment method',
        lambda: {'payment_methods': services.sales_by_payment_method(start, end)}
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def refunds_and_returns(request):
    start, end = _optional_range(request.query_params)
    return _report('refunds and returns', lambda: services.refunds_and_returns(start, end))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def live_stock(request):
    """Every stock line with product, variant and location names"""
    lines = InventoryItem.objects.select_related('product', 'variant', 'location').order_by('product__name', 'id')
    location_id = request.query_params.get('location')
    if location_id:
        lines = lines.filter(location_id=location_id)
    return _report('live stock', lambda: paginate(request, lines, InventoryItemSerializer))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def low_stock(request):
    threshold = _int_param(request.query_params, 'threshold', 10)
    location_id = request.query_params.get('location')
    return _report(
        'low stock',
        lambda: {'threshold': threshold, 'items': services.low_stock(threshold, location_id)}
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def stock_valuation(request):
    location_id = request.query_params.get('location')
    return _report('stock valuation', lambda: services.stock_valuation(location_id))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def expense_report(request):
    """Approved petty cash expenses between ``from`` and ``to`` (both required)"""
    _, _, start, end = parse_date_range(request.query_params, required=True)
    category_id = request.query_params.get('category')
    return _report('expense report', lambda: services.expense_report(start, end, category_id))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard_overview(request):
    """Headline numbers for the dashboard, today by default"""
    _, _, start, end = parse_date_range(request.query_params, default_days=0)
    return _report('dashboard overview', lambda: services.dashboard_overview(start, end))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def customer_analytics(request):
    """Customer counts, repeat rate and top spenders between ``from`` and ``to`` (both required)"""
    _, _, start, end = parse_date_range(request.query_params, required=True)
    top = max(_int_param(request.query_params, 'top', 10), 1)
    return _report('customer analytics', lambda: services.customer_analytics(start, end, top))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def monthly_revenue(request):
    start, end = _optional_range(request.query_params)
    return _report('monthly revenue', lambda: services.monthly_revenue(start, end))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard_sales_performance(request):
    year = _int_param(request.query_params, 'year', timezone.localdate().year)
    if not 1 <= year <= 9999:
        return Response({'error': 'year is out of range'}, status=status.HTTP_400_BAD_REQUEST)
    return _report('yearly sales performance', lambda: services.yearly_sales_performance(year))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard_recent_orders(request):
    limit = min(max(_int_param(request.query_params, 'limit', 6), 1), 50)
    return _report('recent orders', lambda: {'orders': services.recent_orders(limit)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard_popular_items(request):
    """Best sellers of one month; ``month`` is 1-12, defaults to the current month"""
    today = timezone.localdate()
    year = _int_param(request.query_params, 'year', today.year)
    month = _int_param(request.query_params, 'month', today.month)
    limit = min(max(_int_param(request.query_params, 'limit', 10), 1), 100)
    if not 1 <= month <= 12 or not 1 <= year <= 9999:
        return Response({'error': 'month must be 1-12'}, status=status.HTTP_400_BAD_REQUEST)
    return _report(
        'popular items',
        lambda: {'year': year, 'month': month, 'items': services.popular_items(year, month, limit)}
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard_order_status(request):
    start, end = _optional_range(request.query_params)
    return _report('order status distribution', lambda: services.order_status_distribution(start, end))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard_monthly_comparison(request):
    return _report('monthly comparison', lambda: services.monthly_comparison())

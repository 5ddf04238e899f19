"""Shared helpers: audit logging, settings lookup, date ranges, pagination and document numbers"""
import logging
from datetime import datetime, time, timedelta

from django.core.paginator import Paginator
from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework import serializers
from rest_framework.response import Response

from .models import AuditLog, DocumentSequence, Setting

logger = logging.getLogger('backoffice.core')


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None, object_reference=None):
    """
    Create an audit log entry

    Args:
        request: Django request object (for user and IP) - optional if user is provided
        action: Action type (create, update, stock_adjust, ...)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary of changes made
        user: Optional user override (defaults to request.user if request provided)
        object_name: Human-readable name of the object
        object_reference: Reference identifier (e.g., PO number, order number)
    """
    try:
        audit_user = None
        if user:
            audit_user = user
        elif request and hasattr(request, 'user'):
            audit_user = request.user

        ip_address = get_client_ip(request) if request else None

        if not action or not model_name or not object_id:
            logger.warning(f"Audit log creation skipped: missing required fields (action={action}, model_name={model_name}, object_id={object_id})")
            return None

        return AuditLog.objects.create(
            user=audit_user if audit_user and audit_user.is_authenticated else None,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            object_reference=object_reference,
            changes=changes or {},
            ip_address=ip_address
        )
    except Exception as e:
        # Audit logging never fails the main operation
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


def get_setting(key, default=None):
    """Return the value of a runtime setting, or ``default`` when it is not defined"""
    value = Setting.objects.filter(key=key).values_list('value', flat=True).first()
    if value is None or value == '':
        return default
    return value


def parse_date(value, field_name):
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise serializers.ValidationError({field_name: f'Invalid date "{value}", expected YYYY-MM-DD'})


def parse_date_range(params, required=False, default_days=30):
    """
    Read ``from``/``to`` query parameters as an inclusive day range.

    Returns ``(date_from, date_to, start, end)`` where ``start``/``end`` are
    aware datetimes covering the first instant of ``date_from`` through the
    last instant of ``date_to``.
    """
    raw_from = params.get('from') or params.get('date_from')
    raw_to = params.get('to') or params.get('date_to')

    if required and (not raw_from or not raw_to):
        raise serializers.ValidationError({'error': 'Missing required parameters: from, to'})

    today = timezone.localdate()
    date_to = parse_date(raw_to, 'to') if raw_to else today
    date_from = parse_date(raw_from, 'from') if raw_from else date_to - timedelta(days=default_days)

    if date_from > date_to:
        raise serializers.ValidationError({'error': '"from" must not be after "to"'})

    start = timezone.make_aware(datetime.combine(date_from, time.min))
    end = timezone.make_aware(datetime.combine(date_to, time.max))
    return date_from, date_to, start, end


def paginate(request, queryset, serializer_class, default_size=20, context=None):
    """Paginate ``queryset`` from ``page``/``size`` query params and serialize the page"""
    try:
        page = max(int(request.query_params.get('page', 1)), 1)
        size = max(int(request.query_params.get('size', default_size)), 1)
    except (TypeError, ValueError):
        raise serializers.ValidationError({'error': 'page and size must be integers'})

    paginator = Paginator(queryset, size)
    page_obj = paginator.get_page(page)
    serializer = serializer_class(page_obj, many=True, context=context or {'request': request})
    return {
        'results': serializer.data,
        'count': paginator.count,
        'page': page_obj.number,
        'size': size,
        'total_pages': paginator.num_pages,
        'next': page_obj.next_page_number() if page_obj.has_next() else None,
        'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
    }


def _lock_sequence(month_prefix):
    sequence = DocumentSequence.objects.select_for_update().filter(prefix=month_prefix).first()
    if sequence is None:
        try:
            with transaction.atomic():
                sequence = DocumentSequence.objects.create(prefix=month_prefix)
        except IntegrityError:
            # Created concurrently by another transaction
            sequence = DocumentSequence.objects.select_for_update().get(prefix=month_prefix)
    return sequence


def generate_document_number(model, field, prefix):
    """
    Next sequential document number for the current month.

    Format: ``<PREFIX>-<YYYYMM>-<NNNN>``, e.g. ``PO-202610-0007``. The sequence
    restarts every month. The month's counter row stays locked until the
    caller's transaction ends, so the document must be created inside the
    same ``transaction.atomic`` block. Numbers already stored (imported or
    client supplied) are never issued again.
    """
    month_prefix = f"{prefix}-{timezone.localdate().strftime('%Y%m')}-"
    with transaction.atomic():
        sequence = _lock_sequence(month_prefix)
        last = (
            model.objects.filter(**{f'{field}__startswith': month_prefix})
            .order_by(f'-{field}')
            .values_list(field, flat=True)
            .first()
        )
        stored = 0
        if last:
            try:
                stored = int(last.rsplit('-', 1)[-1])
            except ValueError:
                logger.warning(f"Unparseable {model.__name__}.{field} value {last!r}, ignoring it")
        number = max(sequence.last_number, stored) + 1
        DocumentSequence.objects.filter(pk=sequence.pk).update(last_number=number)
    return f"{month_prefix}{str(number).zfill(4)}"


def business_error_response(exc):
    """Translate a BusinessRuleError into an API response"""
    return Response({'error': str(exc)}, status=getattr(exc, 'status_code', 400))

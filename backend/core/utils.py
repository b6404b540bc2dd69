"""Audit logging and request helpers"""
import logging
import re
import secrets
import string

from django.core.paginator import Paginator
from django.utils import timezone

from .exceptions import ServiceError
from .models import AuditLog

logger = logging.getLogger(__name__)

PHONE_PATTERN = re.compile(r'^\+[1-9]\d{9,14}$')
REFERENCE_ALPHABET = string.ascii_uppercase + string.digits


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
        action: Action type (order_status_update, measurement_price_set, etc.)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary of changes made
        user: Optional user override (defaults to request.user if request provided)
        object_name: Human-readable name of the object
        object_reference: Reference identifier (e.g., order number)
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
        # Audit failures never break the main operation
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


def parse_positive_int(value, default, maximum=None):
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    if number < 1:
        return default
    if maximum is not None:
        number = min(number, maximum)
    return number


def paginate(queryset, request, default_limit=10, max_limit=100):
    """
    Paginate a queryset from ?page= and ?limit= query params.

    Returns (page_items, pagination_meta).
    """
    page = parse_positive_int(request.query_params.get('page'), 1)
    limit = parse_positive_int(request.query_params.get('limit'), default_limit, max_limit)

    paginator = Paginator(queryset, limit)
    total = paginator.count
    total_pages = (total + limit - 1) // limit if total else 0
    items = paginator.page(page).object_list if page <= paginator.num_pages else []

    return list(items), {
        'page': page,
        'limit': limit,
        'total': total,
        'total_pages': total_pages,
        'has_next_page': page < total_pages,
        'has_prev_page': page > 1,
    }


def generate_reference_number(prefix, model, field='order_number', max_attempts=10):
    """
    Generate a unique PREFIX-YYYYMMDD-XXXXXX reference for a model.

    Raises ServiceError when no free number is found after max_attempts.
    """
    date_part = timezone.now().strftime('%Y%m%d')
    for _ in range(max_attempts):
        suffix = ''.join(secrets.choice(REFERENCE_ALPHABET) for _ in range(6))
        candidate = f"{prefix}-{date_part}-{suffix}"
        if not model.objects.filter(**{field: candidate}).exists():
            return candidate
    logger.error(f"Could not generate a unique {prefix} number after {max_attempts} attempts")
    raise ServiceError('Could not generate an order number. Please try again.')

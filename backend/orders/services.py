"""
Order placement, status transitions and inventory bookkeeping.

Prices are always recomputed from the catalogue; nothing the client
sends about amounts is persisted. Stock moves in two steps: checkout
reserves units on each variant, and a confirmed payment converts the
reservation into a deduction exactly once.
"""
import logging
from datetime import timedelta

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from backend.catalog.models import ProductVariant
from backend.cart.services import calculate_cart
from backend.core.cache_utils import invalidate_products_cache
from backend.core.exceptions import ServiceError, NotFoundError
from backend.core.services import create_account_from_address
from backend.core.utils import generate_reference_number
from backend.shipping.constants import DEFAULT_COUNTRY
from backend.shipping.services import default_shipping_settings, get_shipping_settings
from .models import Order, OrderItem, OrderStatus, PaymentStatus

logger = logging.getLogger(__name__)

INCOMPLETE_PROFILE_MESSAGE = 'Please update your address in account settings before placing an order.'
TERMINAL_ORDER_STATUSES = (OrderStatus.DELIVERED, OrderStatus.CANCELLED)


def resolve_customer_address(user, guest_address):
    """
    Delivery address for a checkout.

    Signed-in customers ship to their saved profile address; guests must
    send a full address with the request.
    """
    if user is not None and user.is_authenticated:
        if not user.has_complete_address():
            raise ServiceError(INCOMPLETE_PROFILE_MESSAGE)
        return user.address_snapshot()

    if not guest_address:
        raise ServiceError('Shipping address is required for guest checkout.')
    address = dict(guest_address)
    address['email'] = address['email'].strip().lower()
    address['country'] = address.get('country') or DEFAULT_COUNTRY
    return address


def _load_shipping_settings():
    try:
        return get_shipping_settings()
    except DatabaseError as e:
        logger.warning(f"Could not load shipping settings, using defaults: {str(e)}")
        return default_shipping_settings()


def check_stock(cart_items):
    """Raise ServiceError for the first line that cannot be fulfilled"""
    for line in cart_items:
        available = line['available_quantity']
        if not line['in_stock'] or available <= 0:
            raise ServiceError(f'Product "{line["product_name"]}" is out of stock')
        if line['quantity'] > available:
            raise ServiceError(f'Only {available} units available for "{line["product_name"]}"')


def _reserve_stock(order, cart_items):
    now = timezone.now()
    for line in cart_items:
        updated = ProductVariant.objects.filter(
            id=line['variant_id'],
            quantity__gte=F('reserved_quantity') + line['quantity'],
        ).update(reserved_quantity=F('reserved_quantity') + line['quantity'])
        if not updated:
            # Another checkout took the remaining units after the stock check
            raise ServiceError(f'Only {line["available_quantity"]} units available for "{line["product_name"]}"')
    order.inventory_reserved_at = now
    order.inventory_reservation_expires_at = now + timedelta(minutes=settings.INVENTORY_RESERVATION_MINUTES)
    order.save(update_fields=['inventory_reserved_at', 'inventory_reservation_expires_at', 'updated_at'])
    # Queryset updates skip post_save, so storefront stock caches are cleared here
    transaction.on_commit(invalidate_products_cache)


def create_order(data, user=None):
    """
    Place an order from validated checkout data.

    Args:
        data: dict with items, shipping_location and, for guests,
            shipping_address plus the optional billing/account fields
        user: the signed-in customer or None for guests

    Returns the saved Order.
    """
    is_authenticated = user is not None and user.is_authenticated
    shipping_address = resolve_customer_address(user if is_authenticated else None, data.get('shipping_address'))
    shipping_location = data['shipping_location']

    settings_obj = _load_shipping_settings()
    cart = calculate_cart(data.get('items') or [], shipping_location, settings_obj)
    if not cart['items']:
        raise ServiceError('Invalid cart items or cart is empty')
    check_stock(cart['items'])

    if is_authenticated:
        billing_address = shipping_address
    elif data.get('same_as_shipping', True):
        billing_address = shipping_address
    else:
        billing_address = data.get('billing_address') or shipping_address

    with transaction.atomic():
        order_user = user if is_authenticated else None
        is_guest = not is_authenticated
        if is_guest and data.get('create_account'):
            order_user = create_account_from_address(shipping_address, data['password'])
            is_guest = False

        order = Order.objects.create(
            order_number=generate_reference_number('ORD', Order),
            user=order_user,
            is_guest=is_guest,
            guest_email=shipping_address['email'] if not is_authenticated else None,
            shipping_address=shipping_address,
            billing_address=billing_address,
            shipping_location=shipping_location,
            subtotal=cart['subtotal'],
            shipping=cart['shipping'],
            tax=cart['tax'],
            total=cart['total'],
            order_status=OrderStatus.ORDER_PLACED,
            payment_status=PaymentStatus.PENDING,
            payment_method='monnify',
            notes=data.get('notes') or None,
        )
        OrderItem.objects.bulk_create([
            OrderItem(
                order=order,
                product_id=line['product_id'],
                variant_id=line['variant_id'],
                product_name=line['product_name'],
                product_slug=line['product_slug'],
                image_urls=line['image_urls'],
                color=line['color'],
                size=line['size'],
                price=line['price'],
                discount_price=line['discount_price'],
                quantity=line['quantity'],
                item_subtotal=line['item_subtotal'],
                item_total=line['item_total'],
                measurements=line['measurements'],
            )
            for line in cart['items']
        ])
        _reserve_stock(order, cart['items'])

    logger.info(f"Order {order.order_number} created: total={order.total}, guest={order.is_guest}")
    return order


def _release_reservation(order, now=None):
    """Hand reserved units back to the variants; caller holds the order lock"""
    if not order.has_active_reservation:
        return False
    for item in order.items.all():
        if not item.variant_id:
            continue
        variant = ProductVariant.objects.select_for_update().filter(id=item.variant_id).first()
        if variant is None:
            continue
        variant.reserved_quantity = max(variant.reserved_quantity - item.quantity, 0)
        variant.save(update_fields=['reserved_quantity', 'updated_at'])
    order.inventory_reservation_released_at = now or timezone.now()
    return True


def release_reservation(order):
    with transaction.atomic():
        order = Order.objects.select_for_update().get(pk=order.pk)
        if _release_reservation(order):
            order.save(update_fields=['inventory_reservation_released_at', 'updated_at'])
            logger.info(f"Released stock reservation for order {order.order_number}")
    return order


def release_expired_reservations(now=None):
    """Release holds of unpaid orders whose reservation window has passed"""
    now = now or timezone.now()
    expired = Order.objects.filter(
        inventory_reserved_at__isnull=False,
        inventory_reservation_released_at__isnull=True,
        inventory_deducted_at__isnull=True,
        inventory_reservation_expires_at__lte=now,
    ).exclude(payment_status=PaymentStatus.PAID)

    released = 0
    for order in expired:
        release_reservation(order)
        released += 1
    return released


def update_order_status(order, new_status, reason=None):
    """Admin status change with timestamp bookkeeping"""
    if new_status not in OrderStatus.VALUES:
        raise ServiceError(f'order_status must be one of: {", ".join(OrderStatus.VALUES)}')

    with transaction.atomic():
        order = Order.objects.select_for_update().get(pk=order.pk)
        if order.order_status == new_status:
            return order
        if order.order_status in TERMINAL_ORDER_STATUSES:
            raise ServiceError(f'Cannot change status of an order that is already {order.order_status}.')

        now = timezone.now()
        order.order_status = new_status
        if new_status in (OrderStatus.SHIPPED, OrderStatus.OUT_FOR_DELIVERY) and not order.shipped_at:
            order.shipped_at = now
        elif new_status == OrderStatus.DELIVERED:
            order.delivered_at = now
        elif new_status == OrderStatus.CANCELLED:
            order.cancelled_at = now
            order.cancellation_reason = reason or order.cancellation_reason
            _release_reservation(order, now)
        order.save()

    logger.info(f"Order {order.order_number} status changed to {new_status}")
    return order


def _apply_payment_status(order, payment_status, paid_at=None):
    order.payment_status = payment_status
    if payment_status == PaymentStatus.PAID:
        order.paid_at = paid_at or order.paid_at or timezone.now()
        if order.order_status in (OrderStatus.ORDER_PLACED, OrderStatus.FAILED):
            order.order_status = OrderStatus.PROCESSING
    elif payment_status == PaymentStatus.FAILED:
        # Cancelled and delivered orders keep their status
        if order.order_status not in TERMINAL_ORDER_STATUSES:
            order.order_status = OrderStatus.FAILED
        _release_reservation(order)
    elif payment_status == PaymentStatus.CANCELLED:
        _release_reservation(order)


def update_payment_status(order, payment_status, paid_at=None):
    """Record a gateway payment outcome other than a confirmed payment"""
    if payment_status not in PaymentStatus.VALUES:
        raise ServiceError(f'payment_status must be one of: {", ".join(PaymentStatus.VALUES)}')
    with transaction.atomic():
        order = Order.objects.select_for_update().get(pk=order.pk)
        if order.payment_status == PaymentStatus.PAID and payment_status != PaymentStatus.PAID:
            logger.warning(f"Ignoring {payment_status} for already paid order {order.order_number}")
            return order
        _apply_payment_status(order, payment_status, paid_at)
        order.save()
    return order


def _deduct_inventory(order, now):
    items = list(order.items.all())
    variants = {
        variant.id: variant
        for variant in ProductVariant.objects.select_for_update().filter(
            id__in=[item.variant_id for item in items if item.variant_id]
        )
    }

    errors = []
    for item in items:
        variant = variants.get(item.variant_id)
        if variant is None:
            errors.append(f'Variant for "{item.product_name}" no longer exists')
        elif variant.quantity < item.quantity:
            errors.append(f'Insufficient stock for "{item.product_name}": {variant.quantity} left, {item.quantity} ordered')
    if errors:
        order.inventory_deduction_failed_at = now
        order.inventory_deduction_error = '; '.join(errors)
        logger.error(f"Inventory deduction failed for order {order.order_number}: {order.inventory_deduction_error}")
        return False

    holds_reservation = order.has_active_reservation
    for item in items:
        variant = variants[item.variant_id]
        variant.quantity -= item.quantity
        if holds_reservation:
            variant.reserved_quantity = max(variant.reserved_quantity - item.quantity, 0)
        if variant.quantity == 0:
            variant.in_stock = False
        variant.save(update_fields=['quantity', 'reserved_quantity', 'in_stock', 'updated_at'])

    order.inventory_deducted_at = now
    order.inventory_deduction_failed_at = None
    order.inventory_deduction_error = None
    return True


def confirm_paid_and_deduct_inventory(transaction_reference, paid_at=None):
    """
    Mark an order paid and deduct its stock, once.

    Safe to call repeatedly for the same transaction (webhook retries,
    verify-after-webhook). Returns (order, newly_paid); order is None when
    no order carries the reference.
    """
    with transaction.atomic():
        order = Order.objects.select_for_update().filter(
            monnify_transaction_reference=transaction_reference
        ).first()
        if order is None:
            return None, False

        newly_paid = order.payment_status != PaymentStatus.PAID
        if newly_paid:
            _apply_payment_status(order, PaymentStatus.PAID, paid_at)
        if order.inventory_deducted_at is None:
            _deduct_inventory(order, timezone.now())
        order.save()

    if newly_paid:
        logger.info(f"Order {order.order_number} confirmed paid")
    return order, newly_paid


def track_order(order_number):
    """Public order lookup across regular and measurement orders"""
    from backend.measurements.models import MeasurementOrder

    order_number = (order_number or '').strip().upper()
    if not order_number:
        raise ServiceError('Order number is required.')

    order = Order.objects.prefetch_related('items').filter(order_number=order_number).first()
    if order:
        return 'regular', order
    measurement_order = MeasurementOrder.objects.filter(order_number=order_number).first()
    if measurement_order:
        return 'measurement', measurement_order
    raise NotFoundError('Order not found')

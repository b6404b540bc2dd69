"""
Checkout hand-off to Monnify and reconciliation of payment outcomes for
regular and measurement orders.
"""
import json
import logging
import secrets

from django.conf import settings
from django.db.models import Q
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from backend.core.exceptions import ServiceError, NotFoundError
from backend.measurements.models import MeasurementOrder
from backend.measurements import services as measurement_services
from backend.orders.models import Order, PaymentStatus
from backend.orders import services as order_services
from .emails import send_payment_confirmation_email
from .monnify import MonnifyClient, parse_webhook_payload

logger = logging.getLogger(__name__)

MONNIFY_STATUS_MAP = {
    'PAID': PaymentStatus.PAID,
    'FAILED': PaymentStatus.FAILED,
    'CANCELLED': PaymentStatus.CANCELLED,
    'USER_CANCELLED': PaymentStatus.CANCELLED,
}


def map_monnify_status(monnify_status):
    return MONNIFY_STATUS_MAP.get(str(monnify_status or '').upper(), PaymentStatus.PENDING)


def payment_redirect_url():
    return f"{settings.APP_URL}/payment/verify"


def _payment_reference(order):
    """Order number for the first attempt; a suffixed variant for retries"""
    if not order.monnify_payment_reference:
        return order.order_number
    return f"{order.order_number}-{secrets.token_hex(2).upper()}"


def _parse_paid_at(value):
    if not value:
        return timezone.now()
    parsed = parse_datetime(str(value).replace(' ', 'T'))
    if parsed is None:
        return timezone.now()
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def initiate_order_checkout(order, client=None):
    """Start a Monnify checkout for a regular order"""
    if order.payment_status == PaymentStatus.PAID:
        raise ServiceError('This order has already been paid.')

    client = client or MonnifyClient()
    address = order.shipping_address or {}
    result = client.init_transaction(
        amount=order.total,
        customer_name=order.customer_name,
        customer_email=order.customer_email,
        customer_phone=address.get('phone'),
        payment_reference=_payment_reference(order),
        payment_description=f"Payment for order {order.order_number}",
        redirect_url=payment_redirect_url(),
        metadata={'orderType': 'regular', 'orderId': str(order.id)},
    )
    order.monnify_transaction_reference = result['transaction_reference']
    order.monnify_payment_reference = result['payment_reference']
    order.save(update_fields=['monnify_transaction_reference', 'monnify_payment_reference', 'updated_at'])
    return {**result, 'order_number': order.order_number}


def initiate_measurement_checkout(order, client=None):
    """Start a Monnify checkout for a priced measurement order"""
    measurement_services.ensure_payable(order)

    client = client or MonnifyClient()
    result = client.init_transaction(
        amount=order.amount_due,
        customer_name=order.customer_name,
        customer_email=order.customer_email,
        customer_phone=order.customer_phone,
        payment_reference=_payment_reference(order),
        payment_description=f"Payment for custom order {order.order_number}",
        redirect_url=payment_redirect_url(),
        metadata={'orderType': 'measurement', 'orderId': str(order.id)},
    )
    order.monnify_transaction_reference = result['transaction_reference']
    order.monnify_payment_reference = result['payment_reference']
    order.save(update_fields=['monnify_transaction_reference', 'monnify_payment_reference', 'updated_at'])
    return {**result, 'order_number': order.order_number}


def find_order_by_reference(reference):
    """
    Locate an order by transaction reference, payment reference or order
    number, checking regular orders before measurement orders.

    Returns (order_type, order) or (None, None).
    """
    reference = (reference or '').strip()
    if not reference:
        return None, None
    for field in ('monnify_transaction_reference', 'monnify_payment_reference', 'order_number'):
        order = Order.objects.filter(**{field: reference}).first()
        if order:
            return 'regular', order
        measurement_order = MeasurementOrder.objects.filter(**{field: reference}).first()
        if measurement_order:
            return 'measurement', measurement_order
    return None, None


def _notify_paid(order_type, order):
    if order_type == 'regular':
        send_payment_confirmation_email(
            order.order_number, order.customer_email, order.customer_name, order.total,
            order_type='regular', is_guest=order.is_guest,
        )
    else:
        send_payment_confirmation_email(
            order.order_number, order.customer_email, order.customer_name, order.amount_due,
            order_type='measurement', is_guest=order.is_guest,
        )


def apply_payment_outcome(order_type, order, payment_status, paid_at=None):
    """
    Persist a payment outcome for either order type.

    Paid regular orders go through the idempotent finalize so inventory
    is deducted once. Returns (order, newly_paid).
    """
    if order_type == 'regular':
        if payment_status == PaymentStatus.PAID:
            finalized, newly_paid = order_services.confirm_paid_and_deduct_inventory(
                order.monnify_transaction_reference, paid_at
            )
            return finalized or order, newly_paid
        if payment_status != order.payment_status:
            order = order_services.update_payment_status(order, payment_status, paid_at)
        return order, False

    if payment_status == order.payment_status and payment_status != PaymentStatus.PAID:
        return order, False
    return measurement_services.update_measurement_payment_status(order, payment_status, paid_at)


def verify_payment(reference, client=None):
    """
    Reconcile an order with Monnify after the customer returns from checkout.
    """
    order_type, order = find_order_by_reference(reference)
    if order is None:
        raise NotFoundError('Order not found')
    if not order.monnify_transaction_reference:
        raise ServiceError('No payment has been initiated for this order.')

    client = client or MonnifyClient()
    transaction_data = client.verify_transaction(order.monnify_transaction_reference)
    payment_status = map_monnify_status(transaction_data.get('paymentStatus'))
    paid_at = _parse_paid_at(transaction_data.get('paidOn')) if payment_status == PaymentStatus.PAID else None

    order, newly_paid = apply_payment_outcome(order_type, order, payment_status, paid_at)
    if newly_paid:
        _notify_paid(order_type, order)

    return {
        'order_type': order_type,
        'order': order,
        'payment_status': order.payment_status,
        'monnify_status': transaction_data.get('paymentStatus'),
    }


def handle_webhook(raw_body, signature, client=None):
    """
    Process a Monnify webhook delivery.

    Returns (http_status, message).
    """
    client = client or MonnifyClient()
    if not client.verify_webhook_signature(raw_body, signature):
        logger.warning(f"Invalid webhook signature: {(signature or '')[:20]}...")
        return 401, 'Invalid webhook signature'

    try:
        payload = json.loads(raw_body)
    except (TypeError, ValueError):
        return 400, 'Invalid webhook payload'
    event = parse_webhook_payload(payload)
    if event is None:
        return 400, 'Invalid webhook payload'

    is_paid_event = event['event_type'] == 'SUCCESSFUL_TRANSACTION' or event['payment_status'] == 'PAID'
    if is_paid_event:
        payment_status = PaymentStatus.PAID
    elif event['payment_status'] in ('FAILED', 'CANCELLED', 'USER_CANCELLED'):
        payment_status = map_monnify_status(event['payment_status'])
    else:
        logger.info(f"Webhook event ignored: {event['event_type']} ({event['payment_status']})")
        return 200, 'Webhook received but event ignored'

    order_type, order = _find_webhook_order(event)
    if order is None:
        logger.warning(f"Webhook for unknown transaction {event['transaction_reference']}")
        return 404, 'Order not found'

    if order.monnify_transaction_reference != event['transaction_reference']:
        order.monnify_transaction_reference = event['transaction_reference']
        order.save(update_fields=['monnify_transaction_reference', 'updated_at'])

    paid_at = _parse_paid_at(event['paid_on']) if payment_status == PaymentStatus.PAID else None
    order, newly_paid = apply_payment_outcome(order_type, order, payment_status, paid_at)
    if newly_paid:
        _notify_paid(order_type, order)

    logger.info(f"Webhook processed for {order.order_number}: {payment_status}")
    return 200, 'Webhook processed successfully'


def _find_webhook_order(event):
    """Match by transaction reference, then by payment reference"""
    lookup = Q(monnify_transaction_reference=event['transaction_reference'])
    if event['payment_reference']:
        lookup |= Q(monnify_payment_reference=event['payment_reference'])

    prefer_measurement = event['metadata'].get('orderType') == 'measurement'
    candidates = [('measurement', MeasurementOrder), ('regular', Order)]
    if not prefer_measurement:
        candidates.reverse()
    for order_type, model in candidates:
        order = model.objects.filter(lookup).first()
        if order:
            return order_type, order
    return None, None

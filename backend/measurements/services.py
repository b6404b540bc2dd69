"""
Measurement (made-to-measure) order lifecycle.

Orders arrive unpriced. An admin sets the price once the design is
reviewed; re-pricing an already priced order issues a replacement order
with a fresh number so the customer gets a new receipt.
"""
import logging
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from backend.catalog.models import MeasurementTemplate
from backend.core.exceptions import ServiceError
from backend.core.services import create_account_from_address
from backend.core.utils import generate_reference_number
from backend.orders.models import PaymentStatus
from backend.orders.services import resolve_customer_address
from backend.shipping.constants import DEFAULT_COUNTRY
from backend.shipping.services import (
    calculate_tax, get_location_fee, get_shipping_settings, money, qualifies_for_free_shipping,
)
from .models import MeasurementOrder, MeasurementOrderStatus

logger = logging.getLogger(__name__)

REPLACEMENT_REASON = 'Order replaced after price update. A new receipt has been generated.'
PAID_PRICE_CHANGE_MESSAGE = 'Cannot change the price of a measurement order that has already been paid.'

# Fields carried over to a replacement order
COPIED_FIELDS = [
    'user', 'is_guest', 'guest_email', 'customer_name', 'customer_email', 'customer_phone',
    'street_address', 'city', 'state', 'zip_code', 'country', 'shipping_location',
    'category', 'templates', 'notes',
]


def build_templates(template_entries):
    """
    Validate submitted measurements against their templates.

    Every field a template defines must be measured with a positive value.
    Returns the JSON-ready list stored on the order.
    """
    template_ids = [entry['template_id'] for entry in template_entries]
    templates = MeasurementTemplate.objects.in_bulk(template_ids)

    built = []
    for entry in template_entries:
        template = templates.get(entry['template_id'])
        if template is None:
            raise ServiceError(f"Measurement template {entry['template_id']} not found.")

        values = {m['field_name'].strip(): m['value'] for m in entry['measurements']}
        missing = [name for name in template.field_names if name not in values]
        if missing:
            raise ServiceError(f'Missing measurements for "{template.title}": {", ".join(missing)}')

        built.append({
            'template_id': template.id,
            'template_title': template.title,
            'quantity': entry['quantity'],
            'measurements': [
                {'field_name': name, 'value': float(values[name])}
                for name in template.field_names
            ],
            'sample_image_urls': list(entry.get('sample_image_urls') or []),
        })
    return built


def create_measurement_order(data, user=None):
    """
    Record a made-to-measure request from a customer or guest.

    The delivery fee is the location fee; the price stays 0 until an
    admin sets it.
    """
    is_authenticated = user is not None and user.is_authenticated
    address = resolve_customer_address(user if is_authenticated else None, data.get('customer'))
    templates = build_templates(data['templates'])

    settings_obj = get_shipping_settings()
    delivery_fee = get_location_fee(settings_obj, data['shipping_location'])

    with transaction.atomic():
        order_user = user if is_authenticated else None
        is_guest = not is_authenticated
        if is_guest and data.get('create_account'):
            order_user = create_account_from_address(address, data['password'])
            is_guest = False

        order = MeasurementOrder.objects.create(
            order_number=generate_reference_number('MSO', MeasurementOrder),
            user=order_user,
            is_guest=is_guest,
            guest_email=address['email'] if not is_authenticated else None,
            customer_name=f"{address['first_name']} {address['last_name']}".strip(),
            customer_email=address['email'],
            customer_phone=address['phone'],
            street_address=address['address'],
            city=address['city'],
            state=address['state'],
            zip_code=address['zip_code'],
            country=address.get('country') or DEFAULT_COUNTRY,
            shipping_location=data['shipping_location'],
            category=data.get('category') or None,
            templates=templates,
            notes=data.get('notes') or None,
            delivery_fee=delivery_fee,
        )

    logger.info(f"Measurement order {order.order_number} created with {len(templates)} template(s)")
    return order


def compute_measurement_charges(price, shipping_location, settings_obj=None):
    """(delivery_fee, tax) for a measurement order priced at price"""
    if settings_obj is None:
        settings_obj = get_shipping_settings()
    price = money(price)
    if qualifies_for_free_shipping(settings_obj, price):
        delivery_fee = Decimal('0.00')
    else:
        delivery_fee = get_location_fee(settings_obj, shipping_location)
    return delivery_fee, calculate_tax(price + delivery_fee)


def set_measurement_order_price(order, price, admin_user=None):
    """
    Price a measurement order.

    The first pricing updates the order in place. Any later pricing
    cancels the order and returns a replacement carrying the new price.
    """
    price = money(price)
    if price <= 0:
        raise ServiceError('Price must be greater than 0.')

    with transaction.atomic():
        order = MeasurementOrder.objects.select_for_update().get(pk=order.pk)
        if order.payment_status == PaymentStatus.PAID:
            raise ServiceError(PAID_PRICE_CHANGE_MESSAGE)
        if order.is_replaced:
            raise ServiceError('This order has been replaced and can no longer be priced.')

        delivery_fee, tax = compute_measurement_charges(price, order.shipping_location)
        now = timezone.now()

        if order.price_set_at is None:
            order.price = price
            order.delivery_fee = delivery_fee
            order.tax = tax
            order.price_set_at = now
            order.price_set_by = admin_user
            order.save()
            logger.info(f"Measurement order {order.order_number} priced at {price}")
            return order, False

        replacement = MeasurementOrder(
            order_number=generate_reference_number('MSO', MeasurementOrder),
            price=price,
            delivery_fee=delivery_fee,
            tax=tax,
            price_set_at=now,
            price_set_by=admin_user,
            original_order=order,
            status=MeasurementOrderStatus.ORDER_RECEIVED,
            payment_status=PaymentStatus.PENDING,
        )
        for field in COPIED_FIELDS:
            setattr(replacement, field, getattr(order, field))
        replacement.save()

        order.is_replaced = True
        order.replaced_by_order = replacement
        order.status = MeasurementOrderStatus.CANCELLED
        order.cancelled_at = now
        order.cancellation_reason = REPLACEMENT_REASON
        order.save()

    logger.info(f"Measurement order {order.order_number} replaced by {replacement.order_number} at price {price}")
    return replacement, True


def update_measurement_order_status(order, new_status):
    if new_status not in MeasurementOrderStatus.VALUES:
        raise ServiceError(f'status must be one of: {", ".join(MeasurementOrderStatus.VALUES)}')
    if order.is_replaced:
        raise ServiceError('This order has been replaced. Please update the latest order.')

    now = timezone.now()
    order.status = new_status
    if new_status in (MeasurementOrderStatus.SHIPPED, MeasurementOrderStatus.OUT_FOR_DELIVERY) and not order.shipped_at:
        order.shipped_at = now
    elif new_status == MeasurementOrderStatus.DELIVERED:
        order.delivered_at = now
    elif new_status == MeasurementOrderStatus.CANCELLED:
        order.cancelled_at = now
    order.save()
    return order


def update_measurement_payment_status(order, payment_status, paid_at=None):
    """
    Apply a gateway outcome. Returns (order, newly_paid).
    """
    with transaction.atomic():
        order = MeasurementOrder.objects.select_for_update().get(pk=order.pk)
        newly_paid = payment_status == PaymentStatus.PAID and order.payment_status != PaymentStatus.PAID
        if order.payment_status == PaymentStatus.PAID and payment_status != PaymentStatus.PAID:
            logger.warning(f"Ignoring {payment_status} for already paid measurement order {order.order_number}")
            return order, False

        order.payment_status = payment_status
        if payment_status == PaymentStatus.PAID:
            order.paid_at = paid_at or order.paid_at or timezone.now()
            if order.status == MeasurementOrderStatus.ORDER_RECEIVED:
                order.status = MeasurementOrderStatus.DESIGN_REVIEW
        elif payment_status == PaymentStatus.FAILED:
            order.status = MeasurementOrderStatus.CANCELLED
            order.cancelled_at = order.cancelled_at or timezone.now()
        order.save()
    return order, newly_paid


def ensure_payable(order):
    """Raise ServiceError when a measurement order cannot go to checkout"""
    if order.is_replaced:
        raise ServiceError('This order has been replaced. Please use the latest order.')
    if order.payment_status == PaymentStatus.PAID:
        raise ServiceError('This order has already been paid.')
    if order.price <= 0:
        raise ServiceError('Price has not been set for this order yet.')

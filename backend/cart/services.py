"""
Server-side cart pricing.

The storefront keeps the cart client-side; every price shown at checkout
and stored on an order is recomputed here from the catalogue.
"""
import logging
from decimal import Decimal

from backend.catalog.models import ProductVariant
from backend.shipping.services import (
    calculate_shipping, calculate_tax, get_shipping_settings, money,
)

logger = logging.getLogger(__name__)

MAX_CART_ITEMS = 100
MAX_ITEM_QUANTITY = 1000


def _empty_cart(settings_obj):
    zero = Decimal('0.00')
    return {
        'items': [],
        'subtotal': zero,
        'shipping': zero,
        'tax': zero,
        'total': zero,
        'item_count': 0,
        'free_shipping_threshold': money(settings_obj.free_shipping_threshold or 0),
    }


def _load_variants(items):
    variant_ids = set()
    for item in items:
        try:
            variant_ids.add(int(item.get('variant_id')))
        except (TypeError, ValueError):
            continue
    return {
        variant.id: variant
        for variant in ProductVariant.objects.select_related('product').filter(id__in=variant_ids)
    }


def price_line(variant, quantity):
    """Priced snapshot of one cart line"""
    return {
        'product_id': variant.product_id,
        'variant_id': variant.id,
        'product_name': variant.product.name,
        'product_slug': variant.product.slug,
        'image_urls': list(variant.image_urls or []),
        'color': variant.color,
        'size': variant.size,
        'price': money(variant.price),
        'discount_price': money(variant.discount_price) if variant.discount_price is not None else None,
        'quantity': quantity,
        'item_subtotal': money(variant.price * quantity),
        'item_total': money(variant.effective_price * quantity),
        'in_stock': variant.in_stock,
        'available_quantity': variant.available_quantity,
        'measurements': variant.measurements or {},
    }


def calculate_cart(items, shipping_location=None, settings_obj=None):
    """
    Price a list of {product_id, variant_id, quantity} lines.

    Lines that reference a missing product/variant or carry a quantity
    below 1 are skipped. Shipping uses the free-shipping threshold when
    the subtotal reaches it and the location fee otherwise; tax is VAT
    on the subtotal.
    """
    if settings_obj is None:
        settings_obj = get_shipping_settings()

    if not items:
        return _empty_cart(settings_obj)

    variants = _load_variants(items)
    lines = []
    for item in items:
        try:
            variant_id = int(item.get('variant_id'))
            product_id = int(item.get('product_id'))
            quantity = int(item.get('quantity', 0))
        except (TypeError, ValueError):
            logger.warning(f"Skipping malformed cart item: {item}")
            continue

        variant = variants.get(variant_id)
        if variant is None or variant.product_id != product_id:
            logger.warning(f"Skipping cart item with unknown product/variant: product={product_id}, variant={variant_id}")
            continue
        if quantity < 1:
            logger.warning(f"Skipping cart item with invalid quantity {quantity}: variant={variant_id}")
            continue

        lines.append(price_line(variant, quantity))

    if not lines:
        return _empty_cart(settings_obj)

    subtotal = money(sum((line['item_total'] for line in lines), Decimal('0')))
    shipping = calculate_shipping(subtotal, shipping_location, settings_obj)
    tax = calculate_tax(subtotal)

    return {
        'items': lines,
        'subtotal': subtotal,
        'shipping': shipping,
        'tax': tax,
        'total': money(subtotal + shipping + tax),
        'item_count': sum(line['quantity'] for line in lines),
        'free_shipping_threshold': money(settings_obj.free_shipping_threshold or 0),
    }

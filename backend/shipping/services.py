"""
Shipping fee and tax rules shared by cart pricing, orders and
measurement orders.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP

from .constants import TAX_RATE
from .models import ShippingSettings

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal('0.01')


def money(value) -> Decimal:
    """Round to kobo precision"""
    return Decimal(str(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def default_shipping_settings() -> ShippingSettings:
    """Unsaved settings with no location fees and no free shipping"""
    return ShippingSettings(location_fees=[], free_shipping_threshold=Decimal('0.00'))


def get_shipping_settings() -> ShippingSettings:
    """
    Current shipping settings.

    Returns default_shipping_settings() when an admin has not configured
    anything yet.
    """
    settings_obj = ShippingSettings.objects.order_by('id').first()
    if settings_obj is None:
        return default_shipping_settings()
    return settings_obj


def update_shipping_settings(location_fees=None, free_shipping_threshold=None, user=None) -> ShippingSettings:
    """Create or update the single settings row"""
    settings_obj = ShippingSettings.objects.order_by('id').first() or ShippingSettings()
    if location_fees is not None:
        settings_obj.location_fees = [
            {'location': entry['location'], 'fee': str(money(entry['fee']))}
            for entry in location_fees
        ]
    if free_shipping_threshold is not None:
        settings_obj.free_shipping_threshold = money(free_shipping_threshold)
    settings_obj.updated_by = user
    settings_obj.save()
    logger.info(f"Shipping settings updated: {len(settings_obj.location_fees)} locations, threshold={settings_obj.free_shipping_threshold}")
    return settings_obj


def get_location_fee(settings_obj, location) -> Decimal:
    """Fee configured for a location, 0 when the location has no fee"""
    if not location or settings_obj is None:
        return Decimal('0.00')
    wanted = location.strip().lower()
    for entry in settings_obj.location_fees or []:
        if str(entry.get('location', '')).strip().lower() == wanted:
            return money(entry.get('fee') or 0)
    return Decimal('0.00')


def qualifies_for_free_shipping(settings_obj, amount) -> bool:
    threshold = Decimal(str(settings_obj.free_shipping_threshold or 0)) if settings_obj is not None else Decimal('0')
    return threshold > 0 and Decimal(str(amount)) >= threshold


def calculate_shipping(amount, location, settings_obj=None) -> Decimal:
    """Free above a positive threshold, otherwise the location fee"""
    if settings_obj is None:
        settings_obj = get_shipping_settings()
    if qualifies_for_free_shipping(settings_obj, amount):
        return Decimal('0.00')
    return get_location_fee(settings_obj, location)


def calculate_tax(amount) -> Decimal:
    return money(Decimal(str(amount)) * TAX_RATE)

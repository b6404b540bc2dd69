"""Shipping and tax constants for deliveries within Nigeria"""
from decimal import Decimal

# Nigerian VAT
TAX_RATE = Decimal('0.075')

DEFAULT_COUNTRY = 'Nigeria'

# Delivery destinations an admin can price; the 36 states plus the FCT
SHIPPING_LOCATIONS = [
    'Abia', 'Adamawa', 'Akwa Ibom', 'Anambra', 'Bauchi', 'Bayelsa', 'Benue',
    'Borno', 'Cross River', 'Delta', 'Ebonyi', 'Edo', 'Ekiti', 'Enugu',
    'Federal Capital Territory', 'Gombe', 'Imo', 'Jigawa', 'Kaduna', 'Kano',
    'Katsina', 'Kebbi', 'Kogi', 'Kwara', 'Lagos', 'Nasarawa', 'Niger', 'Ogun',
    'Ondo', 'Osun', 'Oyo', 'Plateau', 'Rivers', 'Sokoto', 'Taraba', 'Yobe',
    'Zamfara',
]

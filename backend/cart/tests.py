"""
Test suite for server-side cart pricing
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from backend.cart.services import calculate_cart
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient


class CartCalculationTests(TestCase):
    """Test cart totals"""

    def setUp(self):
        self.settings_obj = TestDataFactory.create_shipping_settings(free_shipping_threshold=Decimal('50000.00'))
        self.product = TestDataFactory.create_product(price=Decimal('10000.00'), discount_price=Decimal('8000.00'))
        self.variant = self.product.variants.first()

    def test_empty_cart(self):
        """Test an empty cart prices to zero"""
        cart = calculate_cart([], 'Lagos', self.settings_obj)
        self.assertEqual(cart['total'], Decimal('0.00'))
        self.assertEqual(cart['item_count'], 0)
        self.assertEqual(cart['free_shipping_threshold'], Decimal('50000.00'))

    def test_discount_price_and_location_fee(self):
        """Test effective price, shipping and VAT"""
        cart = calculate_cart([TestDataFactory.cart_item(self.variant, 2)], 'Lagos', self.settings_obj)
        self.assertEqual(cart['subtotal'], Decimal('16000.00'))
        self.assertEqual(cart['shipping'], Decimal('2500.00'))
        self.assertEqual(cart['tax'], Decimal('1200.00'))
        self.assertEqual(cart['total'], Decimal('19700.00'))
        self.assertEqual(cart['items'][0]['item_subtotal'], Decimal('20000.00'))

    def test_discount_not_lower_than_price_is_ignored(self):
        """Test a discount above the list price does not apply"""
        variant = TestDataFactory.create_product(price=Decimal('5000.00'), discount_price=Decimal('6000.00')).variants.first()
        cart = calculate_cart([TestDataFactory.cart_item(variant)], None, self.settings_obj)
        self.assertEqual(cart['subtotal'], Decimal('5000.00'))
        self.assertEqual(cart['shipping'], Decimal('0.00'))

    def test_free_shipping_over_threshold(self):
        """Test subtotal reaching the threshold ships free"""
        cart = calculate_cart([TestDataFactory.cart_item(self.variant, 7)], 'Lagos', self.settings_obj)
        self.assertEqual(cart['subtotal'], Decimal('56000.00'))
        self.assertEqual(cart['shipping'], Decimal('0.00'))

    def test_invalid_lines_are_skipped(self):
        """Test unknown variants and mismatched products are dropped"""
        other = TestDataFactory.create_product()
        cart = calculate_cart([
            {'product_id': self.product.id, 'variant_id': 999999, 'quantity': 1},
            {'product_id': other.id, 'variant_id': self.variant.id, 'quantity': 1},
            {'product_id': self.product.id, 'variant_id': self.variant.id, 'quantity': 0},
            TestDataFactory.cart_item(self.variant, 1),
        ], 'Lagos', self.settings_obj)
        self.assertEqual(len(cart['items']), 1)
        self.assertEqual(cart['item_count'], 1)


class CartAPITests(TestCase):
    """Test the cart calculation endpoint"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        TestDataFactory.create_shipping_settings()
        self.variant = TestDataFactory.create_product(price=Decimal('2000.00')).variants.first()

    def test_calculate_anonymous(self):
        """Test guests can price their cart"""
        response = self.client.post('/api/v1/cart/calculate/', {
            'items': [TestDataFactory.cart_item(self.variant, 3)],
            'shipping_location': 'Lagos',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['subtotal'], '6000.00')
        self.assertEqual(response.data['shipping'], '2500.00')
        self.assertEqual(response.data['tax'], '450.00')
        self.assertEqual(response.data['total'], '8950.00')

    def test_calculate_rejects_unknown_location(self):
        """Test shipping location must be supported"""
        response = self.client.post('/api/v1/cart/calculate/', {
            'items': [TestDataFactory.cart_item(self.variant)],
            'shipping_location': 'Mars',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_calculate_rejects_zero_quantity(self):
        """Test quantities must be positive"""
        response = self.client.post('/api/v1/cart/calculate/', {
            'items': [TestDataFactory.cart_item(self.variant, 0)],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

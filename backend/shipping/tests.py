"""
Test suite for shipping settings, fees and tax
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.shipping import services
from backend.shipping.models import ShippingSettings


class ShippingRulesTests(TestCase):
    """Test fee, free-shipping and tax calculations"""

    def setUp(self):
        self.settings_obj = TestDataFactory.create_shipping_settings(free_shipping_threshold=Decimal('50000.00'))

    def test_location_fee_is_case_insensitive(self):
        """Test location lookup ignores case"""
        self.assertEqual(services.get_location_fee(self.settings_obj, 'lagos'), Decimal('2500.00'))

    def test_unknown_location_has_no_fee(self):
        """Test unpriced locations cost nothing"""
        self.assertEqual(services.get_location_fee(self.settings_obj, 'Kano'), Decimal('0.00'))

    def test_free_shipping_at_threshold(self):
        """Test amounts reaching the threshold ship free"""
        self.assertEqual(services.calculate_shipping(Decimal('50000.00'), 'Lagos', self.settings_obj), Decimal('0.00'))
        self.assertEqual(services.calculate_shipping(Decimal('49999.99'), 'Lagos', self.settings_obj), Decimal('2500.00'))

    def test_zero_threshold_disables_free_shipping(self):
        """Test a zero threshold never grants free shipping"""
        self.settings_obj.free_shipping_threshold = Decimal('0.00')
        self.assertEqual(services.calculate_shipping(Decimal('999999.00'), 'Oyo', self.settings_obj), Decimal('4000.00'))

    def test_tax_rounds_half_up(self):
        """Test VAT at 7.5% rounded to kobo"""
        self.assertEqual(services.calculate_tax(Decimal('100.10')), Decimal('7.51'))
        self.assertEqual(services.calculate_tax(Decimal('10000.00')), Decimal('750.00'))

    def test_default_settings_when_unconfigured(self):
        """Test an unsaved default is returned when no row exists"""
        ShippingSettings.objects.all().delete()
        settings_obj = services.get_shipping_settings()
        self.assertIsNone(settings_obj.pk)
        self.assertEqual(settings_obj.location_fees, [])


class ShippingAPITests(TestCase):
    """Test shipping endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.admin = TestDataFactory.create_admin()

    def test_public_settings(self):
        """Test anyone can read shipping settings"""
        TestDataFactory.create_shipping_settings()
        response = self.client.get('/api/v1/shipping/settings/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['location_fees']), 2)

    def test_locations(self):
        """Test the supported destination list"""
        response = self.client.get('/api/v1/shipping/locations/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('Lagos', response.data['locations'])
        self.assertIn('Federal Capital Territory', response.data['locations'])

    def test_admin_update_creates_row_and_audit_log(self):
        """Test admin can save settings"""
        self.client.authenticate_user(self.admin)
        response = self.client.put('/api/v1/admin/shipping/settings/', {
            'location_fees': [{'location': 'Lagos', 'fee': '3000.00'}],
            'free_shipping_threshold': '75000.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        settings_obj = ShippingSettings.objects.get()
        self.assertEqual(settings_obj.free_shipping_threshold, Decimal('75000.00'))
        self.assertEqual(settings_obj.updated_by, self.admin)
        self.assertTrue(AuditLog.objects.filter(action='shipping_settings_update').exists())

    def test_admin_update_rejects_duplicate_locations(self):
        """Test each location may only be priced once"""
        self.client.authenticate_user(self.admin)
        response = self.client.put('/api/v1/admin/shipping/settings/', {
            'location_fees': [{'location': 'Lagos', 'fee': '3000.00'}, {'location': 'Lagos', 'fee': '100.00'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_admin_update_rejects_unknown_location(self):
        """Test only supported destinations can be priced"""
        self.client.authenticate_user(self.admin)
        response = self.client.put('/api/v1/admin/shipping/settings/', {
            'location_fees': [{'location': 'Atlantis', 'fee': '3000.00'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_customer_cannot_update(self):
        """Test settings updates are admin-only"""
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.put('/api/v1/admin/shipping/settings/', {'free_shipping_threshold': '1.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

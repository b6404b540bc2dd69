"""
Test suite for made-to-measure orders
"""
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase
from rest_framework import status

from backend.core.exceptions import ServiceError
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.measurements import services
from backend.measurements.models import MeasurementOrder, MeasurementOrderStatus
from backend.orders.models import PaymentStatus


class MeasurementOrderCreateTests(TestCase):
    """Test submitting measurement orders"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        TestDataFactory.create_shipping_settings()
        self.template = TestDataFactory.create_template(field_names=('Chest', 'Waist'))

    def payload(self, measurements=None, **extra):
        data = {
            'shipping_location': 'Lagos',
            'category': 'agbada',
            'templates': [{
                'template_id': self.template.id,
                'quantity': 2,
                'measurements': measurements or [
                    {'field_name': 'Chest', 'value': 42},
                    {'field_name': 'Waist', 'value': 34.5},
                ],
            }],
        }
        data.update(extra)
        return data

    def test_guest_submission(self):
        """Test guests submit with their contact details"""
        response = self.client.post('/api/v1/measurement-orders/',
                                    self.payload(customer=TestDataFactory.address()), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['order_number'].startswith('MSO-'))
        self.assertTrue(response.data['is_guest'])
        self.assertEqual(response.data['price'], '0.00')
        self.assertEqual(response.data['delivery_fee'], '2500.00')
        self.assertEqual(response.data['templates'][0]['measurements'][1], {'field_name': 'Waist', 'value': 34.5})

    def test_guest_requires_customer_details(self):
        """Test guest submissions need an address"""
        response = self.client.post('/api/v1/measurement-orders/', self.payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_missing_template_field(self):
        """Test every template field must be measured"""
        response = self.client.post('/api/v1/measurement-orders/', self.payload(
            measurements=[{'field_name': 'Chest', 'value': 42}],
            customer=TestDataFactory.address(),
        ), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Waist', response.data['error'])

    def test_non_positive_measurement(self):
        """Test measurements must be positive"""
        response = self.client.post('/api/v1/measurement-orders/', self.payload(
            measurements=[{'field_name': 'Chest', 'value': 0}, {'field_name': 'Waist', 'value': 30}],
            customer=TestDataFactory.address(),
        ), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_authenticated_submission_uses_profile(self):
        """Test signed-in customers use their saved address"""
        user = TestDataFactory.create_user()
        self.client.authenticate_user(user)
        response = self.client.post('/api/v1/measurement-orders/', self.payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['customer_email'], user.email)
        self.assertEqual(response.data['street_address'], '12 Marina Road')

    def test_guest_account_creation(self):
        """Test a guest can open an account with the submission"""
        response = self.client.post('/api/v1/measurement-orders/', self.payload(
            customer=TestDataFactory.address(email='New@Test.com'),
            create_account=True, password='Secret123', confirm_password='Secret123',
        ), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertFalse(response.data['is_guest'])
        self.assertTrue(get_user_model().objects.filter(email='new@test.com').exists())

    def test_guest_account_creation_conflict(self):
        """Test account creation is refused for a registered email"""
        TestDataFactory.create_user(email='taken@test.com')
        response = self.client.post('/api/v1/measurement-orders/', self.payload(
            customer=TestDataFactory.address(email='taken@test.com'),
            create_account=True, password='Secret123', confirm_password='Secret123',
        ), format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'An account with this email already exists')
        self.assertEqual(MeasurementOrder.objects.count(), 0)

    def test_my_measurement_orders(self):
        """Test customers list their own measurement orders"""
        user = TestDataFactory.create_user()
        TestDataFactory.create_measurement_order(user=user, template=self.template)
        TestDataFactory.create_measurement_order(template=self.template)
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/measurement-orders/my/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 1)


class MeasurementPricingTests(TestCase):
    """Test pricing and replacement orders"""

    def setUp(self):
        TestDataFactory.create_shipping_settings()
        self.admin = TestDataFactory.create_admin()
        self.order = TestDataFactory.create_measurement_order()

    def test_first_price_updates_in_place(self):
        """Test the first pricing sets charges on the order"""
        order, replaced = services.set_measurement_order_price(self.order, Decimal('20000.00'), self.admin)
        self.assertFalse(replaced)
        self.assertEqual(order.pk, self.order.pk)
        self.assertEqual(order.delivery_fee, Decimal('2500.00'))
        self.assertEqual(order.tax, Decimal('1687.50'))
        self.assertEqual(order.amount_due, Decimal('24187.50'))
        self.assertEqual(order.price_set_by, self.admin)

    def test_repricing_creates_replacement(self):
        """Test re-pricing cancels the old order and issues a new one"""
        services.set_measurement_order_price(self.order, Decimal('20000.00'), self.admin)
        replacement, replaced = services.set_measurement_order_price(self.order, Decimal('25000.00'), self.admin)
        self.assertTrue(replaced)
        self.assertNotEqual(replacement.order_number, self.order.order_number)
        self.assertEqual(replacement.original_order_id, self.order.pk)
        self.assertEqual(replacement.price, Decimal('25000.00'))
        self.assertEqual(replacement.customer_email, self.order.customer_email)

        self.order.refresh_from_db()
        self.assertTrue(self.order.is_replaced)
        self.assertEqual(self.order.replaced_by_order_id, replacement.pk)
        self.assertEqual(self.order.status, MeasurementOrderStatus.CANCELLED)

    def test_replaced_order_cannot_be_priced(self):
        """Test only the latest order can be priced"""
        services.set_measurement_order_price(self.order, Decimal('20000.00'), self.admin)
        services.set_measurement_order_price(self.order, Decimal('25000.00'), self.admin)
        with self.assertRaises(ServiceError):
            services.set_measurement_order_price(self.order, Decimal('30000.00'), self.admin)

    def test_paid_order_cannot_be_repriced(self):
        """Test paid orders keep their price"""
        MeasurementOrder.objects.filter(pk=self.order.pk).update(payment_status=PaymentStatus.PAID)
        with self.assertRaises(ServiceError) as ctx:
            services.set_measurement_order_price(self.order, Decimal('20000.00'), self.admin)
        self.assertEqual(ctx.exception.message, services.PAID_PRICE_CHANGE_MESSAGE)

    def test_free_delivery_over_threshold(self):
        """Test the free-shipping threshold applies to the price"""
        from backend.shipping.models import ShippingSettings
        ShippingSettings.objects.update(free_shipping_threshold=Decimal('10000.00'))
        order, _ = services.set_measurement_order_price(self.order, Decimal('20000.00'), self.admin)
        self.assertEqual(order.delivery_fee, Decimal('0.00'))
        self.assertEqual(order.tax, Decimal('1500.00'))

    def test_ensure_payable(self):
        """Test unpriced orders cannot go to checkout"""
        with self.assertRaises(ServiceError):
            services.ensure_payable(self.order)
        order, _ = services.set_measurement_order_price(self.order, Decimal('20000.00'), self.admin)
        services.ensure_payable(order)

    def test_paid_moves_to_design_review(self):
        """Test payment advances a received order"""
        order, newly_paid = services.update_measurement_payment_status(self.order, PaymentStatus.PAID)
        self.assertTrue(newly_paid)
        self.assertEqual(order.status, MeasurementOrderStatus.DESIGN_REVIEW)
        order, newly_paid = services.update_measurement_payment_status(order, PaymentStatus.PAID)
        self.assertFalse(newly_paid)


class MeasurementAdminAPITests(TestCase):
    """Test admin measurement order endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        TestDataFactory.create_shipping_settings()
        self.admin = TestDataFactory.create_admin()
        self.order = TestDataFactory.create_measurement_order()
        self.client.authenticate_user(self.admin)

    def test_set_price_endpoint(self):
        """Test pricing through the API writes an audit log"""
        response = self.client.post(f'/api/v1/admin/measurement-orders/{self.order.id}/price/',
                                    {'price': '15000.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['replaced'])
        self.assertTrue(AuditLog.objects.filter(action='measurement_price_set').exists())

        response = self.client.post(f'/api/v1/admin/measurement-orders/{self.order.id}/price/',
                                    {'price': '18000.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['replaced'])
        self.assertEqual(response.data['order']['original_order_number'], self.order.order_number)
        self.assertTrue(AuditLog.objects.filter(action='measurement_order_replaced').exists())

    def test_set_price_rejects_zero(self):
        """Test prices must be positive"""
        response = self.client.post(f'/api/v1/admin/measurement-orders/{self.order.id}/price/',
                                    {'price': '0'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_status_update(self):
        """Test production status updates"""
        response = self.client.patch(f'/api/v1/admin/measurement-orders/{self.order.id}/status/',
                                     {'status': 'sewing'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'sewing')

    def test_list_filters_by_status(self):
        """Test admin list filters"""
        TestDataFactory.create_measurement_order(status='sewing')
        response = self.client.get('/api/v1/admin/measurement-orders/?status=sewing')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 1)

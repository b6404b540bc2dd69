"""
Test suite for the admin dashboard
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.dashboard.services import get_dashboard_stats
from backend.orders.models import OrderStatus, PaymentStatus


class DashboardStatsTests(TestCase):
    """Test dashboard aggregation across order types"""

    def setUp(self):
        variant = TestDataFactory.create_product(price=Decimal('10000.00')).variants.first()
        template = TestDataFactory.create_template()
        TestDataFactory.create_order(variant=variant, payment_status=PaymentStatus.PAID,
                                     order_status=OrderStatus.PROCESSING)
        TestDataFactory.create_order(variant=variant)
        TestDataFactory.create_order(variant=variant, order_status=OrderStatus.DELIVERED)
        TestDataFactory.create_measurement_order(template=template, price=Decimal('20000.00'),
                                                 payment_status=PaymentStatus.PAID, status='sewing')
        TestDataFactory.create_measurement_order(template=template)

    def test_stats(self):
        """Test revenue and stage counts"""
        stats = get_dashboard_stats()
        self.assertEqual(stats['total_revenue'], Decimal('30000.00'))
        self.assertEqual(stats['total_orders'], 3)
        self.assertEqual(stats['total_measurement_orders'], 2)
        self.assertEqual(stats['total_products'], 1)
        self.assertEqual(stats['pending_orders'], 2)
        self.assertEqual(stats['processing_orders'], 2)
        self.assertEqual(stats['shipped_orders'], 0)
        self.assertEqual(stats['delivered_orders'], 1)

    def test_recent_orders_merge_both_types(self):
        """Test the recent list is capped and mixes order types"""
        recent = get_dashboard_stats()['recent_orders']
        self.assertEqual(len(recent), 5)
        self.assertEqual({entry['type'] for entry in recent}, {'regular', 'measurement'})
        created = [entry['created_at'] for entry in recent]
        self.assertEqual(created, sorted(created, reverse=True))

    def test_empty_store(self):
        """Test zero revenue without paid orders"""
        from backend.orders.models import Order
        from backend.measurements.models import MeasurementOrder
        Order.objects.all().delete()
        MeasurementOrder.objects.all().delete()
        stats = get_dashboard_stats()
        self.assertEqual(stats['total_revenue'], Decimal('0.00'))
        self.assertEqual(stats['recent_orders'], [])


class DashboardAPITests(TestCase):
    """Test the dashboard endpoint"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_admin_only(self):
        """Test customers cannot view the dashboard"""
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/admin/dashboard/stats/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_stats_response(self):
        """Test serialized stats"""
        TestDataFactory.create_order(payment_status=PaymentStatus.PAID)
        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.client.get('/api/v1/admin/dashboard/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_revenue'], '10000.00')
        self.assertEqual(response.data['recent_orders'][0]['type'], 'regular')

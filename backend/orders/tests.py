"""
Test suite for order placement, stock reservation and fulfilment
"""
from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.core.management import call_command
from django.db import DatabaseError
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from backend.core.exceptions import ServiceError, ConflictError, NotFoundError
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.orders import services
from backend.orders.models import Order, OrderStatus, PaymentStatus
from backend.shipping.models import ShippingSettings


class CreateOrderTests(TestCase):
    """Test order creation and stock reservation"""

    def setUp(self):
        TestDataFactory.create_shipping_settings()
        self.product = TestDataFactory.create_product(price=Decimal('10000.00'), quantity=5)
        self.variant = self.product.variants.first()

    def guest_data(self, quantity=1, **extra):
        data = {
            'items': [TestDataFactory.cart_item(self.variant, quantity)],
            'shipping_location': 'Lagos',
            'shipping_address': TestDataFactory.address(email='Guest@Test.com'),
        }
        data.update(extra)
        return data

    def test_guest_order_totals_and_snapshot(self):
        """Test prices are recomputed and items snapshotted"""
        order = services.create_order(self.guest_data(quantity=2))
        self.assertTrue(order.order_number.startswith('ORD-'))
        self.assertTrue(order.is_guest)
        self.assertEqual(order.guest_email, 'guest@test.com')
        self.assertEqual(order.subtotal, Decimal('20000.00'))
        self.assertEqual(order.shipping, Decimal('2500.00'))
        self.assertEqual(order.tax, Decimal('1500.00'))
        self.assertEqual(order.total, Decimal('24000.00'))
        self.assertEqual(order.billing_address, order.shipping_address)
        item = order.items.get()
        self.assertEqual(item.product_name, self.product.name)
        self.assertEqual(item.variant_id, self.variant.id)

    def test_order_reserves_stock(self):
        """Test checkout holds units on the variant"""
        order = services.create_order(self.guest_data(quantity=3))
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.reserved_quantity, 3)
        self.assertEqual(self.variant.quantity, 5)
        self.assertTrue(order.has_active_reservation)
        self.assertIsNotNone(order.inventory_reservation_expires_at)

    def test_reserved_stock_is_not_sold_twice(self):
        """Test a second order cannot take reserved units"""
        services.create_order(self.guest_data(quantity=4))
        with self.assertRaises(ServiceError) as ctx:
            services.create_order(self.guest_data(quantity=2))
        self.assertIn('Only 1 units available', ctx.exception.message)

    def test_out_of_stock(self):
        """Test out-of-stock variants cannot be ordered"""
        self.variant.in_stock = False
        self.variant.save()
        with self.assertRaises(ServiceError) as ctx:
            services.create_order(self.guest_data())
        self.assertIn('out of stock', ctx.exception.message)

    def test_empty_cart_after_filtering(self):
        """Test an order needs at least one valid line"""
        data = self.guest_data()
        data['items'] = [{'product_id': self.product.id, 'variant_id': 999999, 'quantity': 1}]
        with self.assertRaises(ServiceError):
            services.create_order(data)
        self.assertEqual(Order.objects.count(), 0)

    def test_separate_billing_address(self):
        """Test guests can bill to a different address"""
        billing = TestDataFactory.address(email='billing@test.com', city='Abuja')
        order = services.create_order(self.guest_data(same_as_shipping=False, billing_address=billing))
        self.assertEqual(order.billing_address['city'], 'Abuja')

    def test_authenticated_order_uses_profile_address(self):
        """Test signed-in customers ship to their saved address"""
        user = TestDataFactory.create_user()
        data = {'items': [TestDataFactory.cart_item(self.variant)], 'shipping_location': 'Lagos'}
        order = services.create_order(data, user=user)
        self.assertFalse(order.is_guest)
        self.assertEqual(order.user, user)
        self.assertEqual(order.shipping_address['address'], '12 Marina Road')

    def test_incomplete_profile_is_rejected(self):
        """Test customers without an address cannot order"""
        user = TestDataFactory.create_user(with_address=False)
        data = {'items': [TestDataFactory.cart_item(self.variant)], 'shipping_location': 'Lagos'}
        with self.assertRaises(ServiceError) as ctx:
            services.create_order(data, user=user)
        self.assertEqual(ctx.exception.message, services.INCOMPLETE_PROFILE_MESSAGE)

    def test_guest_account_creation(self):
        """Test a guest can create an account while ordering"""
        order = services.create_order(self.guest_data(create_account=True, password='Secret123'))
        self.assertFalse(order.is_guest)
        self.assertEqual(order.user.email, 'guest@test.com')
        self.assertTrue(order.user.check_password('Secret123'))

    def test_guest_account_creation_conflict(self):
        """Test account creation fails for an existing email"""
        TestDataFactory.create_user(email='guest@test.com')
        with self.assertRaises(ConflictError):
            services.create_order(self.guest_data(create_account=True, password='Secret123'))
        self.assertEqual(Order.objects.count(), 0)

    def test_settings_failure_falls_back_to_defaults(self):
        """Test checkout still works when shipping settings cannot be read"""
        with mock.patch.object(ShippingSettings.objects, 'order_by',
                               side_effect=DatabaseError('settings table unavailable')):
            order = services.create_order(self.guest_data())
        self.assertEqual(order.shipping, Decimal('0.00'))
        self.assertEqual(order.tax, Decimal('750.00'))
        self.assertEqual(order.total, Decimal('10750.00'))

    def test_reservation_clears_product_cache(self):
        """Test reserving stock invalidates cached product pages"""
        with mock.patch('backend.orders.services.invalidate_products_cache') as mock_invalidate:
            with self.captureOnCommitCallbacks(execute=True):
                services.create_order(self.guest_data())
        mock_invalidate.assert_called_once_with()


class ReservationTests(TestCase):
    """Test releasing and converting stock holds"""

    def setUp(self):
        TestDataFactory.create_shipping_settings()
        self.variant = TestDataFactory.create_product(quantity=5).variants.first()
        self.order = services.create_order({
            'items': [TestDataFactory.cart_item(self.variant, 2)],
            'shipping_location': 'Lagos',
            'shipping_address': TestDataFactory.address(),
        })

    def test_expired_reservations_are_released(self):
        """Test holds past expiry go back to stock"""
        Order.objects.filter(pk=self.order.pk).update(
            inventory_reservation_expires_at=timezone.now() - timedelta(minutes=1)
        )
        self.assertEqual(services.release_expired_reservations(), 1)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.reserved_quantity, 0)
        self.order.refresh_from_db()
        self.assertIsNotNone(self.order.inventory_reservation_released_at)

    def test_active_reservations_are_kept(self):
        """Test unexpired holds stay in place"""
        self.assertEqual(services.release_expired_reservations(), 0)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.reserved_quantity, 2)

    def test_release_command(self):
        """Test the management command"""
        Order.objects.filter(pk=self.order.pk).update(
            inventory_reservation_expires_at=timezone.now() - timedelta(minutes=1)
        )
        out = StringIO()
        call_command('release_reservations', stdout=out)
        self.assertIn('Released reservations for 1 order(s)', out.getvalue())

    def test_confirm_paid_deducts_once(self):
        """Test finalize is idempotent"""
        Order.objects.filter(pk=self.order.pk).update(monnify_transaction_reference='MNFY|1')
        order, newly_paid = services.confirm_paid_and_deduct_inventory('MNFY|1')
        self.assertTrue(newly_paid)
        self.assertEqual(order.payment_status, PaymentStatus.PAID)
        self.assertEqual(order.order_status, OrderStatus.PROCESSING)
        self.assertIsNotNone(order.inventory_deducted_at)

        order, newly_paid = services.confirm_paid_and_deduct_inventory('MNFY|1')
        self.assertFalse(newly_paid)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.quantity, 3)
        self.assertEqual(self.variant.reserved_quantity, 0)

    def test_confirm_paid_unknown_reference(self):
        """Test unknown references return no order"""
        self.assertEqual(services.confirm_paid_and_deduct_inventory('missing'), (None, False))

    def test_deduction_failure_is_recorded(self):
        """Test a shortfall is recorded and no stock moves"""
        Order.objects.filter(pk=self.order.pk).update(monnify_transaction_reference='MNFY|2')
        self.variant.quantity = 1
        self.variant.reserved_quantity = 0
        self.variant.save()
        order, newly_paid = services.confirm_paid_and_deduct_inventory('MNFY|2')
        self.assertTrue(newly_paid)
        self.assertIsNone(order.inventory_deducted_at)
        self.assertIsNotNone(order.inventory_deduction_failed_at)
        self.assertIn('Insufficient stock', order.inventory_deduction_error)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.quantity, 1)

    def test_sold_out_variant_is_marked_out_of_stock(self):
        """Test deducting the last units clears in_stock"""
        self.variant.quantity = 2
        self.variant.save()
        Order.objects.filter(pk=self.order.pk).update(monnify_transaction_reference='MNFY|3')
        services.confirm_paid_and_deduct_inventory('MNFY|3')
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.quantity, 0)
        self.assertFalse(self.variant.in_stock)

    def test_failed_payment_releases_reservation(self):
        """Test a failed payment hands stock back"""
        order = services.update_payment_status(self.order, PaymentStatus.FAILED)
        self.assertEqual(order.order_status, OrderStatus.FAILED)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.reserved_quantity, 0)

    def test_paid_order_ignores_later_failure(self):
        """Test a paid order is not downgraded"""
        Order.objects.filter(pk=self.order.pk).update(monnify_transaction_reference='MNFY|4')
        services.confirm_paid_and_deduct_inventory('MNFY|4')
        order = services.update_payment_status(self.order, PaymentStatus.FAILED)
        self.assertEqual(order.payment_status, PaymentStatus.PAID)

    def test_cancelling_order_releases_reservation(self):
        """Test cancelling an unpaid order hands stock back"""
        order = services.update_order_status(self.order, OrderStatus.CANCELLED, reason='Changed mind')
        self.assertIsNotNone(order.inventory_reservation_released_at)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.reserved_quantity, 0)

    def test_failed_payment_keeps_cancelled_status(self):
        """Test a late payment failure does not reopen a cancelled order"""
        services.update_order_status(self.order, OrderStatus.CANCELLED)
        order = services.update_payment_status(self.order, PaymentStatus.FAILED)
        self.assertEqual(order.payment_status, PaymentStatus.FAILED)
        self.assertEqual(order.order_status, OrderStatus.CANCELLED)

    def test_failed_payment_keeps_delivered_status(self):
        """Test a payment failure never overwrites a delivered order"""
        Order.objects.filter(pk=self.order.pk).update(order_status=OrderStatus.DELIVERED)
        order = services.update_payment_status(self.order, PaymentStatus.FAILED)
        self.assertEqual(order.order_status, OrderStatus.DELIVERED)


class OrderStatusTests(TestCase):
    """Test admin status transitions"""

    def setUp(self):
        self.order = TestDataFactory.create_order()

    def test_shipped_sets_timestamp(self):
        """Test shipping records shipped_at"""
        order = services.update_order_status(self.order, OrderStatus.SHIPPED)
        self.assertIsNotNone(order.shipped_at)

    def test_delivered_is_terminal(self):
        """Test delivered orders cannot change status"""
        services.update_order_status(self.order, OrderStatus.DELIVERED)
        with self.assertRaises(ServiceError):
            services.update_order_status(self.order, OrderStatus.PROCESSING)

    def test_same_status_is_a_no_op(self):
        """Test re-applying a terminal status is allowed"""
        services.update_order_status(self.order, OrderStatus.CANCELLED, reason='Customer request')
        order = services.update_order_status(self.order, OrderStatus.CANCELLED)
        self.assertEqual(order.cancellation_reason, 'Customer request')

    def test_unknown_status(self):
        """Test invalid statuses are rejected"""
        with self.assertRaises(ServiceError):
            services.update_order_status(self.order, 'lost')


class TrackOrderTests(TestCase):
    """Test public order tracking"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_track_regular_order(self):
        """Test tracking by order number"""
        order = TestDataFactory.create_order()
        response = self.client.get(f'/api/v1/orders/track/?order_number={order.order_number.lower()}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['order_type'], 'regular')
        self.assertNotIn('shipping_address', response.data['order'])

    def test_track_measurement_order(self):
        """Test tracking falls through to measurement orders"""
        order = TestDataFactory.create_measurement_order()
        response = self.client.get(f'/api/v1/orders/track/?order_number={order.order_number}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['order_type'], 'measurement')

    def test_track_unknown(self):
        """Test unknown numbers return 404"""
        response = self.client.get('/api/v1/orders/track/?order_number=ORD-20240101-XXXXXX')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_track_requires_number(self):
        """Test the order number is required"""
        response = self.client.get('/api/v1/orders/track/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_track_service_raises_not_found(self):
        """Test the service error type"""
        with self.assertRaises(NotFoundError):
            services.track_order('MSO-20240101-AAAAAA')


class OrderAPITests(TestCase):
    """Test customer and admin order endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user()
        self.admin = TestDataFactory.create_admin()
        self.order = TestDataFactory.create_order(user=self.user)

    def test_my_orders(self):
        """Test customers see only their orders"""
        TestDataFactory.create_order()
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/orders/my/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 1)
        self.assertEqual(response.data['results'][0]['order_number'], self.order.order_number)

    def test_order_detail_owner_only(self):
        """Test other customers cannot read an order"""
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get(f'/api/v1/orders/{self.order.order_number}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        self.client.authenticate_user(self.user)
        response = self.client.get(f'/api/v1/orders/{self.order.order_number}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['items']), 1)

    def test_admin_list_filters(self):
        """Test admin search and filters"""
        TestDataFactory.create_order(payment_status=PaymentStatus.PAID)
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/admin/orders/?payment_status=paid')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 1)

        response = self.client.get('/api/v1/admin/orders/?is_guest=false')
        self.assertEqual(response.data['pagination']['total'], 1)

        response = self.client.get(f'/api/v1/admin/orders/?search={self.user.email}')
        self.assertEqual(response.data['pagination']['total'], 1)

    def test_admin_status_update_writes_audit_log(self):
        """Test status updates are audited"""
        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/admin/orders/{self.order.id}/status/', {
            'order_status': 'shipped',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['order_status'], 'shipped')
        log = AuditLog.objects.get(action='order_status_update')
        self.assertEqual(log.object_reference, self.order.order_number)
        self.assertEqual(log.changes['order_status'], {'old': 'order_placed', 'new': 'shipped'})

    def test_customer_cannot_update_status(self):
        """Test status updates are admin-only"""
        self.client.authenticate_user(self.user)
        response = self.client.patch(f'/api/v1/admin/orders/{self.order.id}/status/', {
            'order_status': 'shipped',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_cancel_releases_reserved_stock(self):
        """Test cancelling from the admin endpoint frees reserved units"""
        TestDataFactory.create_shipping_settings()
        variant = TestDataFactory.create_product(quantity=5).variants.first()
        order = services.create_order({
            'items': [TestDataFactory.cart_item(variant, 3)],
            'shipping_location': 'Lagos',
            'shipping_address': TestDataFactory.address(),
        })
        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/admin/orders/{order.id}/status/', {
            'order_status': 'cancelled',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['order_status'], 'cancelled')
        variant.refresh_from_db()
        self.assertEqual(variant.reserved_quantity, 0)

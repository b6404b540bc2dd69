"""
Test suite for the Monnify integration: gateway client, checkout,
payment verification and webhook processing
"""
import hashlib
import hmac
import json
from decimal import Decimal
from unittest import mock

from django.conf import settings
from django.core import mail
from django.core.cache import cache
from django.test import TestCase, override_settings
from rest_framework import status

from backend.core.exceptions import PaymentGatewayError, ServiceError
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.measurements.models import MeasurementOrderStatus
from backend.orders.models import Order, OrderStatus, PaymentStatus
from backend.payments import services
from backend.payments.monnify import MonnifyClient, format_phone, parse_webhook_payload

WEBHOOK_SECRET = 'test-secret-key'


def gateway_response(body=None, ok=True, status_code=200, successful=True, message=None):
    response = mock.Mock()
    response.ok = ok
    response.status_code = status_code
    response.json.return_value = {
        'requestSuccessful': successful,
        'responseMessage': message,
        'responseBody': body,
    }
    return response


def checkout_result(transaction_reference='MNFY|20261016|000001', payment_reference='ORD-REF'):
    return {
        'checkout_url': 'https://sandbox.sdk.monnify.com/checkout/MNFY|20261016|000001',
        'transaction_reference': transaction_reference,
        'payment_reference': payment_reference,
    }


def sign(body):
    return hmac.new(WEBHOOK_SECRET.encode(), body, hashlib.sha512).hexdigest()


class MonnifyClientTests(TestCase):
    """Test the gateway client"""

    def setUp(self):
        self.client_obj = MonnifyClient(base_url='https://sandbox.monnify.com', api_key='key',
                                        secret_key='secret', contract_code='1234')

    def test_format_phone(self):
        """Test Nigerian phone normalisation"""
        self.assertEqual(format_phone('+2348012345678'), '2348012345678')
        self.assertEqual(format_phone('08012345678'), '2348012345678')
        self.assertEqual(format_phone('8012345678'), '2348012345678')
        self.assertEqual(format_phone('+234 0801 234 5678'), '2348012345678')

    def test_missing_configuration(self):
        """Test incomplete credentials are rejected before any request"""
        client = MonnifyClient(api_key='', secret_key='', contract_code='')
        with mock.patch('backend.payments.monnify.requests.post') as post:
            with self.assertRaises(PaymentGatewayError):
                client.get_auth_token()
            post.assert_not_called()

    def test_auth_failure(self):
        """Test unsuccessful responses raise with the gateway message"""
        with mock.patch('backend.payments.monnify.requests.post',
                        return_value=gateway_response(ok=False, status_code=401, successful=False,
                                                      message='Invalid credentials')):
            with self.assertRaises(PaymentGatewayError) as ctx:
                self.client_obj.get_auth_token()
        self.assertEqual(ctx.exception.message, 'Invalid credentials')

    def test_init_transaction(self):
        """Test checkout creation payload and result"""
        responses = [
            gateway_response({'accessToken': 'token-1'}),
            gateway_response({
                'checkoutUrl': 'https://sandbox.sdk.monnify.com/checkout/abc',
                'transactionReference': 'MNFY|1',
                'paymentReference': 'ORD-1',
            }),
        ]
        with mock.patch('backend.payments.monnify.requests.post', side_effect=responses) as post:
            result = self.client_obj.init_transaction(
                amount=Decimal('10752.505'),
                customer_name='Chidi Okafor',
                customer_email='guest@test.com',
                customer_phone='+2348098765432',
                payment_reference='ORD-1',
                payment_description='Payment for order ORD-1',
                redirect_url='http://localhost:3000/payment/verify',
                metadata={'orderType': 'regular', 'orderId': '1'},
            )
        self.assertEqual(result['transaction_reference'], 'MNFY|1')
        payload = post.call_args_list[1].kwargs['json']
        self.assertEqual(payload['amount'], 10752.51)
        self.assertEqual(payload['customerPhoneNumber'], '2348098765432')
        self.assertEqual(payload['currencyCode'], 'NGN')
        self.assertEqual(payload['contractCode'], '1234')
        self.assertEqual(payload['metaData']['orderType'], 'regular')
        self.assertEqual(post.call_args_list[1].kwargs['headers']['Authorization'], 'Bearer token-1')

    def test_init_transaction_requires_customer(self):
        """Test customer details are required"""
        with self.assertRaises(PaymentGatewayError):
            self.client_obj.init_transaction(Decimal('100'), '', 'a@test.com', '080', 'R', 'D', 'http://x')

    def test_verify_transaction(self):
        """Test transaction lookup URL-encodes the reference"""
        with mock.patch('backend.payments.monnify.requests.post',
                        return_value=gateway_response({'accessToken': 'token-1'})), \
                mock.patch('backend.payments.monnify.requests.get',
                           return_value=gateway_response({'paymentStatus': 'PAID'})) as get:
            body = self.client_obj.verify_transaction('MNFY|1')
        self.assertEqual(body['paymentStatus'], 'PAID')
        self.assertTrue(get.call_args.args[0].endswith('/api/v2/transactions/MNFY%7C1'))

    def test_webhook_signature(self):
        """Test HMAC-SHA512 signature verification"""
        body = b'{"eventType": "SUCCESSFUL_TRANSACTION"}'
        expected = hmac.new(b'secret', body, hashlib.sha512).hexdigest()
        self.assertTrue(self.client_obj.verify_webhook_signature(body, expected))
        self.assertFalse(self.client_obj.verify_webhook_signature(body, 'bad'))
        self.assertFalse(self.client_obj.verify_webhook_signature(body, None))

    def test_parse_webhook_payload(self):
        """Test malformed webhook bodies are rejected"""
        self.assertIsNone(parse_webhook_payload({'eventType': 'SUCCESSFUL_TRANSACTION'}))
        self.assertIsNone(parse_webhook_payload([]))
        event = parse_webhook_payload({
            'eventType': 'SUCCESSFUL_TRANSACTION',
            'eventData': {'transactionReference': 'MNFY|1', 'paymentStatus': 'paid'},
        })
        self.assertEqual(event['payment_status'], 'PAID')
        self.assertEqual(event['metadata'], {})


class PaymentServiceTests(TestCase):
    """Test checkout initiation and reference lookup"""

    def setUp(self):
        TestDataFactory.create_shipping_settings()
        self.gateway = mock.Mock()
        self.gateway.init_transaction.return_value = checkout_result()

    def test_map_monnify_status(self):
        """Test gateway status mapping"""
        self.assertEqual(services.map_monnify_status('PAID'), PaymentStatus.PAID)
        self.assertEqual(services.map_monnify_status('USER_CANCELLED'), PaymentStatus.CANCELLED)
        self.assertEqual(services.map_monnify_status('OVERPAID'), PaymentStatus.PENDING)
        self.assertEqual(services.map_monnify_status(None), PaymentStatus.PENDING)

    def test_initiate_order_checkout(self):
        """Test references are stored on the order"""
        order = TestDataFactory.create_order()
        result = services.initiate_order_checkout(order, client=self.gateway)
        self.assertEqual(result['order_number'], order.order_number)
        order.refresh_from_db()
        self.assertEqual(order.monnify_transaction_reference, 'MNFY|20261016|000001')
        kwargs = self.gateway.init_transaction.call_args.kwargs
        self.assertEqual(kwargs['payment_reference'], order.order_number)
        self.assertEqual(kwargs['amount'], order.total)
        self.assertEqual(kwargs['redirect_url'], f'{settings.APP_URL}/payment/verify')

    def test_retry_uses_suffixed_reference(self):
        """Test a second attempt gets a fresh payment reference"""
        order = TestDataFactory.create_order()
        services.initiate_order_checkout(order, client=self.gateway)
        order.refresh_from_db()
        services.initiate_order_checkout(order, client=self.gateway)
        reference = self.gateway.init_transaction.call_args.kwargs['payment_reference']
        self.assertTrue(reference.startswith(f'{order.order_number}-'))
        self.assertEqual(len(reference), len(order.order_number) + 5)

    def test_paid_order_cannot_checkout(self):
        """Test paid orders are not sent to the gateway"""
        order = TestDataFactory.create_order(payment_status=PaymentStatus.PAID)
        with self.assertRaises(ServiceError):
            services.initiate_order_checkout(order, client=self.gateway)
        self.gateway.init_transaction.assert_not_called()

    def test_measurement_checkout_requires_price(self):
        """Test unpriced measurement orders cannot be paid"""
        order = TestDataFactory.create_measurement_order()
        with self.assertRaises(ServiceError):
            services.initiate_measurement_checkout(order, client=self.gateway)

    def test_measurement_checkout_charges_amount_due(self):
        """Test measurement checkout uses price plus charges"""
        order = TestDataFactory.create_measurement_order(price=Decimal('20000.00'))
        services.initiate_measurement_checkout(order, client=self.gateway)
        kwargs = self.gateway.init_transaction.call_args.kwargs
        self.assertEqual(kwargs['amount'], order.amount_due)
        self.assertEqual(kwargs['metadata']['orderType'], 'measurement')

    def test_find_order_by_reference(self):
        """Test lookup by transaction reference and order number"""
        order = TestDataFactory.create_order(transaction_reference='MNFY|A')
        measurement_order = TestDataFactory.create_measurement_order(transaction_reference='MNFY|B')
        self.assertEqual(services.find_order_by_reference('MNFY|A'), ('regular', order))
        self.assertEqual(services.find_order_by_reference(measurement_order.order_number),
                         ('measurement', measurement_order))
        self.assertEqual(services.find_order_by_reference('nope'), (None, None))


@mock.patch('backend.payments.services.MonnifyClient')
class CheckoutAPITests(TestCase):
    """Test checkout endpoints"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        TestDataFactory.create_shipping_settings()
        self.variant = TestDataFactory.create_product(price=Decimal('10000.00'), quantity=5).variants.first()

    def test_checkout_creates_order(self, client_cls):
        """Test checkout places the order and returns the payment URL"""
        client_cls.return_value.init_transaction.return_value = checkout_result()
        response = self.client.post('/api/v1/payment/checkout/', {
            'items': [TestDataFactory.cart_item(self.variant, 2)],
            'shipping_location': 'Lagos',
            'shipping_address': TestDataFactory.address(),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('checkout_url', response.data)
        order = Order.objects.get(order_number=response.data['order_number'])
        self.assertEqual(order.monnify_transaction_reference, 'MNFY|20261016|000001')
        self.assertEqual(response.data['order']['order_number'], order.order_number)

    def test_checkout_gateway_failure_keeps_order(self, client_cls):
        """Test a gateway error still reports the order number"""
        client_cls.return_value.init_transaction.side_effect = PaymentGatewayError('Monnify unavailable')
        response = self.client.post('/api/v1/payment/checkout/', {
            'items': [TestDataFactory.cart_item(self.variant)],
            'shipping_location': 'Lagos',
            'shipping_address': TestDataFactory.address(),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(response.data['error'], 'Monnify unavailable')
        self.assertTrue(Order.objects.filter(order_number=response.data['order_number']).exists())

    def test_checkout_existing_guest_email_must_match(self, client_cls):
        """Test guests retry payment with the order email"""
        client_cls.return_value.init_transaction.return_value = checkout_result()
        order = TestDataFactory.create_order()
        response = self.client.post('/api/v1/payment/checkout/existing/', {
            'order_number': order.order_number.lower(), 'email': 'someone@test.com',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        response = self.client.post('/api/v1/payment/checkout/existing/', {
            'order_number': order.order_number, 'email': 'GUEST@test.com',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['order_number'], order.order_number)

    def test_checkout_existing_account_order_owner_only(self, client_cls):
        """Test account orders can only be paid by their owner"""
        client_cls.return_value.init_transaction.return_value = checkout_result()
        owner = TestDataFactory.create_user()
        order = TestDataFactory.create_order(user=owner)
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.post('/api/v1/payment/checkout/existing/',
                                    {'order_number': order.order_number}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        self.client.authenticate_user(owner)
        response = self.client.post('/api/v1/payment/checkout/existing/',
                                    {'order_number': order.order_number}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_measurement_checkout_unpriced(self, client_cls):
        """Test unpriced measurement orders are rejected"""
        order = TestDataFactory.create_measurement_order()
        response = self.client.post('/api/v1/payment/measurement-checkout/', {
            'order_number': order.order_number, 'email': 'guest@test.com',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        client_cls.return_value.init_transaction.assert_not_called()

    @override_settings(REST_FRAMEWORK={**settings.REST_FRAMEWORK, 'DEFAULT_THROTTLE_RATES': {'checkout': '1/minute'}})
    def test_checkout_is_rate_limited(self, client_cls):
        """Test repeated checkouts from one client are throttled"""
        response = self.client.post('/api/v1/payment/checkout/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post('/api/v1/payment/measurement-checkout/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)


@mock.patch('backend.payments.services.MonnifyClient')
class VerifyPaymentAPITests(TestCase):
    """Test payment verification after redirect"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.variant = TestDataFactory.create_product(quantity=5).variants.first()

    def test_reference_required(self, client_cls):
        """Test a reference is required"""
        response = self.client.get('/api/v1/payment/verify/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unknown_reference(self, client_cls):
        """Test unknown references return 404"""
        response = self.client.get('/api/v1/payment/verify/?reference=MNFY|missing')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_not_initiated(self, client_cls):
        """Test orders without a gateway transaction"""
        order = TestDataFactory.create_order(variant=self.variant)
        response = self.client.get(f'/api/v1/payment/verify/?reference={order.order_number}')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_paid_finalizes_order(self, client_cls):
        """Test a paid verification deducts stock and emails the customer"""
        client_cls.return_value.verify_transaction.return_value = {
            'paymentStatus': 'PAID', 'paidOn': '2026-10-16 10:15:00',
        }
        order = TestDataFactory.create_order(variant=self.variant, quantity=2, transaction_reference='MNFY|V1')
        response = self.client.get('/api/v1/payment/verify/?paymentReference=MNFY|V1')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['order_type'], 'regular')
        self.assertEqual(response.data['payment_status'], PaymentStatus.PAID)

        order.refresh_from_db()
        self.assertEqual(order.order_status, OrderStatus.PROCESSING)
        self.assertIsNotNone(order.inventory_deducted_at)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.quantity, 3)
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn(order.order_number, mail.outbox[0].subject)

        self.client.get('/api/v1/payment/verify/?reference=MNFY|V1')
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.quantity, 3)
        self.assertEqual(len(mail.outbox), 1)

    def test_failed_verification(self, client_cls):
        """Test failed payments mark the order failed"""
        client_cls.return_value.verify_transaction.return_value = {'paymentStatus': 'FAILED'}
        order = TestDataFactory.create_order(variant=self.variant, transaction_reference='MNFY|V2')
        response = self.client.get('/api/v1/payment/verify/?reference=MNFY|V2')
        self.assertEqual(response.data['payment_status'], PaymentStatus.FAILED)
        order.refresh_from_db()
        self.assertEqual(order.order_status, OrderStatus.FAILED)

    def test_measurement_order_paid(self, client_cls):
        """Test measurement payments move the order to design review"""
        client_cls.return_value.verify_transaction.return_value = {'paymentStatus': 'PAID'}
        order = TestDataFactory.create_measurement_order(price=Decimal('20000.00'), transaction_reference='MNFY|M1')
        response = self.client.get('/api/v1/payment/verify/?reference=MNFY|M1')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['order_type'], 'measurement')
        self.assertEqual(response.data['order']['status'], MeasurementOrderStatus.DESIGN_REVIEW)
        self.assertEqual(len(mail.outbox), 1)

    def test_verify_hides_details_from_other_callers(self, client_cls):
        """Test only the owner or staff see addresses and gateway references"""
        client_cls.return_value.verify_transaction.return_value = {'paymentStatus': 'FAILED'}
        owner = TestDataFactory.create_user()
        TestDataFactory.create_order(user=owner, variant=self.variant, transaction_reference='MNFY|P1')
        url = '/api/v1/payment/verify/?reference=MNFY|P1'

        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('order_number', response.data['order'])
        self.assertNotIn('shipping_address', response.data['order'])
        self.assertNotIn('monnify_transaction_reference', response.data['order'])

        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get(url)
        self.assertNotIn('shipping_address', response.data['order'])

        self.client.authenticate_user(owner)
        response = self.client.get(url)
        self.assertIn('shipping_address', response.data['order'])

        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.client.get(url)
        self.assertIn('monnify_transaction_reference', response.data['order'])

    def test_verify_hides_measurement_customer_details(self, client_cls):
        """Test anonymous callers get the measurement tracking view"""
        client_cls.return_value.verify_transaction.return_value = {'paymentStatus': 'FAILED'}
        TestDataFactory.create_measurement_order(price=Decimal('20000.00'), transaction_reference='MNFY|M2')
        response = self.client.get('/api/v1/payment/verify/?reference=MNFY|M2')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['order']['status'], MeasurementOrderStatus.CANCELLED)
        self.assertNotIn('customer_email', response.data['order'])
        self.assertNotIn('customer_phone', response.data['order'])


@override_settings(MONNIFY_SECRET_KEY=WEBHOOK_SECRET)
class WebhookAPITests(TestCase):
    """Test Monnify webhook processing"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.variant = TestDataFactory.create_product(quantity=5).variants.first()
        self.order = TestDataFactory.create_order(variant=self.variant, transaction_reference='MNFY|W1')

    def post_event(self, payload, signature=None):
        body = json.dumps(payload).encode()
        return self.client.generic(
            'POST', '/api/v1/payment/webhook/', body,
            content_type='application/json',
            HTTP_MONNIFY_SIGNATURE=signature if signature is not None else sign(body),
        )

    def event(self, event_type='SUCCESSFUL_TRANSACTION', payment_status='PAID', reference='MNFY|W1', **extra):
        event_data = {
            'transactionReference': reference,
            'paymentReference': self.order.order_number,
            'paymentStatus': payment_status,
            'paidOn': '2026-10-16 09:00:00.000',
            'amountPaid': str(self.order.total),
        }
        event_data.update(extra)
        return {'eventType': event_type, 'eventData': event_data}

    def test_invalid_signature(self):
        """Test unsigned deliveries are rejected"""
        response = self.post_event(self.event(), signature='forged')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_malformed_payload(self):
        """Test payloads without event data"""
        response = self.post_event({'eventType': 'SUCCESSFUL_TRANSACTION'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_ignored_event(self):
        """Test unrelated events are acknowledged"""
        response = self.post_event(self.event(event_type='SETTLEMENT', payment_status='PENDING'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Webhook received but event ignored')

    def test_unknown_order(self):
        """Test events for unknown transactions"""
        response = self.post_event(self.event(reference='MNFY|other', paymentReference='ORD-NOPE'))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_paid_event_is_idempotent(self):
        """Test duplicate deliveries deduct stock once"""
        payload = self.event()
        response = self.post_event(payload)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Webhook processed successfully')
        response = self.post_event(payload)
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, PaymentStatus.PAID)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.quantity, 4)
        self.assertEqual(len(mail.outbox), 1)

    def test_match_by_payment_reference(self):
        """Test events are matched by payment reference and the transaction is stored"""
        Order.objects.filter(pk=self.order.pk).update(monnify_payment_reference=self.order.order_number)
        response = self.post_event(self.event(reference='MNFY|NEW'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.order.refresh_from_db()
        self.assertEqual(self.order.monnify_transaction_reference, 'MNFY|NEW')
        self.assertEqual(self.order.payment_status, PaymentStatus.PAID)

    def test_cancelled_event(self):
        """Test cancelled payments are recorded"""
        response = self.post_event(self.event(event_type='FAILED_TRANSACTION', payment_status='USER_CANCELLED'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, PaymentStatus.CANCELLED)

    def measurement_event(self, order, **kwargs):
        return self.event(
            reference=order.monnify_transaction_reference,
            paymentReference=order.order_number,
            metaData={'orderType': 'measurement', 'orderId': str(order.id)},
            amountPaid=str(order.amount_due),
            **kwargs
        )

    def test_measurement_paid_event(self):
        """Test a paid event moves a measurement order to design review"""
        order = TestDataFactory.create_measurement_order(price=Decimal('20000.00'), transaction_reference='MNFY|WM1')
        response = self.post_event(self.measurement_event(order))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        order.refresh_from_db()
        self.assertEqual(order.payment_status, PaymentStatus.PAID)
        self.assertEqual(order.status, MeasurementOrderStatus.DESIGN_REVIEW)
        self.assertIsNotNone(order.paid_at)
        self.assertEqual(len(mail.outbox), 1)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, PaymentStatus.PENDING)

    def test_measurement_failed_event_cancels_order(self):
        """Test a failed event cancels the measurement order"""
        order = TestDataFactory.create_measurement_order(price=Decimal('20000.00'), transaction_reference='MNFY|WM2')
        response = self.post_event(self.measurement_event(
            order, event_type='FAILED_TRANSACTION', payment_status='FAILED'
        ))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        order.refresh_from_db()
        self.assertEqual(order.payment_status, PaymentStatus.FAILED)
        self.assertEqual(order.status, MeasurementOrderStatus.CANCELLED)
        self.assertIsNotNone(order.cancelled_at)
        self.assertEqual(len(mail.outbox), 0)

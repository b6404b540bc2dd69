"""
Test suite for newsletter subscriptions and the contact form
"""
from unittest import mock

from django.conf import settings
from django.core import mail
from django.core.cache import cache
from django.test import TestCase, override_settings
from rest_framework import status

from backend.core.exceptions import ServiceError
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.newsletter import services
from backend.newsletter.models import Subscriber


class SubscriptionServiceTests(TestCase):
    """Test subscribe and unsubscribe rules"""

    def test_subscribe_normalises_email(self):
        """Test new subscriptions"""
        subscriber, created = services.subscribe(' Reader@Test.com ', consent=True, source='footer')
        self.assertTrue(created)
        self.assertEqual(subscriber.email, 'reader@test.com')
        self.assertEqual(subscriber.source, 'footer')
        self.assertIsNotNone(subscriber.consent_date)

    def test_consent_required(self):
        """Test consent is mandatory"""
        with self.assertRaises(ServiceError):
            services.subscribe('reader@test.com', consent=False)

    def test_existing_active_subscription(self):
        """Test subscribing twice is a no-op"""
        first, _ = services.subscribe('reader@test.com', consent=True)
        second, created = services.subscribe('reader@test.com', consent=True)
        self.assertFalse(created)
        self.assertEqual(first.pk, second.pk)

    def test_reactivation(self):
        """Test unsubscribed readers can subscribe again"""
        services.subscribe('reader@test.com', consent=True)
        self.assertTrue(services.unsubscribe('READER@test.com'))
        self.assertFalse(services.unsubscribe('reader@test.com'))

        subscriber, created = services.subscribe('reader@test.com', consent=True)
        self.assertFalse(created)
        self.assertTrue(subscriber.is_active)
        self.assertIsNone(subscriber.unsubscribed_at)

    def test_active_emails(self):
        """Test only active subscribers are exported"""
        services.subscribe('b@test.com', consent=True)
        services.subscribe('a@test.com', consent=True)
        services.subscribe('c@test.com', consent=True)
        services.unsubscribe('c@test.com')
        self.assertEqual(services.active_emails(), ['a@test.com', 'b@test.com'])


class NewsletterAPITests(TestCase):
    """Test newsletter endpoints"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()

    def test_subscribe(self):
        """Test subscribing returns 201 then 200"""
        payload = {'email': 'reader@test.com', 'consent': True}
        response = self.client.post('/api/v1/newsletter/subscribe/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['source'], 'website')
        response = self.client.post('/api/v1/newsletter/subscribe/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_subscribe_links_signed_in_user(self):
        """Test subscriptions remember the account"""
        user = TestDataFactory.create_user()
        self.client.authenticate_user(user)
        self.client.post('/api/v1/newsletter/subscribe/', {'email': user.email, 'consent': True}, format='json')
        self.assertEqual(Subscriber.objects.get(email=user.email).user, user)

    def test_subscribe_without_consent(self):
        """Test missing consent is rejected"""
        response = self.client.post('/api/v1/newsletter/subscribe/',
                                    {'email': 'reader@test.com', 'consent': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Subscriber.objects.exists())

    def test_unsubscribe(self):
        """Test unsubscribing"""
        services.subscribe('reader@test.com', consent=True)
        response = self.client.post('/api/v1/newsletter/unsubscribe/', {'email': 'reader@test.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['unsubscribed'])

    def test_admin_subscriber_emails(self):
        """Test the admin export"""
        services.subscribe('reader@test.com', consent=True)
        response = self.client.get('/api/v1/admin/newsletter/subscribers/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.client.get('/api/v1/admin/newsletter/subscribers/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'emails': ['reader@test.com'], 'count': 1})


THROTTLED_CONTACT = {**settings.REST_FRAMEWORK, 'DEFAULT_THROTTLE_RATES': {'contact': '2/minute'}}


@override_settings(CONTACT_EMAIL='support@test.com')
class ContactAPITests(TestCase):
    """Test the contact form"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()

    def payload(self, **overrides):
        data = {
            'full_name': 'Ada Obi',
            'email': 'ada@test.com',
            'subject': 'Sizing question',
            'message': 'Do your agbada sets run large or true to size?',
            'order_number': 'ORD-20261016-ABC123',
        }
        data.update(overrides)
        return data

    def test_contact_emails_business(self):
        """Test messages are forwarded with the customer as reply-to"""
        response = self.client.post('/api/v1/contact/', self.payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        self.assertEqual(message.to, ['support@test.com'])
        self.assertEqual(message.reply_to, ['ada@test.com'])
        self.assertIn('Sizing question', message.subject)
        self.assertIn('ORD-20261016-ABC123', message.body)

    def test_phone_preference_needs_phone(self):
        """Test the preferred contact method must be supplied"""
        response = self.client.post('/api/v1/contact/', self.payload(email='', preferred_contact='phone'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('phone', response.data)

        response = self.client.post('/api/v1/contact/', self.payload(
            email='', phone='+2348012345678', preferred_contact='phone'
        ), format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(mail.outbox[0].reply_to, [])

    def test_short_message_rejected(self):
        """Test messages need enough detail"""
        response = self.client.post('/api/v1/contact/', self.payload(message='Hi there'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('message', response.data)
        self.assertEqual(len(mail.outbox), 0)

    @mock.patch('backend.newsletter.services.EmailMessage.send', side_effect=OSError('SMTP down'))
    def test_mail_failure(self, mock_send):
        """Test delivery failures surface as a gateway error"""
        response = self.client.post('/api/v1/contact/', self.payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertIn('error', response.data)

    @override_settings(REST_FRAMEWORK=THROTTLED_CONTACT)
    def test_contact_is_rate_limited(self):
        """Test one client cannot flood the inbox"""
        for _ in range(2):
            response = self.client.post('/api/v1/contact/', self.payload(), format='json')
            self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.post('/api/v1/contact/', self.payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertEqual(len(mail.outbox), 2)

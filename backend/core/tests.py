"""
Test suite for accounts, authentication, audit logs and shared helpers
"""
from unittest import mock

from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth.tokens import default_token_generator
from django.core import mail
from django.core.cache import cache
from django.test import TestCase, RequestFactory, override_settings
from rest_framework import status
from rest_framework.request import Request

from backend.core import services
from backend.core.exceptions import ServiceError
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.core.tokens import email_verification_token, encode_uid
from backend.core.utils import (
    REFERENCE_ALPHABET, create_audit_log, generate_reference_number, paginate,
)
from backend.orders.models import Order


class AuthTests(TestCase):
    """Test registration, login and profile endpoints"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()

    def test_register_creates_user_with_email_as_username(self):
        """Test customer registration"""
        response = self.client.post('/api/v1/auth/register/', {
            'email': 'New.Customer@Test.com',
            'password': 'Secret123',
            'password_confirm': 'Secret123',
            'first_name': 'New',
            'last_name': 'Customer',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['user']['email'], 'new.customer@test.com')
        self.assertEqual(response.data['user']['username'], 'new.customer@test.com')
        self.assertIn('access', response.data)

    def test_register_rejects_weak_password(self):
        """Test password rules are enforced"""
        response = self.client.post('/api/v1/auth/register/', {
            'email': 'weak@test.com',
            'password': 'password',
            'password_confirm': 'password',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data)

    def test_register_rejects_duplicate_email(self):
        """Test duplicate emails are rejected case-insensitively"""
        TestDataFactory.create_user(email='taken@test.com')
        response = self.client.post('/api/v1/auth/register/', {
            'email': 'TAKEN@test.com',
            'password': 'Secret123',
            'password_confirm': 'Secret123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_login_returns_tokens_and_user(self):
        """Test login with email and password"""
        TestDataFactory.create_user(email='login@test.com', password='Secret123')
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'Login@Test.com',
            'password': 'Secret123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['email'], 'login@test.com')

    def test_login_wrong_password(self):
        """Test login failure"""
        TestDataFactory.create_user(email='login@test.com', password='Secret123')
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'login@test.com',
            'password': 'Wrong123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_requires_authentication(self):
        """Test profile endpoint is protected"""
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_reports_address_completeness(self):
        """Test profile includes address completeness"""
        user = TestDataFactory.create_user(with_address=False)
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['has_complete_address'])

    def test_me_patch_updates_address(self):
        """Test updating the saved address"""
        user = TestDataFactory.create_user(with_address=False)
        self.client.authenticate_user(user)
        response = self.client.patch('/api/v1/auth/me/', {
            'phone': '+2348011112222',
            'street_address': '1 Broad Street',
            'city': 'Lagos',
            'state': 'Lagos',
            'zip_code': '100001',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['has_complete_address'])

    def test_me_patch_rejects_bad_phone(self):
        """Test phone numbers must be international"""
        user = TestDataFactory.create_user()
        self.client.authenticate_user(user)
        response = self.client.patch('/api/v1/auth/me/', {'phone': '08012345678'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


THROTTLED_AUTH = {**settings.REST_FRAMEWORK, 'DEFAULT_THROTTLE_RATES': {'auth': '2/minute'}}


class AccountLinkTests(TestCase):
    """Test password reset and email verification links"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user(email='reset@test.com', password='Secret123')

    def test_register_sends_verification_email(self):
        """Test new accounts get a verification link"""
        response = self.client.post('/api/v1/auth/register/', {
            'email': 'verify.me@test.com',
            'password': 'Secret123',
            'password_confirm': 'Secret123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertFalse(response.data['user']['email_verified'])
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['verify.me@test.com'])
        self.assertIn(f'{settings.APP_URL}/verify-email/', mail.outbox[0].body)

    def test_forgot_password_sends_reset_link(self):
        """Test registered emails receive a reset link"""
        response = self.client.post('/api/v1/auth/forgot-password/', {'email': 'RESET@test.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn(f'{settings.APP_URL}/reset-password/{encode_uid(self.user)}/', mail.outbox[0].body)

    def test_forgot_password_unknown_email(self):
        """Test unknown emails get the same answer and no email"""
        known = self.client.post('/api/v1/auth/forgot-password/', {'email': 'reset@test.com'}, format='json')
        unknown = self.client.post('/api/v1/auth/forgot-password/', {'email': 'nobody@test.com'}, format='json')
        self.assertEqual(unknown.status_code, status.HTTP_200_OK)
        self.assertEqual(unknown.data, known.data)
        self.assertEqual(len(mail.outbox), 1)

    def test_reset_password(self):
        """Test a valid link sets a new password once"""
        payload = {
            'uid': encode_uid(self.user),
            'token': default_token_generator.make_token(self.user),
            'password': 'Newsecret9',
            'password_confirm': 'Newsecret9',
        }
        response = self.client.post('/api/v1/auth/reset-password/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('Newsecret9'))

        response = self.client.post('/api/v1/auth/reset-password/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_reset_password_rejects_bad_token(self):
        """Test forged tokens and garbage uids are rejected"""
        response = self.client.post('/api/v1/auth/reset-password/', {
            'uid': encode_uid(self.user), 'token': 'abc-123',
            'password': 'Newsecret9', 'password_confirm': 'Newsecret9',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        with self.assertRaises(ServiceError):
            services.reset_password('not-a-uid', 'abc-123', 'Newsecret9')
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('Secret123'))

    def test_reset_password_mismatch(self):
        """Test the confirmation must match"""
        response = self.client.post('/api/v1/auth/reset-password/', {
            'uid': encode_uid(self.user),
            'token': default_token_generator.make_token(self.user),
            'password': 'Newsecret9', 'password_confirm': 'Othersecret9',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data)

    def test_verify_email(self):
        """Test the verification link marks the email verified"""
        payload = {'uid': encode_uid(self.user), 'token': email_verification_token.make_token(self.user)}
        response = self.client.post('/api/v1/auth/verify-email/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['user']['email_verified'])
        self.user.refresh_from_db()
        self.assertTrue(self.user.email_verified)
        self.assertIsNotNone(self.user.email_verified_at)

        response = self.client.post('/api/v1/auth/verify-email/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Email is already verified.')

    def test_verify_email_rejects_reset_token(self):
        """Test password reset tokens do not verify emails"""
        response = self.client.post('/api/v1/auth/verify-email/', {
            'uid': encode_uid(self.user), 'token': default_token_generator.make_token(self.user),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.user.refresh_from_db()
        self.assertFalse(self.user.email_verified)

    def test_resend_verification(self):
        """Test signed-in users can ask for a new link until verified"""
        self.client.authenticate_user(self.user)
        response = self.client.post('/api/v1/auth/resend-verification/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(mail.outbox), 1)

        self.user.email_verified = True
        self.user.save()
        response = self.client.post('/api/v1/auth/resend-verification/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @override_settings(REST_FRAMEWORK=THROTTLED_AUTH)
    def test_password_reset_is_rate_limited(self):
        """Test repeated reset requests from one client are throttled"""
        for _ in range(2):
            response = self.client.post('/api/v1/auth/forgot-password/', {'email': 'reset@test.com'}, format='json')
            self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.post('/api/v1/auth/forgot-password/', {'email': 'reset@test.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertEqual(len(mail.outbox), 2)


class AdminUserTests(TestCase):
    """Test admin-only user and audit log endpoints"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()

    def test_customer_cannot_list_users(self):
        """Test non-staff users are forbidden"""
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/admin/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_user_list_search(self):
        """Test user search by email"""
        TestDataFactory.create_user(email='findme@test.com')
        TestDataFactory.create_user(email='other@test.com')
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/admin/users/?search=findme')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 1)
        self.assertEqual(response.data['results'][0]['email'], 'findme@test.com')

    def test_audit_log_list_and_detail(self):
        """Test audit log endpoints"""
        log = create_audit_log(action='update', model_name='Product', object_id='1', user=self.admin)
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/admin/audit-logs/?action=update')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 1)

        response = self.client.get(f'/api/v1/admin/audit-logs/{log.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['model_name'], 'Product')


class UtilsTests(TestCase):
    """Test shared helpers"""

    def test_audit_log_skips_missing_fields(self):
        """Test incomplete audit entries are skipped"""
        self.assertIsNone(create_audit_log(action='update', model_name='Product'))
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_audit_log_failure_does_not_raise(self):
        """Test audit log errors are swallowed and logged"""
        with mock.patch.object(AuditLog.objects, 'create', side_effect=RuntimeError('db down')):
            self.assertIsNone(create_audit_log(action='update', model_name='Product', object_id='1'))

    def test_reference_number_format(self):
        """Test ORD-YYYYMMDD-XXXXXX numbers"""
        number = generate_reference_number('ORD', Order)
        prefix, date_part, suffix = number.split('-')
        self.assertEqual(prefix, 'ORD')
        self.assertEqual(len(date_part), 8)
        self.assertEqual(len(suffix), 6)
        self.assertTrue(all(char in REFERENCE_ALPHABET for char in suffix))

    def test_reference_number_gives_up_after_collisions(self):
        """Test generation stops after repeated collisions"""
        with mock.patch('backend.core.utils.secrets.choice', return_value='A'):
            TestDataFactory.create_order()
            with self.assertRaises(ServiceError):
                generate_reference_number('ORD', Order)

    def test_paginate_meta(self):
        """Test pagination metadata"""
        for _ in range(3):
            TestDataFactory.create_user()
        request = Request(RequestFactory().get('/?page=2&limit=2'))
        items, meta = paginate(get_user_model().objects.order_by('id'), request)
        self.assertEqual(len(items), 1)
        self.assertEqual(meta['total'], 3)
        self.assertEqual(meta['total_pages'], 2)
        self.assertFalse(meta['has_next_page'])
        self.assertTrue(meta['has_prev_page'])

    def test_paginate_ignores_bad_params(self):
        """Test invalid page and limit values fall back to defaults and the cap"""
        TestDataFactory.create_user()
        request = Request(RequestFactory().get('/?page=abc&limit=1000'))
        _, meta = paginate(get_user_model().objects.order_by('id'), request, max_limit=50)
        self.assertEqual(meta['page'], 1)
        self.assertEqual(meta['limit'], 50)

        request = Request(RequestFactory().get('/?page=-3&limit=0'))
        _, meta = paginate(get_user_model().objects.order_by('id'), request, default_limit=7)
        self.assertEqual(meta['page'], 1)
        self.assertEqual(meta['limit'], 7)

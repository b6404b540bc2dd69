"""
Test suite for customer wishlists
"""
from django.test import TestCase
from rest_framework import status

from backend.core.exceptions import ServiceError
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.wishlist import services
from backend.wishlist.models import WishlistItem


class WishlistServiceTests(TestCase):
    """Test wishlist rules"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product()

    def test_toggle_adds_then_removes(self):
        """Test toggling flips membership"""
        self.assertTrue(services.toggle_item(self.user, self.product.id))
        self.assertTrue(WishlistItem.objects.filter(user=self.user, product=self.product).exists())
        self.assertFalse(services.toggle_item(self.user, self.product.id))
        self.assertFalse(WishlistItem.objects.filter(user=self.user).exists())

    def test_add_is_idempotent(self):
        """Test adding the same product twice keeps one row"""
        services.add_item(self.user, self.product)
        services.add_item(self.user, self.product)
        self.assertEqual(WishlistItem.objects.filter(user=self.user).count(), 1)

    def test_limit(self):
        """Test the wishlist size limit"""
        other = TestDataFactory.create_product()
        services.add_item(self.user, self.product)
        original = services.MAX_WISHLIST_ITEMS
        services.MAX_WISHLIST_ITEMS = 1
        try:
            with self.assertRaises(ServiceError):
                services.add_item(self.user, other)
        finally:
            services.MAX_WISHLIST_ITEMS = original

    def test_clear_counts_removed_items(self):
        """Test clearing returns the number removed"""
        services.add_item(self.user, self.product)
        services.add_item(self.user, TestDataFactory.create_product())
        self.assertEqual(services.clear(self.user), 2)


class WishlistAPITests(TestCase):
    """Test wishlist endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product(name='Indigo Kaftan')
        self.client.authenticate_user(self.user)

    def test_requires_authentication(self):
        """Test guests have no wishlist"""
        self.client.logout()
        response = self.client.get('/api/v1/wishlist/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_toggle_and_list(self):
        """Test toggling and listing"""
        response = self.client.post('/api/v1/wishlist/toggle/', {'product_id': self.product.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['added'])

        response = self.client.get('/api/v1/wishlist/')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['product']['name'], 'Indigo Kaftan')

    def test_toggle_unknown_product(self):
        """Test unknown products return 404"""
        response = self.client.post('/api/v1/wishlist/toggle/', {'product_id': 99999}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_remove(self):
        """Test removing a saved product"""
        services.add_item(self.user, self.product)
        response = self.client.delete(f'/api/v1/wishlist/{self.product.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        response = self.client.delete(f'/api/v1/wishlist/{self.product.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_clear(self):
        """Test emptying the wishlist"""
        services.add_item(self.user, self.product)
        response = self.client.delete('/api/v1/wishlist/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(WishlistItem.objects.filter(user=self.user).exists())

    def test_lists_are_private(self):
        """Test customers only see their own items"""
        services.add_item(TestDataFactory.create_user(), self.product)
        response = self.client.get('/api/v1/wishlist/')
        self.assertEqual(response.data, [])

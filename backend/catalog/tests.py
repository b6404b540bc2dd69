"""
Comprehensive test suite for the catalog module
Tests: Storefront listing and detail, admin product CRUD, reviews,
measurement templates and uploaded image housekeeping
"""
from decimal import Decimal
from unittest import mock

from django.core.cache import cache
from django.test import TestCase
from rest_framework import status

from backend.catalog import services
from backend.catalog.models import Product, ProductVariant, MeasurementTemplate, UploadedImage, Review
from backend.core.exceptions import ConflictError, ImageStorageError
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.orders.models import PaymentStatus

IMAGE_URL = 'https://res.cloudinary.com/demo/image/upload/v1712/products/abc123.jpg'
DESTROY_PATH = 'backend.catalog.services.cloudinary.uploader.destroy'


def variant_payload(**overrides):
    data = {
        'image_urls': [IMAGE_URL],
        'color': 'Gold',
        'size': 'L',
        'quantity': 4,
        'price': '25000.00',
    }
    data.update(overrides)
    return data


class StorefrontProductTests(TestCase):
    """Test public product endpoints"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.cheap = TestDataFactory.create_product(name='Ankara Shirt', category='shirt', price=Decimal('5000.00'))
        self.dear = TestDataFactory.create_product(name='Royal Agbada', category='agbada', price=Decimal('90000.00'),
                                                   is_featured=True, size='XL')

    def tearDown(self):
        cache.clear()

    def test_product_list(self):
        """Test listing with pagination"""
        response = self.client.get('/api/v1/products/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 2)
        self.assertEqual(response.data['results'][0]['name'], 'Ankara Shirt')
        self.assertEqual(response.data['results'][0]['min_price'], '5000.00')

    def test_filter_by_category_and_featured(self):
        """Test category and featured filters"""
        response = self.client.get('/api/v1/products/?category=agbada')
        self.assertEqual([p['name'] for p in response.data['results']], ['Royal Agbada'])
        response = self.client.get('/api/v1/products/?featured=true')
        self.assertEqual(response.data['pagination']['total'], 1)

    def test_filter_by_price_and_size(self):
        """Test variant-level filters"""
        response = self.client.get('/api/v1/products/?min_price=10000')
        self.assertEqual([p['name'] for p in response.data['results']], ['Royal Agbada'])
        response = self.client.get('/api/v1/products/?size=M')
        self.assertEqual([p['name'] for p in response.data['results']], ['Ankara Shirt'])

    def test_sort_by_price_high(self):
        """Test sorting by price"""
        response = self.client.get('/api/v1/products/?sort_by=price-high')
        self.assertEqual(response.data['results'][0]['name'], 'Royal Agbada')

    def test_search(self):
        """Test name search"""
        response = self.client.get('/api/v1/products/?search=royal')
        self.assertEqual(response.data['pagination']['total'], 1)

    def test_list_cache_is_invalidated_on_change(self):
        """Test catalogue writes clear cached listings"""
        self.client.get('/api/v1/products/')
        with self.captureOnCommitCallbacks(execute=True):
            TestDataFactory.create_product(name='Zebra Kaftan')
        response = self.client.get('/api/v1/products/')
        self.assertEqual(response.data['pagination']['total'], 3)

    def test_detail_by_slug(self):
        """Test product detail"""
        response = self.client.get(f'/api/v1/products/{self.dear.slug}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], 'Royal Agbada')
        self.assertEqual(len(response.data['variants']), 1)
        self.assertIsNone(response.data['average_rating'])

    def test_detail_missing(self):
        """Test unknown slugs return 404"""
        response = self.client.get('/api/v1/products/does-not-exist/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_slugs_are_unique(self):
        """Test duplicate names get distinct slugs"""
        product = TestDataFactory.create_product(name='Royal Agbada')
        self.assertEqual(product.slug, 'royal-agbada-2')


class VariantPricingTests(TestCase):
    """Test variant price and stock helpers"""

    def test_effective_price(self):
        """Test discount applies only when positive and lower"""
        variant = TestDataFactory.create_product(price=Decimal('100.00'), discount_price=Decimal('80.00')).variants.first()
        self.assertEqual(variant.effective_price, Decimal('80.00'))
        variant.discount_price = Decimal('0.00')
        self.assertEqual(variant.effective_price, Decimal('100.00'))
        variant.discount_price = Decimal('120.00')
        self.assertEqual(variant.effective_price, Decimal('100.00'))

    def test_available_quantity(self):
        """Test reserved units are not available"""
        variant = TestDataFactory.create_product(quantity=5).variants.first()
        variant.reserved_quantity = 3
        self.assertEqual(variant.available_quantity, 2)


class AdminProductTests(TestCase):
    """Test admin product management"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.admin = TestDataFactory.create_admin()
        self.client.authenticate_user(self.admin)

    def tearDown(self):
        cache.clear()

    def test_create_product_with_variants(self):
        """Test nested variant creation"""
        response = self.client.post('/api/v1/admin/products/', {
            'name': 'Senator Set',
            'description': 'Two-piece senator outfit',
            'category': 'senator',
            'material': 'Cashmere',
            'variants': [variant_payload(), variant_payload(color='Black', size='XL',
                                                            measurements={'chest': '44.5'})],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['slug'], 'senator-set')
        self.assertEqual(len(response.data['variants']), 2)
        self.assertTrue(AuditLog.objects.filter(action='create', model_name='Product').exists())

    def test_create_requires_variant(self):
        """Test products need at least one variant"""
        response = self.client.post('/api/v1/admin/products/', {
            'name': 'Empty', 'description': 'x', 'category': 'suit', 'material': 'Wool', 'variants': [],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_rejects_unknown_measurement(self):
        """Test variant measurements use known keys"""
        response = self.client.post('/api/v1/admin/products/', {
            'name': 'Odd', 'description': 'x', 'category': 'suit', 'material': 'Wool',
            'variants': [variant_payload(measurements={'elbow': '10'})],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_keeps_reserved_quantity(self):
        """Test editing variants preserves reserved stock"""
        product = TestDataFactory.create_product(name='Kaftan One')
        variant = product.variants.first()
        ProductVariant.objects.filter(pk=variant.pk).update(reserved_quantity=2)

        response = self.client.patch(f'/api/v1/admin/products/{product.id}/', {
            'name': 'Kaftan Two',
            'variants': [variant_payload(id=variant.id, quantity=9)],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['slug'], 'kaftan-two')
        variant.refresh_from_db()
        self.assertEqual(variant.quantity, 9)
        self.assertEqual(variant.reserved_quantity, 2)

    def test_update_removes_omitted_variants(self):
        """Test variants missing from an update are deleted"""
        product = TestDataFactory.create_product()
        keep = product.variants.first()
        drop = TestDataFactory.create_variant(product, color='Red')
        response = self.client.patch(f'/api/v1/admin/products/{product.id}/', {
            'variants': [variant_payload(id=keep.id)],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(ProductVariant.objects.filter(pk=drop.pk).exists())

    @mock.patch(DESTROY_PATH, return_value={'result': 'ok'})
    def test_cannot_delete_last_variant(self, mock_destroy):
        """Test the last variant is protected"""
        product = TestDataFactory.create_product()
        variant = product.variants.first()
        response = self.client.delete(f'/api/v1/admin/products/{product.id}/variants/{variant.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        extra = TestDataFactory.create_variant(product, color='Green')
        response = self.client.delete(f'/api/v1/admin/products/{product.id}/variants/{extra.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

    @mock.patch(DESTROY_PATH, return_value={'result': 'ok'})
    def test_delete_product(self, mock_destroy):
        """Test product deletion"""
        product = TestDataFactory.create_product()
        response = self.client.delete(f'/api/v1/admin/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Product.objects.filter(pk=product.pk).exists())

    @mock.patch(DESTROY_PATH, return_value={'result': 'ok'})
    def test_delete_product_removes_cloudinary_images(self, mock_destroy):
        """Test a deleted product's images are destroyed on Cloudinary"""
        product = TestDataFactory.create_product()
        TestDataFactory.create_variant(product, color='Red', image_urls=[IMAGE_URL])
        services.register_uploaded_image(IMAGE_URL)
        response = self.client.delete(f'/api/v1/admin/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(mock_destroy.call_count, 2)
        mock_destroy.assert_any_call('products/abc123', resource_type='image', invalidate=True)
        self.assertFalse(UploadedImage.objects.filter(image_url=IMAGE_URL).exists())

    @mock.patch(DESTROY_PATH, return_value={'result': 'ok'})
    def test_delete_product_keeps_images_used_elsewhere(self, mock_destroy):
        """Test images another variant still shows are not destroyed"""
        product = TestDataFactory.create_product()
        TestDataFactory.create_variant(product, color='Red', image_urls=[IMAGE_URL])
        other = TestDataFactory.create_product()
        TestDataFactory.create_variant(other, color='Red', image_urls=[IMAGE_URL])
        response = self.client.delete(f'/api/v1/admin/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(mock_destroy.call_count, 1)
        self.assertNotIn('products/abc123', [call.args[0] for call in mock_destroy.call_args_list])

    @mock.patch(DESTROY_PATH, side_effect=Exception('Cloudinary unavailable'))
    def test_delete_product_survives_cloudinary_failure(self, mock_destroy):
        """Test product deletion still succeeds when Cloudinary fails"""
        product = TestDataFactory.create_product()
        TestDataFactory.create_variant(product, color='Red', image_urls=[IMAGE_URL])
        services.register_uploaded_image(IMAGE_URL)
        response = self.client.delete(f'/api/v1/admin/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Product.objects.filter(pk=product.pk).exists())
        self.assertTrue(UploadedImage.objects.filter(image_url=IMAGE_URL).exists())

    def test_customer_forbidden(self):
        """Test admin endpoints reject customers"""
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/admin/products/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ReviewTests(TestCase):
    """Test product reviews"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.product = TestDataFactory.create_product()

    def test_guest_review(self):
        """Test guests review with name and email"""
        response = self.client.post('/api/v1/reviews/', {
            'product_slug': self.product.slug,
            'name': 'Tunde',
            'email': 'Tunde@Test.com',
            'rating': 4,
            'comment': 'Lovely fabric',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertFalse(response.data['is_verified'])
        self.assertEqual(Review.objects.get().email, 'tunde@test.com')

    def test_guest_review_requires_identity(self):
        """Test guest reviews need name and email"""
        response = self.client.post('/api/v1/reviews/', {
            'product_id': self.product.id, 'rating': 4, 'comment': 'Nice',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_review_requires_product(self):
        """Test a product identifier is required"""
        response = self.client.post('/api/v1/reviews/', {
            'name': 'Tunde', 'email': 't@test.com', 'rating': 4, 'comment': 'Nice',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_rating_range(self):
        """Test ratings are 1 to 5"""
        response = self.client.post('/api/v1/reviews/', {
            'product_id': self.product.id, 'name': 'T', 'email': 't@test.com', 'rating': 6, 'comment': 'Nice',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_verified_purchase(self):
        """Test buyers with a paid order get verified reviews"""
        user = TestDataFactory.create_user()
        TestDataFactory.create_order(user=user, variant=self.product.variants.first(),
                                     payment_status=PaymentStatus.PAID)
        self.client.authenticate_user(user)
        response = self.client.post('/api/v1/reviews/', {
            'product_id': self.product.id, 'rating': 5, 'comment': 'Perfect fit',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['is_verified'])
        self.assertEqual(response.data['name'], user.full_name)

    def test_review_list_summary(self):
        """Test review listing with average rating"""
        for rating in (4, 5):
            Review.objects.create(product=self.product, name='A', email='a@test.com', rating=rating, comment='ok')
        response = self.client.get(f'/api/v1/products/{self.product.slug}/reviews/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['review_count'], 2)
        self.assertEqual(response.data['average_rating'], 4.5)


class MeasurementTemplateTests(TestCase):
    """Test measurement template endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.admin = TestDataFactory.create_admin()

    def test_public_list(self):
        """Test anyone can list templates"""
        TestDataFactory.create_template(title='Agbada')
        response = self.client.get('/api/v1/measurement-templates/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['title'], 'Agbada')

    def test_admin_create(self):
        """Test template creation trims names"""
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/admin/measurement-templates/', {
            'title': '  Kaftan  ',
            'fields': [{'name': ' Chest '}, {'name': 'Sleeve'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        template = MeasurementTemplate.objects.get()
        self.assertEqual(template.title, 'Kaftan')
        self.assertEqual(template.field_names, ['Chest', 'Sleeve'])

    def test_admin_create_requires_fields(self):
        """Test templates need at least one field"""
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/admin/measurement-templates/', {
            'title': 'Empty', 'fields': [],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_admin_update_and_delete(self):
        """Test template update and deletion"""
        template = TestDataFactory.create_template(title='Old')
        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/admin/measurement-templates/{template.id}/',
                                     {'title': 'New'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['title'], 'New')
        response = self.client.delete(f'/api/v1/admin/measurement-templates/{template.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)


class UploadedImageTests(TestCase):
    """Test image registration and unused image cleanup"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.admin = TestDataFactory.create_admin()
        self.client.authenticate_user(self.admin)

    def test_extract_public_id(self):
        """Test public ids are parsed from delivery URLs"""
        self.assertEqual(services.extract_public_id_from_url(IMAGE_URL), 'products/abc123')
        self.assertIsNone(services.extract_public_id_from_url('https://example.com/a.jpg'))

    def test_register_is_idempotent(self):
        """Test registering the same URL twice"""
        response = self.client.post('/api/v1/admin/images/', {'image_url': IMAGE_URL, 'file_name': 'abc.jpg'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['public_id'], 'products/abc123')
        response = self.client.post('/api/v1/admin/images/', {'image_url': IMAGE_URL}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(UploadedImage.objects.count(), 1)

    def test_unused_images(self):
        """Test referenced images are excluded"""
        product = TestDataFactory.create_product()
        used_url = product.variants.first().image_urls[0]
        services.register_uploaded_image(used_url)
        unused, _ = services.register_uploaded_image(IMAGE_URL)
        template = TestDataFactory.create_template()
        order = TestDataFactory.create_measurement_order(template=template)
        sample_url = 'https://res.cloudinary.com/demo/image/upload/v1/samples/style.jpg'
        order.templates[0]['sample_image_urls'] = [sample_url]
        order.save()
        services.register_uploaded_image(sample_url)

        response = self.client.get('/api/v1/admin/images/unused/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([image['id'] for image in response.data['results']], [unused.id])

    def test_delete_in_use_image_conflicts(self):
        """Test images still referenced cannot be deleted"""
        product = TestDataFactory.create_product()
        image, _ = services.register_uploaded_image(product.variants.first().image_urls[0])
        response = self.client.delete(f'/api/v1/admin/images/{image.id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        with self.assertRaises(ConflictError):
            services.delete_unused_image(image)

    @mock.patch(DESTROY_PATH, return_value={'result': 'ok'})
    def test_delete_unused_image(self, mock_destroy):
        """Test unused images are deleted from Cloudinary and the database"""
        image, _ = services.register_uploaded_image(IMAGE_URL)
        response = self.client.delete(f'/api/v1/admin/images/{image.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        mock_destroy.assert_called_once_with('products/abc123', resource_type='image', invalidate=True)
        self.assertFalse(UploadedImage.objects.filter(pk=image.pk).exists())
        self.assertTrue(AuditLog.objects.filter(action='image_delete').exists())

    @mock.patch(DESTROY_PATH, return_value={'result': 'not found'})
    def test_delete_image_already_gone_from_cloudinary(self, mock_destroy):
        """Test an image Cloudinary no longer has is still removed"""
        image, _ = services.register_uploaded_image(IMAGE_URL)
        response = self.client.delete(f'/api/v1/admin/images/{image.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(UploadedImage.objects.filter(pk=image.pk).exists())

    @mock.patch(DESTROY_PATH, return_value={'result': 'error'})
    def test_delete_image_cloudinary_failure_keeps_record(self, mock_destroy):
        """Test the record survives when Cloudinary refuses the delete"""
        image, _ = services.register_uploaded_image(IMAGE_URL)
        response = self.client.delete(f'/api/v1/admin/images/{image.id}/')
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertIn('error', response.data)
        self.assertTrue(UploadedImage.objects.filter(pk=image.pk).exists())
        self.assertFalse(AuditLog.objects.filter(action='image_delete').exists())

    @mock.patch(DESTROY_PATH, side_effect=Exception('connection reset'))
    def test_delete_image_cloudinary_error_raises(self, mock_destroy):
        """Test Cloudinary exceptions surface as storage errors"""
        image, _ = services.register_uploaded_image(IMAGE_URL)
        with self.assertRaises(ImageStorageError):
            services.delete_unused_image(image)
        self.assertTrue(UploadedImage.objects.filter(pk=image.pk).exists())

    @mock.patch(DESTROY_PATH)
    def test_delete_non_cloudinary_image_skips_destroy(self, mock_destroy):
        """Test records without a public id are removed without calling Cloudinary"""
        image, _ = services.register_uploaded_image('https://example.com/look.jpg')
        services.delete_unused_image(image)
        mock_destroy.assert_not_called()
        self.assertFalse(UploadedImage.objects.filter(pk=image.pk).exists())

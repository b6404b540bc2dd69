"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from backend.catalog.models import Product, ProductVariant, MeasurementTemplate
from backend.measurements.models import MeasurementOrder
from backend.orders.models import Order, OrderItem
from backend.shipping.models import ShippingSettings
from backend.core.utils import generate_reference_number
from decimal import Decimal
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_lowercase + string.digits, k=length))

    @staticmethod
    def create_user(email=None, password='Testpass123', is_staff=False, is_superuser=False, with_address=True):
        """Create a test customer; username mirrors the email"""
        if not email:
            email = f'customer_{TestDataFactory.random_string(6)}@test.com'
        email = email.lower()
        user = User.objects.create_user(
            username=email,
            email=email,
            password=password,
            is_staff=is_staff,
            is_superuser=is_superuser,
            first_name='Ada',
            last_name='Obi',
        )
        if with_address:
            user.phone = '+2348012345678'
            user.street_address = '12 Marina Road'
            user.city = 'Lagos Island'
            user.state = 'Lagos'
            user.zip_code = '100001'
            user.save()
        return user

    @staticmethod
    def create_admin(email=None, password='Adminpass123'):
        """Create a staff user"""
        if not email:
            email = f'admin_{TestDataFactory.random_string(6)}@test.com'
        return TestDataFactory.create_user(email=email, password=password, is_staff=True)

    @staticmethod
    def address(email='guest@test.com', **overrides):
        """Checkout address payload"""
        data = {
            'first_name': 'Chidi',
            'last_name': 'Okafor',
            'email': email,
            'phone': '+2348098765432',
            'address': '5 Allen Avenue',
            'city': 'Ikeja',
            'state': 'Lagos',
            'zip_code': '100271',
            'country': 'Nigeria',
        }
        data.update(overrides)
        return data

    @staticmethod
    def create_product(name=None, category='kaftan', price=Decimal('10000.00'), discount_price=None,
                       quantity=10, is_featured=False, color='Blue', size='M'):
        """Create a product with one variant"""
        if not name:
            name = f'Product {TestDataFactory.random_string(6)}'
        product = Product.objects.create(
            name=name,
            description=f'Test description for {name}',
            category=category,
            material='Cotton',
            is_featured=is_featured,
        )
        TestDataFactory.create_variant(product, price=price, discount_price=discount_price,
                                       quantity=quantity, color=color, size=size)
        return product

    @staticmethod
    def create_variant(product, price=Decimal('10000.00'), discount_price=None, quantity=10,
                       color='Blue', size='M', image_urls=None):
        """Create a variant for a product"""
        return ProductVariant.objects.create(
            product=product,
            image_urls=image_urls or [f'https://res.cloudinary.com/demo/image/upload/v1/products/{TestDataFactory.random_string(8)}.jpg'],
            color=color,
            size=size,
            quantity=quantity,
            price=price,
            discount_price=discount_price,
            in_stock=quantity > 0,
        )

    @staticmethod
    def create_template(title=None, field_names=('Chest', 'Waist')):
        """Create a measurement template"""
        if not title:
            title = f'Template {TestDataFactory.random_string(6)}'
        return MeasurementTemplate.objects.create(
            title=title,
            fields=[{'name': name} for name in field_names],
        )

    @staticmethod
    def create_shipping_settings(location_fees=None, free_shipping_threshold=Decimal('0.00')):
        """Create the shipping settings row"""
        if location_fees is None:
            location_fees = [{'location': 'Lagos', 'fee': '2500.00'}, {'location': 'Oyo', 'fee': '4000.00'}]
        return ShippingSettings.objects.create(
            location_fees=location_fees,
            free_shipping_threshold=free_shipping_threshold,
        )

    @staticmethod
    def cart_item(variant, quantity=1):
        """Cart line payload for a variant"""
        return {'product_id': variant.product_id, 'variant_id': variant.id, 'quantity': quantity}

    @staticmethod
    def create_order(user=None, variant=None, quantity=1, payment_status='pending', order_status='order_placed',
                     transaction_reference=None):
        """Create an order directly, bypassing checkout and stock reservation"""
        if variant is None:
            variant = TestDataFactory.create_product().variants.first()
        address = user.address_snapshot() if user else TestDataFactory.address()
        total = variant.effective_price * quantity
        order = Order.objects.create(
            order_number=generate_reference_number('ORD', Order),
            user=user,
            is_guest=user is None,
            guest_email=None if user else address['email'],
            shipping_address=address,
            billing_address=address,
            shipping_location='Lagos',
            subtotal=total,
            total=total,
            order_status=order_status,
            payment_status=payment_status,
            monnify_transaction_reference=transaction_reference,
        )
        OrderItem.objects.create(
            order=order,
            product=variant.product,
            variant_id=variant.id,
            product_name=variant.product.name,
            product_slug=variant.product.slug,
            image_urls=variant.image_urls,
            color=variant.color,
            size=variant.size,
            price=variant.price,
            discount_price=variant.discount_price,
            quantity=quantity,
            item_subtotal=variant.price * quantity,
            item_total=total,
        )
        return order

    @staticmethod
    def create_measurement_order(user=None, template=None, price=Decimal('0.00'), payment_status='pending',
                                 status='order_received', transaction_reference=None):
        """Create a measurement order directly"""
        if template is None:
            template = TestDataFactory.create_template()
        address = user.address_snapshot() if user else TestDataFactory.address()
        return MeasurementOrder.objects.create(
            order_number=generate_reference_number('MSO', MeasurementOrder),
            user=user,
            is_guest=user is None,
            guest_email=None if user else address['email'],
            customer_name=f"{address['first_name']} {address['last_name']}",
            customer_email=address['email'],
            customer_phone=address['phone'],
            street_address=address['address'],
            city=address['city'],
            state=address['state'],
            zip_code=address['zip_code'],
            shipping_location='Lagos',
            templates=[{
                'template_id': template.id,
                'template_title': template.title,
                'quantity': 1,
                'measurements': [{'field_name': name, 'value': 40.0} for name in template.field_names],
                'sample_image_urls': [],
            }],
            price=price,
            status=status,
            payment_status=payment_status,
            monnify_transaction_reference=transaction_reference,
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()

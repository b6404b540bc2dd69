from decimal import Decimal

from django.db import models

from backend.core.models import User
from backend.catalog.models import Product


class OrderStatus:
    ORDER_PLACED = 'order_placed'
    PROCESSING = 'processing'
    PACKED = 'packed'
    SHIPPED = 'shipped'
    IN_TRANSIT = 'in_transit'
    OUT_FOR_DELIVERY = 'out_for_delivery'
    DELIVERED = 'delivered'
    CANCELLED = 'cancelled'
    FAILED = 'failed'

    CHOICES = [
        (ORDER_PLACED, 'Order Placed'),
        (PROCESSING, 'Processing'),
        (PACKED, 'Packed'),
        (SHIPPED, 'Shipped'),
        (IN_TRANSIT, 'In Transit'),
        (OUT_FOR_DELIVERY, 'Out for Delivery'),
        (DELIVERED, 'Delivered'),
        (CANCELLED, 'Cancelled'),
        (FAILED, 'Failed'),
    ]
    VALUES = [value for value, _ in CHOICES]


class PaymentStatus:
    PENDING = 'pending'
    PAID = 'paid'
    FAILED = 'failed'
    CANCELLED = 'cancelled'

    CHOICES = [
        (PENDING, 'Pending'),
        (PAID, 'Paid'),
        (FAILED, 'Failed'),
        (CANCELLED, 'Cancelled'),
    ]
    VALUES = [value for value, _ in CHOICES]


class Order(models.Model):
    """Ready-to-wear order placed through checkout"""
    order_number = models.CharField(max_length=30, unique=True)
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    is_guest = models.BooleanField(default=False)
    guest_email = models.EmailField(blank=True, null=True)
    shipping_address = models.JSONField(default=dict)
    billing_address = models.JSONField(default=dict)
    shipping_location = models.CharField(max_length=100)
    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    shipping = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    tax = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    order_status = models.CharField(max_length=20, choices=OrderStatus.CHOICES, default=OrderStatus.ORDER_PLACED)
    payment_status = models.CharField(max_length=20, choices=PaymentStatus.CHOICES, default=PaymentStatus.PENDING)
    payment_method = models.CharField(max_length=20, default='monnify')
    monnify_transaction_reference = models.CharField(max_length=100, blank=True, null=True, unique=True)
    monnify_payment_reference = models.CharField(max_length=100, blank=True, null=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True, null=True)
    inventory_reserved_at = models.DateTimeField(null=True, blank=True)
    inventory_reservation_expires_at = models.DateTimeField(null=True, blank=True)
    inventory_reservation_released_at = models.DateTimeField(null=True, blank=True)
    inventory_deducted_at = models.DateTimeField(null=True, blank=True)
    inventory_deduction_failed_at = models.DateTimeField(null=True, blank=True)
    inventory_deduction_error = models.TextField(blank=True, null=True)
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.order_number

    @property
    def customer_email(self):
        return (self.shipping_address or {}).get('email') or self.guest_email or ''

    @property
    def customer_name(self):
        address = self.shipping_address or {}
        return f"{address.get('first_name', '')} {address.get('last_name', '')}".strip()

    @property
    def has_active_reservation(self):
        return (
            self.inventory_reserved_at is not None
            and self.inventory_reservation_released_at is None
            and self.inventory_deducted_at is None
        )

    class Meta:
        db_table = 'orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='order_created_idx'),
            models.Index(fields=['order_status'], name='order_status_idx'),
            models.Index(fields=['payment_status'], name='order_payment_status_idx'),
            models.Index(fields=['monnify_payment_reference'], name='order_payment_ref_idx'),
        ]


class OrderItem(models.Model):
    """Priced snapshot of a product variant at the time of ordering"""
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.SET_NULL, null=True, blank=True, related_name='order_items')
    variant_id = models.BigIntegerField(null=True, blank=True)
    product_name = models.CharField(max_length=255)
    product_slug = models.CharField(max_length=280)
    image_urls = models.JSONField(default=list, blank=True)
    color = models.CharField(max_length=50, blank=True)
    size = models.CharField(max_length=10, blank=True)
    price = models.DecimalField(max_digits=12, decimal_places=2)
    discount_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    quantity = models.PositiveIntegerField()
    item_subtotal = models.DecimalField(max_digits=14, decimal_places=2)
    item_total = models.DecimalField(max_digits=14, decimal_places=2)
    measurements = models.JSONField(default=dict, blank=True)

    def __str__(self):
        return f"{self.product_name} x {self.quantity}"

    class Meta:
        db_table = 'order_items'
        ordering = ['id']

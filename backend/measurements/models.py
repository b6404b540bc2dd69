from decimal import Decimal

from django.db import models

from backend.core.models import User
from backend.orders.models import PaymentStatus


class MeasurementOrderStatus:
    ORDER_RECEIVED = 'order_received'
    DESIGN_REVIEW = 'design_review'
    FABRIC_SELECTION = 'fabric_selection'
    PATTERN_MAKING = 'pattern_making'
    CUTTING = 'cutting'
    SEWING = 'sewing'
    QUALITY_CHECK = 'quality_check'
    PACKED = 'packed'
    SHIPPED = 'shipped'
    IN_TRANSIT = 'in_transit'
    OUT_FOR_DELIVERY = 'out_for_delivery'
    DELIVERED = 'delivered'
    CANCELLED = 'cancelled'

    CHOICES = [
        (ORDER_RECEIVED, 'Order Received'),
        (DESIGN_REVIEW, 'Design Review'),
        (FABRIC_SELECTION, 'Fabric Selection'),
        (PATTERN_MAKING, 'Pattern Making'),
        (CUTTING, 'Cutting'),
        (SEWING, 'Sewing'),
        (QUALITY_CHECK, 'Quality Check'),
        (PACKED, 'Packed'),
        (SHIPPED, 'Shipped'),
        (IN_TRANSIT, 'In Transit'),
        (OUT_FOR_DELIVERY, 'Out for Delivery'),
        (DELIVERED, 'Delivered'),
        (CANCELLED, 'Cancelled'),
    ]
    VALUES = [value for value, _ in CHOICES]


class MeasurementOrder(models.Model):
    """Made-to-measure order; priced by an admin after review"""
    order_number = models.CharField(max_length=30, unique=True)
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='measurement_orders')
    is_guest = models.BooleanField(default=False)
    guest_email = models.EmailField(blank=True, null=True)
    customer_name = models.CharField(max_length=200)
    customer_email = models.EmailField()
    customer_phone = models.CharField(max_length=20)
    street_address = models.CharField(max_length=500)
    city = models.CharField(max_length=100)
    state = models.CharField(max_length=100)
    zip_code = models.CharField(max_length=20)
    country = models.CharField(max_length=100, default='Nigeria')
    shipping_location = models.CharField(max_length=100)
    category = models.CharField(max_length=100, blank=True, null=True)
    templates = models.JSONField(default=list, help_text='Measured templates with quantities and sample images')
    notes = models.TextField(blank=True, null=True)
    price = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    delivery_fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    tax = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    status = models.CharField(max_length=30, choices=MeasurementOrderStatus.CHOICES,
                              default=MeasurementOrderStatus.ORDER_RECEIVED)
    payment_status = models.CharField(max_length=20, choices=PaymentStatus.CHOICES, default=PaymentStatus.PENDING)
    paid_at = models.DateTimeField(null=True, blank=True)
    monnify_transaction_reference = models.CharField(max_length=100, blank=True, null=True, unique=True)
    monnify_payment_reference = models.CharField(max_length=100, blank=True, null=True)
    price_set_at = models.DateTimeField(null=True, blank=True)
    price_set_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    is_replaced = models.BooleanField(default=False)
    replaced_by_order = models.OneToOneField('self', on_delete=models.SET_NULL, null=True, blank=True,
                                             related_name='replaces')
    original_order = models.ForeignKey('self', on_delete=models.SET_NULL, null=True, blank=True,
                                       related_name='replacements')
    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.order_number

    @property
    def amount_due(self):
        return self.price + self.delivery_fee + self.tax

    class Meta:
        db_table = 'measurement_orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='mso_created_idx'),
            models.Index(fields=['status'], name='mso_status_idx'),
            models.Index(fields=['payment_status'], name='mso_payment_status_idx'),
            models.Index(fields=['monnify_payment_reference'], name='mso_payment_ref_idx'),
        ]

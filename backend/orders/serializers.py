from rest_framework import serializers

from backend.cart.serializers import CartItemInputSerializer
from backend.cart.services import MAX_CART_ITEMS
from backend.core.validators import AddressSerializer, AccountCreationMixin
from backend.shipping.constants import SHIPPING_LOCATIONS
from .models import Order, OrderItem, OrderStatus


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = ['id', 'product', 'variant_id', 'product_name', 'product_slug', 'image_urls', 'color', 'size',
                  'price', 'discount_price', 'quantity', 'item_subtotal', 'item_total', 'measurements']


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    order_status_display = serializers.CharField(source='get_order_status_display', read_only=True)
    payment_status_display = serializers.CharField(source='get_payment_status_display', read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'user', 'is_guest', 'guest_email', 'shipping_address', 'billing_address',
            'shipping_location', 'items', 'subtotal', 'shipping', 'tax', 'total',
            'order_status', 'order_status_display', 'payment_status', 'payment_status_display', 'payment_method',
            'monnify_transaction_reference', 'monnify_payment_reference',
            'paid_at', 'shipped_at', 'delivered_at', 'cancelled_at', 'cancellation_reason',
            'inventory_reserved_at', 'inventory_reservation_expires_at', 'inventory_reservation_released_at',
            'inventory_deducted_at', 'inventory_deduction_failed_at', 'inventory_deduction_error',
            'notes', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class OrderTrackingSerializer(serializers.ModelSerializer):
    """Public view of an order; no addresses or payment references"""
    items = OrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = ['order_number', 'items', 'subtotal', 'shipping', 'tax', 'total', 'order_status',
                  'payment_status', 'shipping_location', 'paid_at', 'shipped_at', 'delivered_at',
                  'cancelled_at', 'created_at']
        read_only_fields = fields


class CreateOrderSerializer(AccountCreationMixin):
    """Checkout form; address fields are only read for guests"""
    items = serializers.ListField(child=CartItemInputSerializer(), min_length=1, max_length=MAX_CART_ITEMS)
    shipping_location = serializers.ChoiceField(choices=SHIPPING_LOCATIONS)
    shipping_address = AddressSerializer(required=False)
    same_as_shipping = serializers.BooleanField(required=False, default=True)
    billing_address = AddressSerializer(required=False)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=1000)

    def validate(self, attrs):
        request = self.context.get('request')
        is_authenticated = bool(request and request.user and request.user.is_authenticated)
        if not is_authenticated:
            if not attrs.get('shipping_address'):
                raise serializers.ValidationError({'shipping_address': 'Shipping address is required for guest checkout.'})
            if not attrs.get('same_as_shipping', True) and not attrs.get('billing_address'):
                raise serializers.ValidationError({'billing_address': 'Billing address is required when it differs from shipping.'})
            attrs = self.validate_account_fields(attrs)
        else:
            attrs['create_account'] = False
        return attrs


class OrderStatusUpdateSerializer(serializers.Serializer):
    order_status = serializers.ChoiceField(choices=OrderStatus.CHOICES)
    cancellation_reason = serializers.CharField(required=False, allow_blank=True, max_length=1000)

from decimal import Decimal

from rest_framework import serializers

from backend.core.validators import AddressSerializer, AccountCreationMixin
from backend.shipping.constants import SHIPPING_LOCATIONS
from .models import MeasurementOrder, MeasurementOrderStatus


class MeasurementValueSerializer(serializers.Serializer):
    field_name = serializers.CharField(max_length=100)
    value = serializers.DecimalField(max_digits=8, decimal_places=2)

    def validate_value(self, value):
        if value <= 0:
            raise serializers.ValidationError('Measurement values must be greater than 0.')
        return value


class MeasuredTemplateSerializer(serializers.Serializer):
    template_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1, max_value=10000)
    measurements = serializers.ListField(child=MeasurementValueSerializer(), min_length=1)
    sample_image_urls = serializers.ListField(child=serializers.URLField(max_length=1000), required=False,
                                              max_length=2, default=list)


class MeasurementOrderCreateSerializer(AccountCreationMixin):
    customer = AddressSerializer(required=False)
    shipping_location = serializers.ChoiceField(choices=SHIPPING_LOCATIONS)
    category = serializers.CharField(required=False, allow_blank=True, max_length=100)
    templates = serializers.ListField(child=MeasuredTemplateSerializer(), min_length=1, max_length=20)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000)

    def validate(self, attrs):
        request = self.context.get('request')
        if request and request.user and request.user.is_authenticated:
            attrs['create_account'] = False
            return attrs
        if not attrs.get('customer'):
            raise serializers.ValidationError({'customer': 'Customer details are required for guest orders.'})
        return self.validate_account_fields(attrs)


class MeasurementOrderSerializer(serializers.ModelSerializer):
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    amount_due = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)
    replaced_by_order_number = serializers.CharField(source='replaced_by_order.order_number', read_only=True, default=None)
    original_order_number = serializers.CharField(source='original_order.order_number', read_only=True, default=None)

    class Meta:
        model = MeasurementOrder
        fields = [
            'id', 'order_number', 'user', 'is_guest', 'guest_email', 'customer_name', 'customer_email',
            'customer_phone', 'street_address', 'city', 'state', 'zip_code', 'country', 'shipping_location',
            'category', 'templates', 'notes', 'price', 'delivery_fee', 'tax', 'amount_due',
            'status', 'status_display', 'payment_status', 'paid_at',
            'monnify_transaction_reference', 'monnify_payment_reference',
            'price_set_at', 'price_set_by', 'is_replaced', 'replaced_by_order', 'replaced_by_order_number',
            'original_order', 'original_order_number', 'shipped_at', 'delivered_at', 'cancelled_at',
            'cancellation_reason', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class MeasurementOrderTrackingSerializer(serializers.ModelSerializer):
    amount_due = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = MeasurementOrder
        fields = ['order_number', 'category', 'templates', 'price', 'delivery_fee', 'tax', 'amount_due',
                  'status', 'payment_status', 'shipping_location', 'is_replaced', 'paid_at', 'shipped_at',
                  'delivered_at', 'cancelled_at', 'cancellation_reason', 'created_at']
        read_only_fields = fields


class MeasurementPriceSerializer(serializers.Serializer):
    price = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0.01'))


class MeasurementStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=MeasurementOrderStatus.CHOICES)

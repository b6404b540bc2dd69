from rest_framework import serializers


class ExistingOrderCheckoutSerializer(serializers.Serializer):
    """Identifies an unpaid order to send back to the gateway"""
    order_number = serializers.CharField(max_length=50)
    email = serializers.EmailField(required=False, allow_blank=True)

    def validate_order_number(self, value):
        return value.strip().upper()


class CheckoutResponseSerializer(serializers.Serializer):
    checkout_url = serializers.URLField()
    transaction_reference = serializers.CharField()
    payment_reference = serializers.CharField()
    order_number = serializers.CharField()

from decimal import Decimal

from rest_framework import serializers

from .constants import SHIPPING_LOCATIONS
from .models import ShippingSettings


class LocationFeeSerializer(serializers.Serializer):
    location = serializers.ChoiceField(choices=SHIPPING_LOCATIONS)
    fee = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'))


class ShippingSettingsSerializer(serializers.ModelSerializer):
    location_fees = serializers.ListField(child=LocationFeeSerializer(), required=False)
    free_shipping_threshold = serializers.DecimalField(max_digits=12, decimal_places=2,
                                                       min_value=Decimal('0'), required=False)

    class Meta:
        model = ShippingSettings
        fields = ['location_fees', 'free_shipping_threshold', 'updated_at']
        read_only_fields = ['updated_at']

    def validate_location_fees(self, value):
        locations = [entry['location'] for entry in value]
        duplicates = sorted({loc for loc in locations if locations.count(loc) > 1})
        if duplicates:
            raise serializers.ValidationError(f"Duplicate locations: {', '.join(duplicates)}")
        return value

from rest_framework import serializers

from backend.shipping.constants import SHIPPING_LOCATIONS
from .services import MAX_CART_ITEMS, MAX_ITEM_QUANTITY


class CartItemInputSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    variant_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1, max_value=MAX_ITEM_QUANTITY)


class CartCalculateSerializer(serializers.Serializer):
    items = serializers.ListField(child=CartItemInputSerializer(), max_length=MAX_CART_ITEMS, allow_empty=True)
    shipping_location = serializers.ChoiceField(choices=SHIPPING_LOCATIONS, required=False, allow_blank=True)


class PricedCartItemSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    variant_id = serializers.IntegerField()
    product_name = serializers.CharField()
    product_slug = serializers.CharField()
    image_urls = serializers.ListField(child=serializers.CharField())
    color = serializers.CharField()
    size = serializers.CharField()
    price = serializers.DecimalField(max_digits=12, decimal_places=2)
    discount_price = serializers.DecimalField(max_digits=12, decimal_places=2, allow_null=True)
    quantity = serializers.IntegerField()
    item_subtotal = serializers.DecimalField(max_digits=14, decimal_places=2)
    item_total = serializers.DecimalField(max_digits=14, decimal_places=2)
    in_stock = serializers.BooleanField()
    available_quantity = serializers.IntegerField()
    measurements = serializers.DictField()


class CartSummarySerializer(serializers.Serializer):
    items = PricedCartItemSerializer(many=True)
    subtotal = serializers.DecimalField(max_digits=14, decimal_places=2)
    shipping = serializers.DecimalField(max_digits=12, decimal_places=2)
    tax = serializers.DecimalField(max_digits=12, decimal_places=2)
    total = serializers.DecimalField(max_digits=14, decimal_places=2)
    item_count = serializers.IntegerField()
    free_shipping_threshold = serializers.DecimalField(max_digits=12, decimal_places=2)

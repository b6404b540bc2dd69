from rest_framework import serializers


class RecentOrderSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    order_number = serializers.CharField()
    type = serializers.CharField()
    customer_name = serializers.CharField()
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    status = serializers.CharField()
    payment_status = serializers.CharField()
    created_at = serializers.DateTimeField()


class DashboardStatsSerializer(serializers.Serializer):
    total_revenue = serializers.DecimalField(max_digits=16, decimal_places=2)
    total_orders = serializers.IntegerField()
    total_measurement_orders = serializers.IntegerField()
    total_products = serializers.IntegerField()
    pending_orders = serializers.IntegerField()
    processing_orders = serializers.IntegerField()
    shipped_orders = serializers.IntegerField()
    delivered_orders = serializers.IntegerField()
    recent_orders = RecentOrderSerializer(many=True)

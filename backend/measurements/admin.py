from django.contrib import admin
from .models import MeasurementOrder


@admin.register(MeasurementOrder)
class MeasurementOrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'customer_name', 'price', 'status', 'payment_status', 'is_replaced', 'created_at']
    list_filter = ['status', 'payment_status', 'is_guest', 'is_replaced']
    search_fields = ['order_number', 'customer_name', 'customer_email', 'guest_email']
    readonly_fields = ['order_number', 'price_set_at', 'price_set_by', 'replaced_by_order', 'original_order',
                       'paid_at', 'created_at', 'updated_at']

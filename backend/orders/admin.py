from django.contrib import admin
from .models import Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['product', 'variant_id', 'product_name', 'color', 'size', 'price', 'discount_price',
                       'quantity', 'item_subtotal', 'item_total']
    fields = readonly_fields


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'user', 'is_guest', 'total', 'order_status', 'payment_status', 'created_at']
    list_filter = ['order_status', 'payment_status', 'is_guest', 'shipping_location']
    search_fields = ['order_number', 'guest_email', 'monnify_transaction_reference']
    readonly_fields = ['order_number', 'subtotal', 'shipping', 'tax', 'total', 'paid_at',
                       'inventory_reserved_at', 'inventory_deducted_at', 'created_at', 'updated_at']
    inlines = [OrderItemInline]

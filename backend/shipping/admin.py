from django.contrib import admin
from .models import ShippingSettings


@admin.register(ShippingSettings)
class ShippingSettingsAdmin(admin.ModelAdmin):
    list_display = ['__str__', 'free_shipping_threshold', 'updated_by', 'updated_at']
    readonly_fields = ['updated_by', 'updated_at']

from decimal import Decimal

from django.db import models

from backend.core.models import User


class ShippingSettings(models.Model):
    """Store-wide delivery pricing; a single row"""
    location_fees = models.JSONField(default=list, blank=True, help_text='List of {"location": ..., "fee": ...}')
    free_shipping_threshold = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    updated_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Shipping settings ({len(self.location_fees)} locations)"

    class Meta:
        db_table = 'shipping_settings'
        verbose_name_plural = 'shipping settings'

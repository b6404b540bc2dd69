from django.contrib import admin
from .models import Subscriber


@admin.register(Subscriber)
class SubscriberAdmin(admin.ModelAdmin):
    list_display = ['email', 'is_active', 'source', 'consent_date', 'unsubscribed_at']
    list_filter = ['is_active', 'source']
    search_fields = ['email']

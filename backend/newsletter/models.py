from django.db import models

from backend.core.models import User


class Subscriber(models.Model):
    """Newsletter subscription; emails are stored lowercased"""
    email = models.EmailField(unique=True)
    consent = models.BooleanField(default=False)
    consent_date = models.DateTimeField(null=True, blank=True)
    source = models.CharField(max_length=50, default='website')
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='subscriptions')
    is_active = models.BooleanField(default=True)
    unsubscribed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.email

    class Meta:
        db_table = 'newsletter_subscribers'
        ordering = ['-created_at']

from django.urls import path
from .views import subscribe, unsubscribe, contact, admin_subscriber_emails

urlpatterns = [
    path('newsletter/subscribe/', subscribe, name='newsletter-subscribe'),
    path('newsletter/unsubscribe/', unsubscribe, name='newsletter-unsubscribe'),
    path('contact/', contact, name='contact'),
    path('admin/newsletter/subscribers/', admin_subscriber_emails, name='admin-newsletter-subscribers'),
]

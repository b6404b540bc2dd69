from django.urls import path
from .views import shipping_settings, shipping_locations, admin_shipping_settings

urlpatterns = [
    path('shipping/settings/', shipping_settings, name='shipping-settings'),
    path('shipping/locations/', shipping_locations, name='shipping-locations'),
    path('admin/shipping/settings/', admin_shipping_settings, name='admin-shipping-settings'),
]
